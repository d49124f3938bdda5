import math

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.repositories.dashboard_repository import DashboardRepository
from app.repositories.generation_repository import GenerationRepository
from app.repositories.limit_override_repository import LimitOverrideRepository
from app.schemas.common import Pagination
from app.schemas.dashboard import (
    IpStats,
    UserDetailResponse,
    UserListResponse,
    UserSummary,
)
from app.schemas.generation import GenerationSummary
from app.schemas.limit_override import (
    LimitOverrideDeleteResponse,
    LimitOverrideResponse,
    LimitOverrideUpdate,
)
from app.services.analytics_service import round_ms
from app.services.quota_service import QuotaService, day_window

router = APIRouter()

USER_HISTORY_LIMIT = 100


@router.get(
    "/users",
    response_model=UserListResponse,
    summary="List users",
    responses={401: {"description": "Unauthorized – invalid or missing admin token"}},
)
async def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=25, ge=1, le=100),
    search: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> UserListResponse:
    """Generations grouped by IP and fingerprint, most recently active first."""
    repo = DashboardRepository(db)
    start_of_day, _ = day_window()
    activity = repo.user_activity(
        start_of_day, search=search, skip=(page - 1) * limit, limit=limit
    )
    total = repo.count_users(search)
    return UserListResponse(
        users=[
            UserSummary(
                ip=a.ip,
                fingerprint=a.fingerprint,
                total_generations=a.total_generations,
                completed=a.completed,
                errors=a.errors,
                total_cost=a.total_cost,
                total_tokens=a.total_tokens,
                avg_latency=round_ms(a.avg_latency),
                first_seen=a.first_seen,
                last_seen=a.last_seen,
                today_count=a.today_count,
            )
            for a in activity
        ],
        pagination=Pagination(
            page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)
        ),
    )


@router.get("/user/{ip}", response_model=UserDetailResponse, summary="Get one IP's history")
async def get_user(ip: str, db: Session = Depends(get_db)) -> UserDetailResponse:
    """Recent generations for an IP with aggregates and its quota override."""
    repo = GenerationRepository(db)
    aggregate = repo.aggregate_for_ip(ip)
    quota = QuotaService(db)
    bonus = quota.get_bonus(ip)
    return UserDetailResponse(
        ip=ip,
        generations=[
            GenerationSummary.model_validate(g) for g in repo.get_by_ip(ip, USER_HISTORY_LIMIT)
        ],
        stats=IpStats(
            count=aggregate.count,
            total_cost=aggregate.total_cost,
            avg_cost=aggregate.avg_cost,
            total_tokens=aggregate.total_tokens,
            avg_latency=round_ms(aggregate.avg_latency),
        ),
        bonus=bonus,
        effective_limit=quota.base_limit + bonus,
    )


@router.post(
    "/user/{ip}/bonus",
    response_model=LimitOverrideResponse,
    summary="Set the quota bonus for an IP",
)
async def set_user_bonus(
    ip: str,
    data: LimitOverrideUpdate,
    db: Session = Depends(get_db),
) -> LimitOverrideResponse:
    """Create or replace the IP's override; a negative bonus lowers the quota."""
    override = LimitOverrideRepository(db).upsert(ip, data)
    return LimitOverrideResponse(
        ip=override.ip,
        bonus=override.bonus,
        effective_limit=QuotaService(db).base_limit + override.bonus,
        note=override.note,
        updated_at=override.updated_at,
    )


@router.get("/limits", response_model=list[LimitOverrideResponse], summary="List quota overrides")
async def list_limits(db: Session = Depends(get_db)) -> list[LimitOverrideResponse]:
    base_limit = QuotaService(db).base_limit
    return [
        LimitOverrideResponse(
            ip=o.ip,
            bonus=o.bonus,
            effective_limit=base_limit + o.bonus,
            note=o.note,
            updated_at=o.updated_at,
        )
        for o in LimitOverrideRepository(db).get_all()
    ]


@router.delete(
    "/limit/{ip}",
    response_model=LimitOverrideDeleteResponse,
    summary="Remove the quota override for an IP",
    responses={404: {"description": "No override for this IP"}},
)
async def delete_limit(ip: str, db: Session = Depends(get_db)) -> LimitOverrideDeleteResponse:
    if not LimitOverrideRepository(db).delete(ip):
        raise HTTPException(status_code=404, detail="No override for this IP")
    return LimitOverrideDeleteResponse(deleted=True, ip=ip)
