import math
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.generation import Generation, GenerationStatus
from app.repositories.generation_repository import GenerationFilters, GenerationRepository
from app.schemas.common import Pagination
from app.schemas.generation import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    DeleteResponse,
    GenerationDetail,
    GenerationListResponse,
    GenerationSummary,
)

router = APIRouter()


@router.get(
    "/generations",
    response_model=GenerationListResponse,
    summary="List generations",
    responses={401: {"description": "Unauthorized – invalid or missing admin token"}},
)
async def list_generations(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=25, ge=1, le=100),
    status: GenerationStatus | None = Query(default=None),
    ip: str | None = Query(default=None),
    fingerprint: str | None = Query(default=None),
    search: str | None = Query(default=None),
    date_from: datetime | None = Query(default=None, alias="dateFrom"),
    date_to: datetime | None = Query(default=None, alias="dateTo"),
    sort_by: str = Query(default="createdAt", alias="sortBy"),
    sort_dir: str = Query(default="desc", alias="sortDir", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
) -> GenerationListResponse:
    """Paginated, filterable listing of generation records."""
    repo = GenerationRepository(db)
    filters = GenerationFilters(
        status=status,
        ip=ip,
        fingerprint=fingerprint,
        search=search,
        date_from=date_from,
        date_to=date_to,
    )
    total = repo.count(filters)
    generations = repo.get_all(
        filters,
        skip=(page - 1) * limit,
        limit=limit,
        order_by=f"{sort_by}:{sort_dir}",
    )
    return GenerationListResponse(
        generations=[GenerationSummary.model_validate(g) for g in generations],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
        ),
    )


@router.get(
    "/generation/{generation_id}",
    response_model=GenerationDetail,
    summary="Get a generation",
    responses={404: {"description": "Generation not found"}},
)
async def get_generation(
    generation_id: UUID,
    db: Session = Depends(get_db),
) -> Generation:
    """Full record, including the generated text."""
    generation = GenerationRepository(db).get_by_id(generation_id)
    if not generation:
        raise HTTPException(status_code=404, detail="Generation not found")
    return generation


@router.delete(
    "/generation/{generation_id}",
    response_model=DeleteResponse,
    summary="Delete a generation",
    responses={404: {"description": "Generation not found"}},
)
async def delete_generation(
    generation_id: UUID,
    db: Session = Depends(get_db),
) -> DeleteResponse:
    if not GenerationRepository(db).delete(generation_id):
        raise HTTPException(status_code=404, detail="Generation not found")
    return DeleteResponse(deleted=True)


@router.delete(
    "/generations/by-status",
    response_model=BulkDeleteResponse,
    summary="Delete all generations in a status",
)
async def delete_generations_by_status(
    status: GenerationStatus = Query(...),
    db: Session = Depends(get_db),
) -> BulkDeleteResponse:
    deleted = GenerationRepository(db).delete_by_status(status)
    return BulkDeleteResponse(deleted=deleted, status=status)


@router.delete(
    "/generations/bulk",
    response_model=BulkDeleteResponse,
    response_model_exclude_none=True,
    summary="Delete generations by id",
)
async def delete_generations_bulk(
    data: BulkDeleteRequest,
    db: Session = Depends(get_db),
) -> BulkDeleteResponse:
    return BulkDeleteResponse(deleted=GenerationRepository(db).delete_by_ids(data.ids))
