from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import case, distinct
from sqlalchemy import func as sa_func
from sqlalchemy.orm import Session

from app.models.generation import Generation, GenerationStatus


@dataclass
class TokenTotals:
    input_tokens: int
    output_tokens: int
    total_tokens: int


@dataclass
class UserActivity:
    ip: str
    fingerprint: str
    total_generations: int
    completed: int
    errors: int
    total_cost: float
    total_tokens: int
    avg_latency: float
    first_seen: datetime
    last_seen: datetime
    today_count: int


@dataclass
class ActivityRow:
    created_at: datetime
    status: str
    ip: str
    cost_usd: float | None
    latency_ms: int | None
    total_tokens: int | None


class DashboardRepository:
    def __init__(self, db: Session):
        self.db = db

    def count_generations(
        self,
        since: datetime | None = None,
        status: GenerationStatus | None = None,
    ) -> int:
        query = self.db.query(sa_func.count(Generation.id))
        if since is not None:
            query = query.filter(Generation.created_at >= since)
        if status is not None:
            query = query.filter(Generation.status == status.value)
        return query.scalar() or 0

    def sum_cost(self, since: datetime | None = None) -> float:
        query = self.db.query(sa_func.coalesce(sa_func.sum(Generation.cost_usd), 0))
        if since is not None:
            query = query.filter(Generation.created_at >= since)
        return float(query.scalar() or 0)

    def count_unique_ips(self, since: datetime | None = None) -> int:
        query = self.db.query(sa_func.count(distinct(Generation.ip)))
        if since is not None:
            query = query.filter(Generation.created_at >= since)
        return query.scalar() or 0

    def count_unique_fingerprints(self, since: datetime | None = None) -> int:
        query = self.db.query(sa_func.count(distinct(Generation.fingerprint)))
        if since is not None:
            query = query.filter(Generation.created_at >= since)
        return query.scalar() or 0

    def avg_completed_latency(self, since: datetime | None = None) -> float:
        query = self.db.query(sa_func.avg(Generation.latency_ms)).filter(
            Generation.status == GenerationStatus.COMPLETED.value
        )
        if since is not None:
            query = query.filter(Generation.created_at >= since)
        return float(query.scalar() or 0)

    def token_totals(self) -> TokenTotals:
        row = self.db.query(
            sa_func.coalesce(sa_func.sum(Generation.input_tokens), 0),
            sa_func.coalesce(sa_func.sum(Generation.output_tokens), 0),
            sa_func.coalesce(sa_func.sum(Generation.total_tokens), 0),
        ).one()
        return TokenTotals(
            input_tokens=int(row[0] or 0),
            output_tokens=int(row[1] or 0),
            total_tokens=int(row[2] or 0),
        )

    def length_distribution(self) -> list[tuple[int, int]]:
        rows = (
            self.db.query(Generation.length, sa_func.count(Generation.id))
            .group_by(Generation.length)
            .order_by(Generation.length.asc())
            .all()
        )
        return [(int(length), int(count)) for length, count in rows]

    def recent_generations(self, limit: int = 10) -> list[Generation]:
        return (
            self.db.query(Generation)
            .order_by(Generation.created_at.desc())
            .limit(limit)
            .all()
        )

    def _user_search_filter(self, query, search: str | None):  # type: ignore[no-untyped-def]
        if search:
            query = query.filter(
                Generation.ip.contains(search) | Generation.topic.ilike(f"%{search}%")
            )
        return query

    def user_activity(
        self,
        today_start: datetime,
        search: str | None = None,
        skip: int = 0,
        limit: int = 25,
    ) -> list[UserActivity]:
        """Records grouped by (ip, fingerprint), most recently active first."""
        last_seen = sa_func.max(Generation.created_at)
        query = self.db.query(
            Generation.ip,
            Generation.fingerprint,
            sa_func.count(Generation.id),
            sa_func.sum(case((Generation.status == GenerationStatus.COMPLETED.value, 1), else_=0)),
            sa_func.sum(case((Generation.status == GenerationStatus.ERROR.value, 1), else_=0)),
            sa_func.coalesce(sa_func.sum(Generation.cost_usd), 0),
            sa_func.coalesce(sa_func.sum(Generation.total_tokens), 0),
            sa_func.coalesce(sa_func.avg(Generation.latency_ms), 0),
            sa_func.min(Generation.created_at),
            last_seen,
            sa_func.sum(case((Generation.created_at >= today_start, 1), else_=0)),
        )
        query = self._user_search_filter(query, search)
        rows = (
            query.group_by(Generation.ip, Generation.fingerprint)
            .order_by(last_seen.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return [
            UserActivity(
                ip=row[0],
                fingerprint=row[1],
                total_generations=int(row[2] or 0),
                completed=int(row[3] or 0),
                errors=int(row[4] or 0),
                total_cost=float(row[5] or 0),
                total_tokens=int(row[6] or 0),
                avg_latency=float(row[7] or 0),
                first_seen=row[8],
                last_seen=row[9],
                today_count=int(row[10] or 0),
            )
            for row in rows
        ]

    def count_users(self, search: str | None = None) -> int:
        query = self.db.query(sa_func.count(distinct(Generation.ip)))
        return self._user_search_filter(query, search).scalar() or 0

    def activity_since(self, since: datetime) -> list[ActivityRow]:
        """Narrow rows for time-bucketed statistics."""
        rows = (
            self.db.query(
                Generation.created_at,
                Generation.status,
                Generation.ip,
                Generation.cost_usd,
                Generation.latency_ms,
                Generation.total_tokens,
            )
            .filter(Generation.created_at >= since)
            .order_by(Generation.created_at.asc())
            .all()
        )
        return [ActivityRow(*row) for row in rows]
