"""Repository for Generation records (the audit log of generation attempts)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import func as sa_func
from sqlalchemy.orm import Query, Session

from app.core.request_context import RequestMeta
from app.core.sorting import apply_order_by
from app.models.generation import Generation, GenerationStatus
from app.models.shared import utc_now
from app.schemas.generation import GenerationMetrics

SORTABLE_FIELDS = {
    "createdAt": "created_at",
    "latencyMs": "latency_ms",
    "costUsd": "cost_usd",
    "resultLength": "result_length",
    "length": "length",
    "totalTokens": "total_tokens",
}


class GenerationStateError(ValueError):
    """The record is missing or has already left the GENERATING state."""


@dataclass
class GenerationFilters:
    status: GenerationStatus | None = None
    ip: str | None = None
    fingerprint: str | None = None
    search: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


@dataclass
class IpAggregate:
    count: int
    total_cost: float
    avg_cost: float
    total_tokens: int
    avg_latency: float


class GenerationRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        fingerprint: str,
        ip: str,
        topic: str,
        length: int,
        keywords: list[str],
        meta: RequestMeta,
    ) -> Generation:
        """Insert a record in the GENERATING state."""
        generation = Generation(
            fingerprint=fingerprint,
            ip=ip,
            topic=topic,
            length=length,
            keywords=list(keywords) if keywords else None,
            status=GenerationStatus.GENERATING.value,
            user_agent=meta.user_agent,
            referer=meta.referer,
            accept_lang=meta.accept_lang,
        )
        self.db.add(generation)
        self.db.commit()
        self.db.refresh(generation)
        return generation

    def get_by_id(self, generation_id: UUID) -> Generation | None:
        return self.db.query(Generation).filter(Generation.id == generation_id).first()

    def _get_generating(self, generation_id: UUID) -> Generation:
        generation = self.get_by_id(generation_id)
        if generation is None:
            raise GenerationStateError(f"Generation {generation_id} not found")
        status = GenerationStatus(generation.status)
        if status.is_terminal:
            raise GenerationStateError(f"Generation {generation_id} is already {status.value}")
        return generation

    def mark_completed(self, generation_id: UUID, metrics: GenerationMetrics) -> Generation:
        """Move a GENERATING record to COMPLETED with its output and metrics."""
        generation = self._get_generating(generation_id)
        for field, value in metrics.model_dump().items():
            setattr(generation, field, value)
        generation.status = GenerationStatus.COMPLETED.value  # type: ignore[assignment]
        generation.completed_at = utc_now()  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(generation)
        return generation

    def mark_error(self, generation_id: UUID, error_message: str) -> Generation:
        """Move a GENERATING record to ERROR."""
        generation = self._get_generating(generation_id)
        generation.status = GenerationStatus.ERROR.value  # type: ignore[assignment]
        generation.error_message = error_message  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(generation)
        return generation

    def count_since(
        self,
        since: datetime,
        *,
        fingerprint: str | None = None,
        ip: str | None = None,
    ) -> int:
        """Count records of any status created at or after ``since``."""
        query = self.db.query(sa_func.count(Generation.id)).filter(Generation.created_at >= since)
        if fingerprint is not None:
            query = query.filter(Generation.fingerprint == fingerprint)
        if ip is not None:
            query = query.filter(Generation.ip == ip)
        return query.scalar() or 0

    def _filtered(self, query: Query, filters: GenerationFilters) -> Query:  # type: ignore[type-arg]
        if filters.status is not None:
            query = query.filter(Generation.status == filters.status.value)
        if filters.ip:
            query = query.filter(Generation.ip == filters.ip)
        if filters.fingerprint:
            query = query.filter(Generation.fingerprint == filters.fingerprint)
        if filters.search:
            query = query.filter(Generation.topic.ilike(f"%{filters.search}%"))
        if filters.date_from is not None:
            query = query.filter(Generation.created_at >= filters.date_from)
        if filters.date_to is not None:
            query = query.filter(Generation.created_at <= filters.date_to)
        return query

    def get_all(
        self,
        filters: GenerationFilters | None = None,
        skip: int = 0,
        limit: int = 25,
        order_by: str | None = None,
    ) -> list[Generation]:
        query = self._filtered(self.db.query(Generation), filters or GenerationFilters())
        query = apply_order_by(query, Generation, order_by, SORTABLE_FIELDS)
        return query.offset(skip).limit(limit).all()

    def count(self, filters: GenerationFilters | None = None) -> int:
        query = self.db.query(sa_func.count(Generation.id))
        return self._filtered(query, filters or GenerationFilters()).scalar() or 0

    def get_by_ip(self, ip: str, limit: int = 100) -> list[Generation]:
        return (
            self.db.query(Generation)
            .filter(Generation.ip == ip)
            .order_by(Generation.created_at.desc())
            .limit(limit)
            .all()
        )

    def aggregate_for_ip(self, ip: str) -> IpAggregate:
        row = (
            self.db.query(
                sa_func.count(Generation.id),
                sa_func.coalesce(sa_func.sum(Generation.cost_usd), 0),
                sa_func.coalesce(sa_func.avg(Generation.cost_usd), 0),
                sa_func.coalesce(sa_func.sum(Generation.total_tokens), 0),
                sa_func.coalesce(sa_func.avg(Generation.latency_ms), 0),
            )
            .filter(Generation.ip == ip)
            .one()
        )
        return IpAggregate(
            count=int(row[0] or 0),
            total_cost=float(row[1] or 0),
            avg_cost=float(row[2] or 0),
            total_tokens=int(row[3] or 0),
            avg_latency=float(row[4] or 0),
        )

    def delete(self, generation_id: UUID) -> bool:
        generation = self.get_by_id(generation_id)
        if not generation:
            return False
        self.db.delete(generation)
        self.db.commit()
        return True

    def delete_by_status(self, status: GenerationStatus) -> int:
        deleted = (
            self.db.query(Generation)
            .filter(Generation.status == status.value)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return int(deleted)

    def delete_by_ids(self, generation_ids: list[UUID]) -> int:
        if not generation_ids:
            return 0
        deleted = (
            self.db.query(Generation)
            .filter(Generation.id.in_(generation_ids))
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return int(deleted)
