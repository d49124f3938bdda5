"""Limit override repository for data access."""

from sqlalchemy.orm import Session

from app.models.limit_override import LimitOverride
from app.models.shared import utc_now
from app.schemas.limit_override import LimitOverrideUpdate


class LimitOverrideRepository:
    """Repository for LimitOverride model."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_ip(self, ip: str) -> LimitOverride | None:
        """Get the override for an IP, if any."""
        return self.db.query(LimitOverride).filter(LimitOverride.ip == ip).first()

    def get_all(self) -> list[LimitOverride]:
        """All overrides, most recently changed first."""
        return self.db.query(LimitOverride).order_by(LimitOverride.updated_at.desc()).all()

    def upsert(self, ip: str, data: LimitOverrideUpdate) -> LimitOverride:
        """Create or replace the override for an IP."""
        existing = self.get_by_ip(ip)
        if existing:
            existing.bonus = data.bonus  # type: ignore[assignment]
            existing.note = data.note or None  # type: ignore[assignment]
            existing.updated_at = utc_now()  # type: ignore[assignment]
            self.db.commit()
            self.db.refresh(existing)
            return existing

        override = LimitOverride(ip=ip, bonus=data.bonus, note=data.note or None)
        self.db.add(override)
        self.db.commit()
        self.db.refresh(override)
        return override

    def delete(self, ip: str) -> bool:
        """Delete the override for an IP, reverting it to the base quota."""
        override = self.get_by_ip(ip)
        if not override:
            return False
        self.db.delete(override)
        self.db.commit()
        return True
