"""Daily generation quota per client identity and IP."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.repositories.generation_repository import GenerationRepository
from app.repositories.limit_override_repository import LimitOverrideRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotaStatus:
    allowed: bool
    remaining: int
    effective_limit: int
    bonus: int
    reset_at: datetime


def local_midnight(day: date) -> datetime:
    """Start of ``day`` on the local clock, with the offset in force at that instant."""
    return datetime.combine(day, time.min).astimezone()


def day_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Return (local midnight today, local midnight tomorrow) as aware datetimes."""
    today = (now or datetime.now()).astimezone().date()
    return local_midnight(today), local_midnight(today + timedelta(days=1))


class QuotaService:
    """Answers whether a request may proceed and how many generations remain.

    Usage is recomputed from the record store on every call; nothing is
    cached. Both the fingerprint and the IP are counted and the larger count
    is used, so clearing one identifier does not reset the quota.
    """

    def __init__(self, db: Session, base_limit: int | None = None):
        self.db = db
        self.base_limit = settings.DAILY_LIMIT if base_limit is None else base_limit
        self.generation_repo = GenerationRepository(db)
        self.override_repo = LimitOverrideRepository(db)

    def get_bonus(self, ip: str) -> int:
        """Bonus for an IP; a failed lookup counts as no override."""
        try:
            override = self.override_repo.get_by_ip(ip)
        except SQLAlchemyError:
            logger.warning("Limit override lookup failed for %s, using base quota", ip, exc_info=True)
            self.db.rollback()
            return 0
        return int(override.bonus) if override else 0

    def effective_limit(self, ip: str) -> int:
        return self.base_limit + self.get_bonus(ip)

    def check_quota(self, fingerprint: str, ip: str, now: datetime | None = None) -> QuotaStatus:
        start_of_day, reset_at = day_window(now)

        fingerprint_count = self.generation_repo.count_since(start_of_day, fingerprint=fingerprint)
        ip_count = self.generation_repo.count_since(start_of_day, ip=ip)
        bonus = self.get_bonus(ip)

        effective_limit = self.base_limit + bonus
        used = max(fingerprint_count, ip_count)

        return QuotaStatus(
            allowed=used < effective_limit,
            remaining=max(0, effective_limit - used),
            effective_limit=effective_limit,
            bonus=bonus,
            reset_at=reset_at,
        )
