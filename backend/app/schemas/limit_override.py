from datetime import datetime

from pydantic import Field

from app.schemas.common import CamelModel

MIN_BONUS = -1000
MAX_BONUS = 1_000_000


class LimitOverrideUpdate(CamelModel):
    bonus: int = Field(..., ge=MIN_BONUS, le=MAX_BONUS)
    note: str | None = Field(default=None, max_length=1000)


class LimitOverrideResponse(CamelModel):
    ip: str
    bonus: int
    effective_limit: int
    note: str | None = None
    updated_at: datetime | None = None


class LimitOverrideDeleteResponse(CamelModel):
    deleted: bool
    ip: str
