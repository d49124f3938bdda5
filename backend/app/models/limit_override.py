"""Per-IP adjustment of the daily generation quota."""

from sqlalchemy import Column, Integer, String, Text

from app.core.database import Base
from app.models.shared import UTCDateTime, UUIDType, generate_uuid, utc_now


class LimitOverride(Base):
    """LimitOverride model - signed bonus added to the base daily quota for one IP."""

    __tablename__ = "limit_overrides"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    ip = Column(String(64), unique=True, index=True, nullable=False)
    bonus = Column(Integer, nullable=False, default=0)
    note = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now)
