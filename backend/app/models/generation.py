"""Generation model: the audit row for one text generation attempt."""

from enum import Enum

from sqlalchemy import JSON, Column, Float, Index, Integer, String, Text

from app.core.database import Base
from app.models.shared import UTCDateTime, UUIDType, generate_uuid, utc_now


class GenerationStatus(str, Enum):
    """Lifecycle of a generation record.

    Records are created as GENERATING and move exactly once to a terminal
    state.
    """

    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not GenerationStatus.GENERATING


class Generation(Base):
    """Generation model - one row per admitted generation request."""

    __tablename__ = "generations"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)

    # Identity
    fingerprint = Column(String(128), nullable=False)
    ip = Column(String(64), nullable=False)

    # Request parameters
    topic = Column(String(500), nullable=False)
    length = Column(Integer, nullable=False)
    keywords = Column(JSON, nullable=True)

    status = Column(String(20), nullable=False, default=GenerationStatus.GENERATING.value)

    # Output
    result = Column(Text, nullable=True)
    result_length = Column(Integer, nullable=True)
    plain_length = Column(Integer, nullable=True)

    # Provider metrics
    model = Column(String(100), nullable=True)
    input_tokens = Column(Integer, nullable=True)
    output_tokens = Column(Integer, nullable=True)
    total_tokens = Column(Integer, nullable=True)
    cost_usd = Column(Float, nullable=True)
    latency_ms = Column(Integer, nullable=True)
    stop_reason = Column(String(50), nullable=True)
    prompt_length = Column(Integer, nullable=True)

    # Request context
    user_agent = Column(String(500), nullable=True)
    referer = Column(String(500), nullable=True)
    accept_lang = Column(String(200), nullable=True)

    error_message = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    completed_at = Column(UTCDateTime, nullable=True)

    __table_args__ = (
        Index("ix_generations_fingerprint_created_at", "fingerprint", "created_at"),
        Index("ix_generations_ip_created_at", "ip", "created_at"),
        Index("ix_generations_status", "status"),
        Index("ix_generations_created_at", "created_at"),
    )
