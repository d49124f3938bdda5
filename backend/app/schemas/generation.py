from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, field_validator

from app.core.config import settings
from app.models.generation import GenerationStatus
from app.schemas.common import CamelModel, Pagination

MAX_KEYWORDS = 5
MAX_KEYWORD_LENGTH = 60

Keyword = Annotated[str, Field(max_length=MAX_KEYWORD_LENGTH)]


class GenerateRequest(BaseModel):
    topic: str = Field(..., min_length=3, max_length=500)
    length: int
    keywords: list[Keyword] = Field(default_factory=list, max_length=MAX_KEYWORDS)
    fingerprint: str = Field(
        ...,
        min_length=8,
        max_length=128,
        validation_alias=AliasChoices("fingerprint", "identity"),
    )

    @field_validator("length")
    @classmethod
    def validate_length(cls, v: int) -> int:
        if v not in settings.ALLOWED_LENGTHS:
            allowed = ", ".join(str(n) for n in settings.ALLOWED_LENGTHS)
            raise ValueError(f"length must be one of: {allowed}")
        return v


class GenerateResponse(CamelModel):
    success: bool = True
    result: str
    length: int
    remaining: int
    reset_at: datetime


class LimitStatusResponse(CamelModel):
    remaining: int
    effective_limit: int
    total: int
    reset_at: datetime


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime


class GenerationSummary(CamelModel):
    """Listing view of a record; omits the result text."""

    id: UUID
    ip: str
    fingerprint: str
    topic: str
    length: int
    keywords: list[str] | None = None
    status: GenerationStatus
    result_length: int | None = None
    plain_length: int | None = None
    model: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None
    cost_usd: float | None = None
    latency_ms: int | None = None
    stop_reason: str | None = None
    user_agent: str | None = None
    referer: str | None = None
    accept_lang: str | None = None
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class GenerationDetail(GenerationSummary):
    result: str | None = None
    prompt_length: int | None = None


class GenerationListResponse(CamelModel):
    generations: list[GenerationSummary]
    pagination: Pagination


class BulkDeleteRequest(BaseModel):
    ids: list[UUID] = Field(..., max_length=1000)


class DeleteResponse(CamelModel):
    deleted: bool


class BulkDeleteResponse(CamelModel):
    deleted: int
    status: GenerationStatus | None = None


class GenerationMetrics(BaseModel):
    """Normalized output and provider accounting for one completed generation."""

    result: str
    result_length: int = Field(..., ge=0)
    plain_length: int = Field(..., ge=0)
    model: str
    input_tokens: int = Field(..., ge=0)
    output_tokens: int = Field(..., ge=0)
    total_tokens: int = Field(..., ge=0)
    cost_usd: float = Field(..., ge=0.0)
    latency_ms: int = Field(..., ge=0)
    stop_reason: str
    prompt_length: int = Field(..., ge=0)
