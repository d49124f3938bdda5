from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.request_context import get_client_ip, get_request_meta
from app.schemas.generation import (
    GenerateRequest,
    GenerateResponse,
    HealthResponse,
    LimitStatusResponse,
)
from app.services.generation_service import GenerationService
from app.services.quota_service import QuotaService
from app.services.text_generator import TextGenerator, get_text_generator

router = APIRouter()

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post(
    "/generate",
    response_model=GenerateResponse,
    summary="Generate a text",
    responses={
        400: {"description": "Validation error"},
        429: {"description": "Daily generation limit reached"},
        500: {"description": "Generation failed"},
    },
)
async def generate(
    data: GenerateRequest,
    request: Request,
    db: Session = Depends(get_db),
    generator: TextGenerator = Depends(get_text_generator),
) -> GenerateResponse:
    """Generate a text and wait for the full result."""
    service = GenerationService(db, generator)
    return await service.generate(data, get_client_ip(request), get_request_meta(request))


@router.post(
    "/generate/stream",
    summary="Generate a text as a server-sent event stream",
    response_class=StreamingResponse,
    responses={
        400: {"description": "Validation error"},
        429: {"description": "Daily generation limit reached"},
    },
)
async def generate_stream(
    data: GenerateRequest,
    request: Request,
    db: Session = Depends(get_db),
    generator: TextGenerator = Depends(get_text_generator),
) -> StreamingResponse:
    """Stream ``{text}`` chunks, then ``{done, remaining, resetAt}`` or ``{error}``.

    Quota and validation failures are answered as plain JSON before the
    stream opens.
    """
    service = GenerationService(db, generator)
    record = service.admit(data, get_client_ip(request), get_request_meta(request))
    return StreamingResponse(
        service.start_stream(record, data),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )


@router.get(
    "/limit-status",
    response_model=LimitStatusResponse,
    summary="Remaining generations for today",
)
async def limit_status(
    request: Request,
    fingerprint: str = Query(..., min_length=8, max_length=128),
    db: Session = Depends(get_db),
) -> LimitStatusResponse:
    status = QuotaService(db).check_quota(fingerprint, get_client_ip(request))
    return LimitStatusResponse(
        remaining=status.remaining,
        effective_limit=status.effective_limit,
        total=status.effective_limit,
        reset_at=status.reset_at,
    )


@router.get("/health", response_model=HealthResponse, summary="Liveness probe")
async def health() -> HealthResponse:
    return HealthResponse(status="ok", timestamp=datetime.now(UTC))
