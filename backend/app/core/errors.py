"""Error taxonomy for the generation gateway and its JSON renderings."""

import logging
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

QUOTA_EXCEEDED_MESSAGE = "Wykorzystano dzienny limit generacji"
GENERATION_FAILED_MESSAGE = "Błąd generowania tekstu. Spróbuj ponownie."
STREAM_FAILED_MESSAGE = "Błąd generowania tekstu"
VALIDATION_FAILED_MESSAGE = "Błąd walidacji"
INTERNAL_ERROR_MESSAGE = "Internal server error"

MAX_ERROR_MESSAGE_LENGTH = 1000


class QuotaExceededError(Exception):
    """Admission denied: the identity or IP has used up its daily quota."""

    def __init__(self, reset_at: datetime):
        super().__init__(QUOTA_EXCEEDED_MESSAGE)
        self.reset_at = reset_at


class ProviderError(Exception):
    """The generation provider failed, timed out, or returned unusable output."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GenerationFailedError(Exception):
    """A generation attempt ended in the error state.

    Carries the record id for logging; the caller only ever sees the
    generic message.
    """

    def __init__(self, record_id: object):
        super().__init__(GENERATION_FAILED_MESSAGE)
        self.record_id = record_id


class PersistenceError(Exception):
    """The record store could not be written."""


def truncate_error(message: str, limit: int = MAX_ERROR_MESSAGE_LENGTH) -> str:
    return message[:limit]


def _format_validation_error(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    message = str(error.get("msg", "Invalid value"))
    return f"{location}: {message}" if location else message


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": VALIDATION_FAILED_MESSAGE,
            "details": [_format_validation_error(e) for e in exc.errors()],
        },
    )


async def _quota_exceeded_handler(request: Request, exc: QuotaExceededError) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "error": QUOTA_EXCEEDED_MESSAGE,
            "remaining": 0,
            "resetAt": exc.reset_at.isoformat(),
        },
    )


async def _generation_failed_handler(request: Request, exc: GenerationFailedError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": GENERATION_FAILED_MESSAGE})


async def _persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("Record store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR_MESSAGE})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(QuotaExceededError, _quota_exceeded_handler)  # type: ignore[arg-type]
    app.add_exception_handler(GenerationFailedError, _generation_failed_handler)  # type: ignore[arg-type]
    app.add_exception_handler(PersistenceError, _persistence_error_handler)  # type: ignore[arg-type]
