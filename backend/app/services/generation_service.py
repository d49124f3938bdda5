"""Generation request lifecycle: admission, record keeping, provider call."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core import database
from app.core.errors import (
    STREAM_FAILED_MESSAGE,
    GenerationFailedError,
    PersistenceError,
    QuotaExceededError,
    truncate_error,
)
from app.core.request_context import RequestMeta
from app.models.generation import Generation
from app.repositories.generation_repository import GenerationRepository, GenerationStateError
from app.schemas.generation import GenerateRequest, GenerateResponse, GenerationMetrics
from app.services.quota_service import QuotaService
from app.services.text_generator import TextGenerator

logger = logging.getLogger(__name__)

# Streaming tasks outlive the response that started them; keep references
# until they finish.
_background_tasks: set[asyncio.Task[None]] = set()


def format_event(payload: dict[str, Any]) -> str:
    """Encode one server-sent event line."""
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


class GenerationService:
    """Orchestrates one generation request.

    Every admitted request creates exactly one record in the ``generating``
    state before the provider is called, and updates it exactly once to
    ``completed`` or ``error``.
    """

    def __init__(self, db: Session, generator: TextGenerator):
        self.db = db
        self.generator = generator
        self.generation_repo = GenerationRepository(db)
        self.quota = QuotaService(db)

    def admit(self, data: GenerateRequest, ip: str, meta: RequestMeta) -> Generation:
        """Check the quota and create the ``generating`` record.

        Raises:
            QuotaExceededError: no generations left today; nothing is written.
            PersistenceError: the record could not be created.
        """
        status = self.quota.check_quota(data.fingerprint, ip)
        if not status.allowed:
            logger.info(
                "Quota exceeded for ip=%s fingerprint=%s (limit %d)",
                ip,
                data.fingerprint,
                status.effective_limit,
            )
            raise QuotaExceededError(status.reset_at)

        try:
            return self.generation_repo.create(
                fingerprint=data.fingerprint,
                ip=ip,
                topic=data.topic,
                length=data.length,
                keywords=data.keywords,
                meta=meta,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Could not create generation record: {e}") from e

    async def generate(self, data: GenerateRequest, ip: str, meta: RequestMeta) -> GenerateResponse:
        record = self.admit(data, ip, meta)
        record_id = record.id

        try:
            metrics = await self.generator.generate(data.topic, data.length, data.keywords)
        except Exception as e:
            logger.exception("Generation %s failed", record_id)
            _record_failure(self.db, record_id, e)
            raise GenerationFailedError(record_id) from e

        try:
            self.generation_repo.mark_completed(record_id, metrics)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Could not finalize generation {record_id}: {e}") from e
        except GenerationStateError as e:
            logger.exception("Generation %s could not be completed", record_id)
            raise GenerationFailedError(record_id) from e

        status = self.quota.check_quota(data.fingerprint, ip)
        return GenerateResponse(
            result=metrics.result,
            length=metrics.result_length,
            remaining=status.remaining,
            reset_at=status.reset_at,
        )

    def start_stream(self, record: Generation, data: GenerateRequest) -> AsyncIterator[str]:
        """Run the generation in a background task and return its event stream.

        The task owns its own session and finalizes the record even when the
        consumer of the returned iterator goes away.
        """
        queue: asyncio.Queue[str | None] = asyncio.Queue()
        task = asyncio.create_task(
            _run_stream(self.generator, record.id, record.fingerprint, record.ip, data, queue)
        )
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
        return _drain(queue, record.id)


def _record_failure(db: Session, record_id: UUID, error: BaseException) -> None:
    message = truncate_error(str(error) or error.__class__.__name__)
    try:
        GenerationRepository(db).mark_error(record_id, message)
    except (SQLAlchemyError, GenerationStateError):
        db.rollback()
        logger.exception("Could not mark generation %s as failed", record_id)


async def _run_stream(
    generator: TextGenerator,
    record_id: UUID,
    fingerprint: str,
    ip: str,
    data: GenerateRequest,
    queue: "asyncio.Queue[str | None]",
) -> None:
    async def forward(text: str) -> None:
        queue.put_nowait(format_event({"text": text}))

    db: Session | None = None
    try:
        db = database.new_session()
        try:
            metrics: GenerationMetrics = await generator.generate_stream(
                data.topic, data.length, data.keywords, forward
            )
        except Exception as e:
            logger.exception("Streaming generation %s failed", record_id)
            _record_failure(db, record_id, e)
            queue.put_nowait(format_event({"error": STREAM_FAILED_MESSAGE}))
            return

        try:
            GenerationRepository(db).mark_completed(record_id, metrics)
            status = QuotaService(db).check_quota(fingerprint, ip)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not finalize streamed generation %s", record_id)
            queue.put_nowait(format_event({"error": STREAM_FAILED_MESSAGE}))
            return
        except GenerationStateError:
            logger.exception("Streamed generation %s could not be completed", record_id)
            queue.put_nowait(format_event({"error": STREAM_FAILED_MESSAGE}))
            return

        queue.put_nowait(
            format_event(
                {
                    "done": True,
                    "remaining": status.remaining,
                    "resetAt": status.reset_at.isoformat(),
                }
            )
        )
    except Exception:
        logger.exception("Streaming generation %s aborted", record_id)
        queue.put_nowait(format_event({"error": STREAM_FAILED_MESSAGE}))
    finally:
        if db is not None:
            db.close()
        queue.put_nowait(None)


async def _drain(queue: "asyncio.Queue[str | None]", record_id: UUID) -> AsyncIterator[str]:
    try:
        while True:
            event = await queue.get()
            if event is None:
                break
            yield event
    except (asyncio.CancelledError, GeneratorExit):
        logger.info("Client left stream for generation %s, finishing in background", record_id)
        raise
