"""Runs one generation against the provider and post-processes the result."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from app.core.config import settings
from app.core.errors import ProviderError
from app.schemas.generation import GenerationMetrics
from app.services.anthropic_client import AnthropicClient
from app.services.completion_processor import calculate_max_tokens, compute_metrics, normalize
from app.services.prompt_builder import build_prompt

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], Awaitable[None] | None]


class TextGenerator:
    """Prompt, provider call and metrics for a single request.

    Every provider call is bounded by ``timeout_seconds``; running out of
    time raises ``ProviderError`` like any other provider failure.
    """

    def __init__(
        self,
        client: AnthropicClient | None = None,
        model: str | None = None,
        temperature: float | None = None,
        timeout_seconds: float | None = None,
    ):
        self.client = client or AnthropicClient()
        self.model = model or settings.GENERATION_MODEL
        self.temperature = (
            settings.GENERATION_TEMPERATURE if temperature is None else temperature
        )
        self.timeout_seconds = timeout_seconds or settings.GENERATION_TIMEOUT_SECONDS

    def _finish(
        self,
        raw_text: str,
        *,
        prompt: str,
        input_tokens: int,
        output_tokens: int,
        started: float,
        stop_reason: str | None,
    ) -> GenerationMetrics:
        if not raw_text.strip():
            raise ProviderError("Malformed response: no text content")

        latency_ms = int((time.monotonic() - started) * 1000)
        final_text = normalize(raw_text)
        metrics = compute_metrics(
            final_text,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            prompt_length=len(prompt),
            latency_ms=latency_ms,
            stop_reason=stop_reason,
        )
        logger.info(
            "Generation finished: raw=%d final=%d plain=%d chars, %d ms, $%.6f, stop=%s",
            len(raw_text),
            metrics.result_length,
            metrics.plain_length,
            metrics.latency_ms,
            metrics.cost_usd,
            metrics.stop_reason,
        )
        return metrics

    async def generate(
        self, topic: str, length: int, keywords: Sequence[str] = ()
    ) -> GenerationMetrics:
        prompt = build_prompt(topic, length, keywords)
        max_tokens = calculate_max_tokens(length)
        logger.info(
            "Generating: topic=%r length=%d keywords=%d max_tokens=%d",
            topic[:80],
            length,
            len(keywords),
            max_tokens,
        )

        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self.client.create_message(
                    model=self.model,
                    prompt=prompt,
                    max_tokens=max_tokens,
                    temperature=self.temperature,
                ),
                timeout=self.timeout_seconds,
            )
        except TimeoutError as e:
            raise ProviderError(
                f"Generation timed out after {self.timeout_seconds:g}s"
            ) from e

        input_tokens, output_tokens = AnthropicClient.extract_usage(response)
        return self._finish(
            AnthropicClient.extract_text(response),
            prompt=prompt,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            started=started,
            stop_reason=response.get("stop_reason"),
        )

    async def generate_stream(
        self,
        topic: str,
        length: int,
        keywords: Sequence[str],
        on_chunk: ChunkCallback,
    ) -> GenerationMetrics:
        """Stream text deltas to ``on_chunk`` and return the final metrics.

        Chunks are the raw provider deltas; the returned metrics carry the
        normalized text that gets persisted.
        """
        prompt = build_prompt(topic, length, keywords)
        max_tokens = calculate_max_tokens(length)
        logger.info(
            "Generating (stream): topic=%r length=%d keywords=%d max_tokens=%d",
            topic[:80],
            length,
            len(keywords),
            max_tokens,
        )

        started = time.monotonic()
        parts: list[str] = []
        usage = {"input_tokens": 0, "output_tokens": 0}
        stop_reason: str | None = None

        try:
            async with asyncio.timeout(self.timeout_seconds):
                async for event in self.client.stream_message(
                    model=self.model,
                    prompt=prompt,
                    max_tokens=max_tokens,
                    temperature=self.temperature,
                ):
                    event_type = event.get("type")
                    if event_type == "message_start":
                        message_usage = (event.get("message") or {}).get("usage") or {}
                        usage["input_tokens"] = int(message_usage.get("input_tokens") or 0)
                    elif event_type == "content_block_delta":
                        delta: dict[str, Any] = event.get("delta") or {}
                        if delta.get("type") == "text_delta" and delta.get("text"):
                            parts.append(delta["text"])
                            outcome = on_chunk(delta["text"])
                            if outcome is not None:
                                await outcome
                    elif event_type == "message_delta":
                        stop_reason = (event.get("delta") or {}).get("stop_reason") or stop_reason
                        delta_usage = event.get("usage") or {}
                        if delta_usage.get("output_tokens") is not None:
                            usage["output_tokens"] = int(delta_usage["output_tokens"])
        except TimeoutError as e:
            raise ProviderError(
                f"Generation timed out after {self.timeout_seconds:g}s"
            ) from e

        return self._finish(
            "".join(parts),
            prompt=prompt,
            input_tokens=usage["input_tokens"],
            output_tokens=usage["output_tokens"],
            started=started,
            stop_reason=stop_reason,
        )

    async def close(self) -> None:
        await self.client.close()


_generator: TextGenerator | None = None


def get_text_generator() -> TextGenerator:
    """FastAPI dependency returning the process-wide generator."""
    global _generator
    if _generator is None:
        _generator = TextGenerator()
    return _generator


async def close_text_generator() -> None:
    global _generator
    if _generator is not None:
        await _generator.close()
        _generator = None
