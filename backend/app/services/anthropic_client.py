"""Async HTTP client for the Anthropic Messages API."""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from app.core.config import settings
from app.core.errors import ProviderError

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_SECONDS = 10.0


class AnthropicClient:
    """Thin wrapper over ``httpx.AsyncClient`` for ``/messages``.

    The underlying HTTP client is created lazily and reused across calls.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
    ):
        self.api_key = api_key or settings.ANTHROPIC_API_KEY
        self.base_url = base_url or settings.ANTHROPIC_BASE_URL
        self.timeout_seconds = timeout_seconds or settings.GENERATION_TIMEOUT_SECONDS
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "x-api-key": self.api_key,
                    "anthropic-version": settings.ANTHROPIC_VERSION,
                    "content-type": "application/json",
                },
                timeout=httpx.Timeout(self.timeout_seconds, connect=CONNECT_TIMEOUT_SECONDS),
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    @staticmethod
    def _payload(
        model: str,
        prompt: str,
        max_tokens: int,
        temperature: float,
        stream: bool = False,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if stream:
            payload["stream"] = True
        return payload

    async def create_message(
        self,
        *,
        model: str,
        prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        """Send a single-turn message and return the decoded response body."""
        client = await self._get_client()
        try:
            response = await client.post(
                "/messages",
                json=self._payload(model, prompt, max_tokens, temperature),
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"API error: {e.response.text}", e.response.status_code
            ) from e
        except httpx.TimeoutException as e:
            raise ProviderError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            raise ProviderError(f"Request failed: {e}") from e
        except ValueError as e:
            raise ProviderError(f"Malformed response: {e}") from e

        if not isinstance(body, dict):
            raise ProviderError("Malformed response: expected a JSON object")
        return body

    async def stream_message(
        self,
        *,
        model: str,
        prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield decoded server-sent events of a streamed message.

        Non-``data:`` lines and undecodable payloads are skipped. An
        ``error`` event raises ``ProviderError``.
        """
        client = await self._get_client()
        payload = self._payload(model, prompt, max_tokens, temperature, stream=True)
        try:
            async with client.stream("POST", "/messages", json=payload) as response:
                if response.status_code >= 400:
                    await response.aread()
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.startswith("data: "):
                        continue
                    try:
                        event = json.loads(line[6:])
                    except json.JSONDecodeError:
                        logger.debug("Skipping undecodable stream line: %s", line[:200])
                        continue
                    if not isinstance(event, dict):
                        continue
                    if event.get("type") == "error":
                        error = event.get("error") or {}
                        raise ProviderError(
                            f"Stream error: {error.get('message', 'unknown error')}"
                        )
                    yield event
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"API error: {e.response.text}", e.response.status_code
            ) from e
        except httpx.TimeoutException as e:
            raise ProviderError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            raise ProviderError(f"Request failed: {e}") from e

    @staticmethod
    def extract_text(response: dict[str, Any]) -> str:
        blocks = response.get("content") or []
        return "".join(
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        )

    @staticmethod
    def extract_usage(response: dict[str, Any]) -> tuple[int, int]:
        usage = response.get("usage") or {}
        return int(usage.get("input_tokens") or 0), int(usage.get("output_tokens") or 0)
