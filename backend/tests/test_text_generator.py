"""Tests for TextGenerator."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.errors import ProviderError
from app.services.anthropic_client import AnthropicClient
from app.services.text_generator import TextGenerator
from tests.conftest import SAMPLE_HTML, make_stream, provider_response, stream_events


class TestGenerate:
    @pytest.mark.asyncio
    async def test_generate_returns_metrics(self, generator, provider):
        metrics = await generator.generate("Parzenie kawy", 1000, ["kawa"])

        assert metrics.result == SAMPLE_HTML
        assert metrics.result_length == len(SAMPLE_HTML)
        assert metrics.input_tokens == 1200
        assert metrics.output_tokens == 800
        assert metrics.total_tokens == 2000
        assert metrics.model == "test-model"
        assert metrics.stop_reason == "end_turn"
        assert metrics.latency_ms >= 0
        assert metrics.prompt_length > 0

        kwargs = provider.create_message.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["max_tokens"] == 1000
        assert kwargs["temperature"] == 0.5
        assert "TEMAT: Parzenie kawy" in kwargs["prompt"]
        assert metrics.prompt_length == len(kwargs["prompt"])

    @pytest.mark.asyncio
    async def test_generate_repairs_truncated_output(self, generator, provider):
        provider.create_message.return_value = provider_response(
            "```html\n<h1>Kawa</h1><p>Pierwsze zdanie. Drugie zdanie. Trzecie urwa",
            stop_reason="max_tokens",
        )

        metrics = await generator.generate("Parzenie kawy", 1000)

        assert metrics.result == "<h1>Kawa</h1><p>Pierwsze zdanie. Drugie zdanie.</p>"
        assert metrics.stop_reason == "max_tokens"

    @pytest.mark.asyncio
    async def test_empty_text_is_malformed(self, generator, provider):
        provider.create_message.return_value = provider_response("   ")

        with pytest.raises(ProviderError, match="Malformed"):
            await generator.generate("Parzenie kawy", 1000)

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, generator, provider):
        provider.create_message.side_effect = ProviderError("API error: overloaded", 529)

        with pytest.raises(ProviderError, match="overloaded"):
            await generator.generate("Parzenie kawy", 1000)

    @pytest.mark.asyncio
    async def test_timeout_is_provider_error(self, provider):
        async def slow(**kwargs):
            await asyncio.sleep(1)
            return provider_response()

        provider.create_message = AsyncMock(side_effect=slow)
        generator = TextGenerator(client=provider, model="test-model", timeout_seconds=0.01)

        with pytest.raises(ProviderError, match="timed out"):
            await generator.generate("Parzenie kawy", 1000)


class TestGenerateStream:
    @pytest.mark.asyncio
    async def test_chunks_forwarded_in_order(self, generator, provider):
        provider.stream_message = make_stream(
            stream_events(["<h1>Kawa</h1>", "<p>Dobra ", "kawa.</p>"], input_tokens=900, output_tokens=300)
        )
        chunks: list[str] = []

        metrics = await generator.generate_stream("Parzenie kawy", 1000, [], chunks.append)

        assert chunks == ["<h1>Kawa</h1>", "<p>Dobra ", "kawa.</p>"]
        assert metrics.result == "<h1>Kawa</h1><p>Dobra kawa.</p>"
        assert metrics.input_tokens == 900
        assert metrics.output_tokens == 300
        assert metrics.stop_reason == "end_turn"

    @pytest.mark.asyncio
    async def test_async_callback_is_awaited(self, generator):
        received: list[str] = []

        async def on_chunk(text: str) -> None:
            received.append(text)

        await generator.generate_stream("Parzenie kawy", 1000, [], on_chunk)

        assert received == ["<h1>Kawa</h1>", "<p>Kawa to napój.</p>"]

    @pytest.mark.asyncio
    async def test_stream_error_propagates(self, generator, provider):
        provider.stream_message = make_stream(
            stream_events(["<p>Zaczynamy"])[:3], error=ProviderError("Stream error: Overloaded")
        )
        chunks: list[str] = []

        with pytest.raises(ProviderError, match="Overloaded"):
            await generator.generate_stream("Parzenie kawy", 1000, [], chunks.append)

        assert chunks == ["<p>Zaczynamy"]

    @pytest.mark.asyncio
    async def test_stream_without_text_is_malformed(self, generator, provider):
        provider.stream_message = make_stream(stream_events([]))

        with pytest.raises(ProviderError, match="Malformed"):
            await generator.generate_stream("Parzenie kawy", 1000, [], lambda text: None)

    @pytest.mark.asyncio
    async def test_stream_timeout(self):
        async def slow_stream(**kwargs):
            yield {"type": "message_start", "message": {"usage": {"input_tokens": 1}}}
            await asyncio.sleep(1)
            yield {"type": "message_stop"}

        client = MagicMock(spec=AnthropicClient)
        client.stream_message = slow_stream
        generator = TextGenerator(client=client, model="test-model", timeout_seconds=0.01)

        with pytest.raises(ProviderError, match="timed out"):
            await generator.generate_stream("Parzenie kawy", 1000, [], lambda text: None)


class TestClose:
    @pytest.mark.asyncio
    async def test_close_closes_client(self, generator, provider):
        await generator.close()
        provider.close.assert_awaited_once()
