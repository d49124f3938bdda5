"""Tests for output cleanup, ending repair and metrics."""

import pytest

from app.services.completion_processor import (
    CLOSING_TAGS,
    calculate_cost,
    calculate_max_tokens,
    compute_metrics,
    ensure_proper_ending,
    normalize,
    strip_code_fences,
    strip_tags,
)


class TestStripCodeFences:
    def test_html_fence(self):
        assert strip_code_fences("```html\n<p>Tekst.</p>\n```") == "<p>Tekst.</p>"

    def test_plain_fence(self):
        assert strip_code_fences("```\n<p>Tekst.</p>```") == "<p>Tekst.</p>"

    def test_no_fence(self):
        assert strip_code_fences("  <p>Tekst.</p>\n") == "<p>Tekst.</p>"


class TestEnsureProperEnding:
    @pytest.mark.parametrize("tag", CLOSING_TAGS)
    def test_well_formed_is_unchanged(self, tag):
        text = f"<h1>Tytuł</h1><p>Zdanie.{tag}"
        assert ensure_proper_ending(text) == text

    def test_idempotent(self):
        once = ensure_proper_ending("<p>Pierwsze zdanie. Drugie zdanie urwane w poł")
        assert ensure_proper_ending(once) == once

    def test_trailing_whitespace_trimmed(self):
        assert ensure_proper_ending("<p>Zdanie.</p>\n\n  ") == "<p>Zdanie.</p>"

    def test_truncated_sentence_cut_at_last_terminator(self):
        text = "<p>Pierwsze pełne zdanie tutaj. Drugie pełne zdanie też! A to urwa"
        assert ensure_proper_ending(text) == (
            "<p>Pierwsze pełne zdanie tutaj. Drugie pełne zdanie też!</p>"
        )

    def test_dangling_tag_dropped(self):
        text = "<p>Pierwsze pełne zdanie tutaj. Drugie pełne zdanie też.</p><h2"
        assert ensure_proper_ending(text) == (
            "<p>Pierwsze pełne zdanie tutaj. Drugie pełne zdanie też.</p>"
        )

    def test_dangling_closing_tag_fragment(self):
        text = "<p>Pierwsze pełne zdanie tutaj. Drugie pełne zdanie też.</"
        assert ensure_proper_ending(text) == (
            "<p>Pierwsze pełne zdanie tutaj. Drugie pełne zdanie też.</p>"
        )

    def test_terminator_before_midpoint_keeps_tail(self):
        text = "<p>Krótko. a potem bardzo długi ogon bez żadnej kropki na końcu"
        assert ensure_proper_ending(text) == text + "</p>"

    def test_terminator_inside_tag_is_ignored(self):
        text = "<p>Pierwsze pełne zdanie tutaj i dalej. Drugie <a href=x.y>link"
        assert ensure_proper_ending(text) == "<p>Pierwsze pełne zdanie tutaj i dalej.</p>"

    def test_no_terminator_force_closes(self):
        assert ensure_proper_ending("<p>bez interpunkcji") == "<p>bez interpunkcji</p>"

    def test_output_never_has_dangling_tag(self):
        text = "<h1>Tytuł</h1><p>Zdanie pierwsze. Zdanie drugie. Trzecie <str"
        result = ensure_proper_ending(text)
        assert result.endswith(CLOSING_TAGS)
        assert result.rfind("<") < result.rfind(">")


class TestNormalize:
    def test_fenced_truncated_output(self):
        raw = "```html\n<h1>Kawa</h1><p>Kawa jest dobra. Pijemy ją rano. I wieczor"
        assert normalize(raw) == "<h1>Kawa</h1><p>Kawa jest dobra. Pijemy ją rano.</p>"


class TestMaxTokens:
    @pytest.mark.parametrize(
        ("target", "expected"),
        [(1000, 1000), (2000, 1668), (3000, 2500), (10000, 8192), (100, 1000)],
    )
    def test_budget(self, target, expected):
        assert calculate_max_tokens(target) == expected


class TestCost:
    def test_explicit_prices(self):
        assert calculate_cost(1_000_000, 1_000_000, 1.0, 5.0) == pytest.approx(6.0)

    def test_default_prices(self):
        # 1200 * 0.8 + 800 * 4.0 = 4160 micro-dollars
        assert calculate_cost(1200, 800) == pytest.approx(0.00416)

    def test_zero_tokens(self):
        assert calculate_cost(0, 0) == 0

    @pytest.mark.parametrize("input_tokens,output_tokens", [(0, 0), (1200, 800), (50_000, 1)])
    def test_increases_with_input_tokens(self, input_tokens, output_tokens):
        assert calculate_cost(input_tokens + 1, output_tokens) > calculate_cost(input_tokens, output_tokens)

    @pytest.mark.parametrize("input_tokens,output_tokens", [(0, 0), (1200, 800), (1, 50_000)])
    def test_increases_with_output_tokens(self, input_tokens, output_tokens):
        assert calculate_cost(input_tokens, output_tokens + 1) > calculate_cost(input_tokens, output_tokens)


class TestComputeMetrics:
    def test_metrics(self):
        final = "<h1>Kawa</h1><p>Dobra.</p>"
        metrics = compute_metrics(
            final,
            model="test-model",
            input_tokens=1200,
            output_tokens=800,
            prompt_length=4000,
            latency_ms=1500,
            stop_reason="end_turn",
        )

        assert metrics.result == final
        assert metrics.result_length == len(final)
        assert metrics.plain_length == len("KawaDobra.")
        assert metrics.total_tokens == 2000
        assert metrics.cost_usd == pytest.approx(0.00416)
        assert metrics.stop_reason == "end_turn"
        assert metrics.prompt_length == 4000

    def test_missing_stop_reason(self):
        metrics = compute_metrics(
            "<p>x</p>",
            model="m",
            input_tokens=1,
            output_tokens=1,
            prompt_length=1,
            latency_ms=1,
            stop_reason=None,
        )
        assert metrics.stop_reason == "unknown"

    def test_strip_tags(self):
        assert strip_tags("<p>Ala <strong>ma</strong> kota</p>") == "Ala ma kota"
