"""Post-processing of provider output: cleanup, ending repair and metrics."""

import math
import re

from app.core.config import settings
from app.schemas.generation import GenerationMetrics

CLOSING_TAGS = ("</p>", "</ul>", "</ol>", "</table>", "</li>", "</h1>", "</h2>", "</h3>")
FALLBACK_CLOSING_TAG = "</p>"
SENTENCE_TERMINATORS = (".", "!", "?")

# A truncated text is cut back to its last sentence end only when that end
# lies past this fraction of the text; otherwise the tail is kept as is.
TRUNCATION_MIDPOINT = 0.5

MIN_MAX_TOKENS = 1000
MAX_MAX_TOKENS = 8192
CHARS_PER_TOKEN = 3
TOKEN_MARGIN = 2.5

_CODE_FENCE_LANG_RE = re.compile(r"```html?\s*")
_CODE_FENCE_RE = re.compile(r"```\s*")
_TAG_RE = re.compile(r"<[^>]*>")


def strip_code_fences(text: str) -> str:
    text = _CODE_FENCE_LANG_RE.sub("", text)
    return _CODE_FENCE_RE.sub("", text).strip()


def strip_tags(text: str) -> str:
    return _TAG_RE.sub("", text)


def _ends_with_closing_tag(text: str) -> bool:
    return text.endswith(CLOSING_TAGS)


def _last_sentence_end(text: str) -> int:
    """Index of the last sentence terminator outside any tag, or -1."""
    prose = _TAG_RE.sub(lambda m: " " * len(m.group()), text)
    return max(prose.rfind(mark) for mark in SENTENCE_TERMINATORS)


def ensure_proper_ending(content: str) -> str:
    """Make sure markup never ends on an unterminated fragment.

    Text already ending with a known closing tag is returned unchanged
    (after trimming trailing whitespace). Otherwise a dangling partial tag
    is dropped, the text is cut back to its last complete sentence when
    that sentence ends past ``TRUNCATION_MIDPOINT``, and a closing tag is
    appended if none remains.
    """
    fixed = content.rstrip()

    last_open = fixed.rfind("<")
    if last_open > fixed.rfind(">"):
        fixed = fixed[:last_open].rstrip()

    if _ends_with_closing_tag(fixed):
        return fixed

    last_terminator = _last_sentence_end(fixed)
    if last_terminator > len(fixed) * TRUNCATION_MIDPOINT:
        fixed = fixed[: last_terminator + 1]

    if not _ends_with_closing_tag(fixed):
        fixed += FALLBACK_CLOSING_TAG

    return fixed


def normalize(raw_text: str) -> str:
    """Clean provider output into final markup."""
    return ensure_proper_ending(strip_code_fences(raw_text))


def calculate_max_tokens(target_length: int) -> int:
    """Output token budget, generous so repair runs before hard truncation."""
    base_tokens = math.ceil(target_length / CHARS_PER_TOKEN)
    with_margin = math.ceil(base_tokens * TOKEN_MARGIN)
    return max(MIN_MAX_TOKENS, min(MAX_MAX_TOKENS, with_margin))


def calculate_cost(
    input_tokens: int,
    output_tokens: int,
    price_input_per_million: float | None = None,
    price_output_per_million: float | None = None,
) -> float:
    """Cost in USD for one provider call."""
    price_in = (
        settings.PRICE_INPUT_PER_MILLION
        if price_input_per_million is None
        else price_input_per_million
    )
    price_out = (
        settings.PRICE_OUTPUT_PER_MILLION
        if price_output_per_million is None
        else price_output_per_million
    )
    return (input_tokens * price_in + output_tokens * price_out) / 1_000_000


def compute_metrics(
    final_text: str,
    *,
    model: str,
    input_tokens: int,
    output_tokens: int,
    prompt_length: int,
    latency_ms: int,
    stop_reason: str | None,
) -> GenerationMetrics:
    return GenerationMetrics(
        result=final_text,
        result_length=len(final_text),
        plain_length=len(strip_tags(final_text)),
        model=model,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=input_tokens + output_tokens,
        cost_usd=calculate_cost(input_tokens, output_tokens),
        latency_ms=latency_ms,
        stop_reason=stop_reason or "unknown",
        prompt_length=prompt_length,
    )
