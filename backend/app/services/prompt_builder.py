"""Builds the generation instruction for a copywriting request.

Everything here is a pure function of (topic, target length, keywords):
no randomness, no clock, no settings lookups.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass

from app.services.prompt_examples import LONG, MEDIUM, SEPARATOR, SHORT, LengthExample

CHARS_PER_WORD = 6.5
WORDS_PER_PARAGRAPH = 80
MIN_PARAGRAPHS = 3

# Upper bounds (inclusive) of the short and medium tiers.
SHORT_TIER_MAX = 1200
MEDIUM_TIER_MAX = 2200

# Acceptable output band, in percent of the target length.
LENGTH_BAND_MIN_PERCENT = 85
LENGTH_BAND_MAX_PERCENT = 110

ALLOWED_TAGS = ("h1", "h2", "h3", "p", "strong", "em", "ul", "li", "ol")


@dataclass(frozen=True)
class Structure:
    words: int
    paragraphs: int
    sections: int


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def calculate_structure(target_length: int) -> Structure:
    words = _round_half_up(target_length / CHARS_PER_WORD)
    paragraphs = max(MIN_PARAGRAPHS, _round_half_up(words / WORDS_PER_PARAGRAPH))
    if target_length <= SHORT_TIER_MAX:
        sections = 2
    elif target_length <= MEDIUM_TIER_MAX:
        sections = 3
    else:
        sections = 4
    return Structure(words=words, paragraphs=paragraphs, sections=sections)


def length_band(target_length: int) -> tuple[int, int]:
    """Acceptable output length as (min_chars, max_chars)."""
    return (
        target_length * LENGTH_BAND_MIN_PERCENT // 100,
        target_length * LENGTH_BAND_MAX_PERCENT // 100,
    )


def select_length_example(target_length: int) -> LengthExample:
    if target_length <= SHORT_TIER_MAX:
        return SHORT
    if target_length <= MEDIUM_TIER_MAX:
        return MEDIUM
    return LONG


def build_length_example(target_length: int) -> str:
    example = select_length_example(target_length)
    approx = example.approx_chars
    return (
        f"WZORZEC DŁUGOŚCI (~{approx} znaków) — Twój tekst musi mieć PODOBNĄ długość "
        "do poniższego:\n"
        f"{SEPARATOR}\n"
        f"{example.text}\n"
        f"{SEPARATOR}\n"
        f"Powyższy wzorzec ma ~{approx} znaków. Napisz tekst O TAKIEJ SAMEJ DŁUGOŚCI "
        "na podany temat.\n"
        f"{example.structure_hint}"
    )


def build_seo_instructions(keywords: Sequence[str]) -> str:
    if not keywords:
        return ""
    listed = "\n".join(f'  {i}. "{keyword}"' for i, keyword in enumerate(keywords, start=1))
    return (
        "OPTYMALIZACJA SEO — FRAZY KLUCZOWE:\n"
        f"{listed}\n"
        "\n"
        "Zasady SEO:\n"
        f'- Fraza główna ("{keywords[0]}") MUSI wystąpić w <h1> i 2-3× w tekście\n'
        "- Pozostałe frazy rozmieść naturalnie w <h2>, <h3> lub <p>\n"
        "- Używaj odmian gramatycznych i synonimów\n"
        "- ZAKAZ keyword stuffingu — tekst musi brzmieć naturalnie"
    )


_LANGUAGE_RULES = """Jesteś doświadczonym, profesjonalnym polskim copywriterem i redaktorem.
Piszesz WYŁĄCZNIE w języku polskim — poprawnym, naturalnym, bogatym stylistycznie.

ZASADY JĘZYKA POLSKIEGO:
- Pisz poprawną polszczyzną — gramatyka, ortografia, interpunkcja
- Używaj naturalnych, płynnych zdań — NIE tłumacz z angielskiego
- Stosuj polskie zwroty i frazeologię (nie kalki językowe)
- Unikaj sztucznego, „robociego" stylu — pisz jak doświadczony dziennikarz
- Każde zdanie musi być gramatycznie poprawne i zakończone
- Akapity muszą płynnie na siebie przechodzić (spójność logiczna)
- Używaj różnorodnego słownictwa — NIE powtarzaj tych samych słów
- Pisz konkretnie i merytorycznie — każde zdanie musi wnosić wartość"""


def _format_rules() -> str:
    tags = " ".join(f"<{tag}>" for tag in ALLOWED_TAGS)
    return (
        "FORMAT: CZYSTY HTML (bez Markdown, bez <!DOCTYPE>, bez komentarzy)\n"
        f"Używaj TYLKO: {tags}\n"
        "NIE używaj: # ## ### * - (Markdown)\n"
        "Rozpocznij od: <h1>"
    )


def build_prompt(topic: str, target_length: int, keywords: Sequence[str] = ()) -> str:
    """Compose the full instruction sent to the generation provider."""
    structure = calculate_structure(target_length)
    min_chars, max_chars = length_band(target_length)

    return f"""{_LANGUAGE_RULES}

{_format_rules()}

TEMAT: {topic}

{build_length_example(target_length)}

{build_seo_instructions(keywords)}

KRYTYCZNE ZASADY DŁUGOŚCI:
- MINIMUM: {min_chars} znaków
- MAKSIMUM: {max_chars} znaków
- IDEAŁ: ~{target_length} znaków
- Licz WSZYSTKO łącznie: tagi HTML + tekst + spacje
- Gdy zbliżasz się do limitu → ZAKOŃCZ naturalnym zdaniem i </p>
- NIE PISZ WIĘCEJ niż {max_chars} znaków!

STRUKTURA:
- <h1>: 1 (tytuł)
- <h2>: {structure.sections} sekcji
- <p>: {structure.paragraphs} akapitów (3-5 zdań każdy)

NAPISZ TEKST na temat "{topic}" ({min_chars}-{max_chars} znaków):"""
