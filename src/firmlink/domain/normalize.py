"""Company name normalisation and similarity scoring.

Every function here is pure. Names are compared after stripping Korean legal-entity
markers (``(주)``, ``㈜``, ``주식회사`` ...) and Latin corporate suffixes, so that
``"(주)삼성전자"``, ``"삼성전자 주식회사"`` and ``"삼성전자"`` all normalise to the same
key. Registration numbers are normalised to bare digit strings, with ``None`` marking
an absent identifier so absence stays distinguishable from a mismatch.
"""

from __future__ import annotations

import re
from typing import Final

from rapidfuzz.distance import Levenshtein

from firmlink.domain.model import MatchLevel

MATCH_THRESHOLD: Final[float] = 0.80
PROBABLE_THRESHOLD: Final[float] = 0.60
CONTAINMENT_SIMILARITY: Final[float] = 0.95

KOREAN_LEGAL_FORMS: Final[tuple[str, ...]] = (
    "주식회사",
    "유한회사",
    "유한공사",
    "합자회사",
    "합명회사",
    "사단법인",
    "재단법인",
    "학교법인",
    "의료법인",
    "사회복지법인",
    "농업회사법인",
    "영농조합법인",
)

LATIN_CORPORATE_SUFFIXES: Final[tuple[str, ...]] = (
    "co., ltd.",
    "co.,ltd.",
    "co.,ltd",
    "co. ltd.",
    "corp.",
    "corporation",
    "inc.",
    "incorporated",
    "ltd.",
    "limited",
    "llc",
    "l.l.c.",
    "plc",
)

_KOREAN_FORMS_LONGEST_FIRST = tuple(sorted(KOREAN_LEGAL_FORMS, key=len, reverse=True))
_LATIN_SUFFIXES_LONGEST_FIRST = tuple(sorted(LATIN_CORPORATE_SUFFIXES, key=len, reverse=True))

# (주) (유) (사) (재) (합) (농), tolerating inner spaces such as "( 주 )"
_PARENTHESIZED_MARKER = re.compile(r"\(\s*[주유사재합농]\s*\)")
_CIRCLED_STOCK_MARKER = "㈜"
_WHITESPACE = re.compile(r"\s+")
_IDENTIFIER_NOISE = re.compile(r"[-\s]")


def normalize_company_name(name: str | None) -> str:
    """Return the comparison key of a company name (``''`` for missing input)."""

    if not name:
        return ""
    current = name
    while True:
        stripped = _strip_legal_markers(current)
        if stripped == current:
            return stripped
        current = stripped


def _strip_legal_markers(name: str) -> str:
    text = _PARENTHESIZED_MARKER.sub("", name).replace(_CIRCLED_STOCK_MARKER, "")
    text = _WHITESPACE.sub(" ", text).strip()
    for form in _KOREAN_FORMS_LONGEST_FIRST:
        if text.endswith(form):
            text = text[: -len(form)].rstrip()
        if text.startswith(form):
            text = text[len(form) :].lstrip()
    text = _strip_latin_suffix(text)
    return text.rstrip(" ,")


def _strip_latin_suffix(text: str) -> str:
    lowered = text.lower()
    for suffix in _LATIN_SUFFIXES_LONGEST_FIRST:
        if not lowered.endswith(suffix):
            continue
        cut = len(text) - len(suffix)
        # "Kinc." is a word, "K Inc." and "케이Inc." carry a suffix
        if cut > 0 and text[cut - 1].isascii() and text[cut - 1].isalnum():
            continue
        return text[:cut]
    return text


def normalize_brno(value: str | int | None) -> str | None:
    """Strip hyphens and whitespace from a business registration number."""

    return _normalize_identifier(value)


def normalize_crno(value: str | int | None) -> str | None:
    """Strip hyphens and whitespace from a corporation registration number."""

    return _normalize_identifier(value)


def _normalize_identifier(value: str | int | None) -> str | None:
    if value is None:
        return None
    cleaned = _IDENTIFIER_NOISE.sub("", str(value))
    return cleaned or None


def levenshtein_distance(a: str, b: str) -> int:
    """Unit-cost insert/delete/substitute distance between ``a`` and ``b``."""

    return Levenshtein.distance(a, b)


def calculate_name_similarity(name_a: str | None, name_b: str | None) -> float:
    """Score two company names in ``[0, 1]`` after normalisation.

    Equal keys score 1.0, containment in either direction scores
    ``CONTAINMENT_SIMILARITY``, anything else falls back to the length-normalised
    edit distance. The function is symmetric.
    """

    norm_a = normalize_company_name(name_a)
    norm_b = normalize_company_name(name_b)
    if not norm_a or not norm_b:
        return 0.0
    if norm_a == norm_b:
        return 1.0
    if norm_a in norm_b or norm_b in norm_a:
        return CONTAINMENT_SIMILARITY
    distance = levenshtein_distance(norm_a, norm_b)
    return 1 - distance / max(len(norm_a), len(norm_b))


def match_level_for(confidence: float) -> MatchLevel:
    if confidence >= MATCH_THRESHOLD:
        return MatchLevel.MATCH
    if confidence >= PROBABLE_THRESHOLD:
        return MatchLevel.PROBABLE
    return MatchLevel.NO_MATCH
