"""Name variants and candidate acceptance for sources that mask identifiers.

Workplace registries such as the national pension service only expose the first
six BRNO digits (``124810****``) and search names with a ``LIKE`` match, so the
same company has to be looked up under several spellings. A candidate is accepted
when its masked BRNO shares the known prefix; failing that, only the best
name-scored candidate is accepted, and only if it clears
``PHONETIC_ACCEPTANCE_FLOOR``. Raising the floor trades recall for precision.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from firmlink.domain.normalize import normalize_brno

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from firmlink.domain.ports import SearchCandidate

PHONETIC_ACCEPTANCE_FLOOR: Final[int] = 85
MASKED_BRNO_PREFIX_LENGTH: Final[int] = 6
MAX_CANDIDATE_NAME_LENGTH: Final[int] = 40

EXACT_NAME_SCORE: Final[int] = 100
AFFIX_FREE_NAME_SCORE: Final[int] = 95
WORD_BOUNDARY_PREFIX_SCORE: Final[int] = 90
PARTIAL_PREFIX_SCORE: Final[int] = 60
CONTAINED_NAME_SCORE: Final[int] = 55
UNRELATED_NAME_BASE_SCORE: Final[int] = 50

# Hangul readings of Latin group prefixes, as the pension registry spells them
PHONETIC_PREFIXES: Final[Mapping[str, str]] = {
    "LG": "엘지",
    "SK": "에스케이",
    "KT": "케이티",
    "GS": "지에스",
    "CJ": "씨제이",
    "LS": "엘에스",
    "HD": "에이치디",
    "DL": "디엘",
    "LX": "엘엑스",
    "HJ": "에이치제이",
}

_LEADING_STOCK_AFFIX = re.compile(r"^(?:주식회사|\(주\)|㈜)\s*")
_TRAILING_STOCK_AFFIX = re.compile(r"\s*(?:주식회사|\(주\)|㈜)$")
_ANY_STOCK_AFFIX = re.compile(r"(?:주식회사|\(주\)|㈜)\s*")
_NON_COMPANY_WORKPLACE = re.compile(
    r"어린이집|급식소|마을금고|직원식당|사내식당|기숙사|출장소|연수원"
)


def base_company_name(company_name: str) -> str:
    base = company_name.strip()
    base = _LEADING_STOCK_AFFIX.sub("", base)
    base = _TRAILING_STOCK_AFFIX.sub("", base)
    return base.strip()


def phonetic_base(base: str) -> str | None:
    for latin, hangul in PHONETIC_PREFIXES.items():
        if base.startswith(latin):
            return hangul + base[len(latin) :]
    return None


def name_variants(company_name: str, *, limit: int | None = None) -> list[str]:
    """Spellings to search for, most specific first, without duplicates."""

    base = base_company_name(company_name)
    if not base:
        return []
    variants: list[str] = []
    hangul = phonetic_base(base)
    if hangul is not None:
        variants.extend((f"{hangul}(주)", hangul, f"{hangul} 주식회사"))
    variants.extend((f"{base}(주)", f"(주){base}", f"주식회사 {base}", f"{base} 주식회사", base))
    unique = list(dict.fromkeys(variants))
    return unique if limit is None else unique[:limit]


def _strip_stock_affixes(name: str) -> str:
    return _ANY_STOCK_AFFIX.sub("", name).strip()


def score_candidate_name(candidate_name: str, search_name: str) -> int:
    if candidate_name == search_name:
        return EXACT_NAME_SCORE
    clean_candidate = _strip_stock_affixes(candidate_name)
    clean_search = _strip_stock_affixes(search_name)
    if clean_search and clean_candidate == clean_search:
        return AFFIX_FREE_NAME_SCORE
    if clean_search and clean_candidate.startswith(clean_search):
        rest = clean_candidate[len(clean_search) :]
        # "에스케이하이닉스 청주" continues at a word boundary, "카카오토" does not
        return WORD_BOUNDARY_PREFIX_SCORE if rest.startswith(" ") else PARTIAL_PREFIX_SCORE
    if clean_search and clean_search in clean_candidate:
        return CONTAINED_NAME_SCORE
    return UNRELATED_NAME_BASE_SCORE - len(candidate_name)


def is_company_workplace(name: str | None) -> bool:
    if not name or len(name) >= MAX_CANDIDATE_NAME_LENGTH:
        return False
    return _NON_COMPANY_WORKPLACE.search(name) is None


def masked_brno_matches(masked_brno: str | None, known_brno: str | None) -> bool:
    known = normalize_brno(known_brno)
    masked = normalize_brno(masked_brno)
    if known is None or masked is None or len(known) < MASKED_BRNO_PREFIX_LENGTH:
        return False
    return masked.startswith(known[:MASKED_BRNO_PREFIX_LENGTH])


def select_phonetic_candidate(
    candidates: Sequence[SearchCandidate],
    *,
    known_brno: str | None,
    search_name: str,
    acceptance_floor: int = PHONETIC_ACCEPTANCE_FLOOR,
) -> SearchCandidate | None:
    for candidate in candidates:
        if masked_brno_matches(candidate.record.brno, known_brno):
            return candidate

    best: SearchCandidate | None = None
    best_score: int | None = None
    for candidate in candidates:
        name = candidate.record.company_name
        if name is None or not is_company_workplace(name):
            continue
        score = score_candidate_name(name, search_name)
        if best_score is None or score > best_score:
            best, best_score = candidate, score
    if best is None or best_score is None or best_score < acceptance_floor:
        return None
    return best
