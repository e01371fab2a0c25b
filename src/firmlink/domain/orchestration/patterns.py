"""Candidate selection for name searches and business-group reverse matching."""

from __future__ import annotations

import re
from logging import getLogger
from typing import TYPE_CHECKING, Final

from firmlink.domain.normalize import (
    MATCH_THRESHOLD,
    calculate_name_similarity,
    normalize_brno,
    normalize_company_name,
    normalize_crno,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from firmlink.domain.model import CompanyQuery, SourceRecord

log = getLogger(__name__)

BRNO_MATCH_SCORE: Final[float] = 0.5
CRNO_MATCH_SCORE: Final[float] = 0.5
NAME_SIMILARITY_WEIGHT: Final[float] = 0.3
MIN_CANDIDATE_SCORE: Final[float] = 0.3

# Large business groups designated by the Fair Trade Commission and the listed
# affiliates their group name is inferred from.
GROUP_AFFILIATES: Final[Mapping[str, tuple[str, ...]]] = {
    "삼성": (
        "삼성전자",
        "삼성물산",
        "삼성SDI",
        "삼성SDS",
        "삼성생명",
        "삼성화재",
        "삼성중공업",
        "삼성엔지니어링",
        "삼성바이오로직스",
    ),
    "현대": (
        "현대자동차",
        "현대모비스",
        "현대건설",
        "현대제철",
        "현대글로비스",
        "현대위아",
        "현대오일뱅크",
    ),
    "현대중공업": ("현대중공업", "HD현대", "HD한국조선해양"),
    "SK": ("SK하이닉스", "SK이노베이션", "SK텔레콤", "SK네트웍스", "SK케미칼", "SKC"),
    "LG": ("LG전자", "LG화학", "LG디스플레이", "LG유플러스", "LG에너지솔루션", "LG이노텍"),
    "롯데": ("롯데케미칼", "롯데쇼핑", "롯데칠성", "롯데제과", "롯데건설"),
    "포스코": ("포스코", "POSCO", "포스코인터내셔널", "포스코케미칼", "포스코퓨처엠"),
    "한화": ("한화에어로스페이스", "한화솔루션", "한화시스템", "한화오션", "한화생명"),
    "GS": ("GS칼텍스", "GS리테일", "GS건설", "GS에너지"),
    "두산": ("두산에너빌리티", "두산밥캣", "두산로보틱스"),
    "CJ": ("CJ제일제당", "CJ대한통운", "CJ ENM", "CJ올리브네트웍스"),
    "신세계": ("신세계", "이마트", "SSG닷컴", "스타벅스코리아"),
}

_LEADING_HANGUL = re.compile(r"^[가-힣]{2,3}")


def score_candidate(candidate: SourceRecord, query: CompanyQuery) -> float:
    """Identifier agreement dominates; name similarity only tips the balance."""

    score = 0.0
    query_brno = normalize_brno(query.brno)
    if query_brno and normalize_brno(candidate.brno) == query_brno:
        score += BRNO_MATCH_SCORE
    query_crno = normalize_crno(query.crno)
    if query_crno and normalize_crno(candidate.crno) == query_crno:
        score += CRNO_MATCH_SCORE
    if query.company_name and candidate.company_name:
        score += NAME_SIMILARITY_WEIGHT * calculate_name_similarity(
            query.company_name, candidate.company_name
        )
    return score


def select_best_candidate(
    candidates: Sequence[SourceRecord],
    query: CompanyQuery,
    *,
    min_score: float = MIN_CANDIDATE_SCORE,
) -> SourceRecord | None:
    best: SourceRecord | None = None
    best_score = 0.0
    for candidate in candidates:
        score = score_candidate(candidate, query)
        if score > best_score:
            best, best_score = candidate, score
    return best if best_score >= min_score else None


def infer_group_name(company_name: str | None, *, prefix_fallback: bool = True) -> str | None:
    """Guess the business group a company belongs to.

    The lookup table is authoritative. Without a table hit the leading two or three
    Hangul syllables are used, which also matches unrelated companies sharing a
    prefix; affiliates returned for such a guess are still filtered by
    :func:`filter_affiliates`.
    """

    normalized = normalize_company_name(company_name)
    if not normalized:
        return None
    for group_name, affiliates in GROUP_AFFILIATES.items():
        for affiliate in affiliates:
            if calculate_name_similarity(normalized, affiliate) >= MATCH_THRESHOLD:
                return group_name
    if not prefix_fallback:
        return None
    match = _LEADING_HANGUL.match(normalized)
    if match is None:
        return None
    log.debug("No known group for %s, guessing %s from its prefix", normalized, match.group(0))
    return match.group(0)


def filter_affiliates(
    affiliates: Iterable[SourceRecord],
    *,
    company_name: str | None,
    crno: str | None,
) -> list[SourceRecord]:
    target_crno = normalize_crno(crno)
    matched: list[SourceRecord] = []
    for affiliate in affiliates:
        if target_crno and normalize_crno(affiliate.crno) == target_crno:
            matched.append(affiliate)
        elif (
            company_name
            and affiliate.company_name
            and calculate_name_similarity(company_name, affiliate.company_name) >= MATCH_THRESHOLD
        ):
            matched.append(affiliate)
    return matched
