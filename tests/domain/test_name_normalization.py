from __future__ import annotations

import pytest

from firmlink.domain.model import MatchLevel
from firmlink.domain.normalize import (
    CONTAINMENT_SIMILARITY,
    MATCH_THRESHOLD,
    calculate_name_similarity,
    levenshtein_distance,
    match_level_for,
    normalize_brno,
    normalize_company_name,
    normalize_crno,
)

NAME_CORPUS = [
    "삼성전자",
    "(주)삼성전자",
    "삼성전자 주식회사",
    "㈜ 삼성전자",
    "( 주 )카카오",
    "주식회사 카카오",
    "주식회사 (주)카카오 ",
    "유한회사 한국쓰리엠",
    "사단법인 한국무역협회",
    "Samsung Electronics Co., Ltd.",
    "Acme Inc.",
    "Kinc.",
    "케이Inc.",
    "  현대   자동차  ",
    "",
    "LG화학",
]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("삼성전자", "삼성전자"),
        ("(주)삼성전자", "삼성전자"),
        ("삼성전자 주식회사", "삼성전자"),
        ("㈜삼성전자", "삼성전자"),
        ("( 주 )카카오", "카카오"),
        ("주식회사 카카오", "카카오"),
        ("재단법인 아산사회복지재단", "아산사회복지재단"),
        ("Samsung Electronics Co., Ltd.", "Samsung Electronics"),
        ("Acme Inc.", "Acme"),
        ("  현대   자동차  ", "현대 자동차"),
    ],
)
def test_normalize_company_name_strips_legal_markers(raw: str, expected: str) -> None:
    assert normalize_company_name(raw) == expected


def test_latin_suffix_needs_a_word_boundary() -> None:
    assert normalize_company_name("Kinc.") == "Kinc."
    assert normalize_company_name("케이Inc.") == "케이"


def test_normalize_company_name_of_missing_input_is_empty() -> None:
    assert normalize_company_name(None) == ""
    assert normalize_company_name("") == ""


@pytest.mark.parametrize("name", NAME_CORPUS)
def test_normalize_company_name_is_idempotent(name: str) -> None:
    once = normalize_company_name(name)
    assert normalize_company_name(once) == once


def test_stacked_markers_are_removed_in_one_call() -> None:
    assert normalize_company_name("주식회사 (주)카카오 ") == "카카오"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("124-81-00998", "1248100998"),
        (" 124 81 00998 ", "1248100998"),
        (1248100998, "1248100998"),
        ("", None),
        (None, None),
    ],
)
def test_normalize_brno(value: str | int | None, expected: str | None) -> None:
    assert normalize_brno(value) == expected


def test_normalize_crno() -> None:
    assert normalize_crno("130111-0006246") == "1301110006246"
    assert normalize_crno("") is None
    assert normalize_crno(None) is None


@pytest.mark.parametrize(
    ("a", "b", "distance"),
    [
        ("abc", "abd", 1),
        ("", "abc", 3),
        ("abc", "", 3),
        ("kitten", "sitting", 3),
        ("삼성전자", "삼성전기", 1),
        ("same", "same", 0),
    ],
)
def test_levenshtein_distance(a: str, b: str, distance: int) -> None:
    assert levenshtein_distance(a, b) == distance
    assert levenshtein_distance(b, a) == distance


@pytest.mark.parametrize("name", [name for name in NAME_CORPUS if normalize_company_name(name)])
def test_similarity_with_itself_is_one(name: str) -> None:
    assert calculate_name_similarity(name, name) == 1.0


@pytest.mark.parametrize("a", NAME_CORPUS)
@pytest.mark.parametrize("b", ["삼성전자", "카카오뱅크", "Acme Corporation", "현대자동차"])
def test_similarity_is_symmetric(a: str, b: str) -> None:
    assert calculate_name_similarity(a, b) == calculate_name_similarity(b, a)


def test_similarity_bounds_and_missing_names() -> None:
    assert calculate_name_similarity(None, "삼성전자") == 0.0
    assert calculate_name_similarity("(주)", "삼성전자") == 0.0
    for a in NAME_CORPUS:
        for b in NAME_CORPUS:
            assert 0.0 <= calculate_name_similarity(a, b) <= 1.0


def test_containment_takes_priority_over_edit_distance() -> None:
    assert calculate_name_similarity("삼성전자", "삼성전자반도체") == CONTAINMENT_SIMILARITY
    # edit distance alone would score this 0.25
    assert calculate_name_similarity("ab", "abcdefgh") == CONTAINMENT_SIMILARITY


def test_similarity_of_legal_variants_is_exact() -> None:
    assert calculate_name_similarity("삼성전자", "(주)삼성전자") == 1.0


def test_unrelated_companies_stay_below_match_threshold() -> None:
    assert calculate_name_similarity("삼성전자", "현대자동차") < MATCH_THRESHOLD


def test_similarity_falls_back_to_edit_distance() -> None:
    assert calculate_name_similarity("abc", "abd") == pytest.approx(1 - 1 / 3)


@pytest.mark.parametrize(
    ("confidence", "level"),
    [
        (1.0, MatchLevel.MATCH),
        (0.8, MatchLevel.MATCH),
        (0.79, MatchLevel.PROBABLE),
        (0.6, MatchLevel.PROBABLE),
        (0.59, MatchLevel.NO_MATCH),
        (0.0, MatchLevel.NO_MATCH),
    ],
)
def test_match_level_for(confidence: float, level: MatchLevel) -> None:
    assert match_level_for(confidence) is level
