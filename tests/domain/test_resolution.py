from __future__ import annotations

from itertools import permutations
from typing import TYPE_CHECKING

import pytest

from firmlink.domain.model import MatchLevel, SourceRecord
from firmlink.domain.normalize import MATCH_THRESHOLD, calculate_name_similarity
from firmlink.domain.resolution import (
    calculate_group_consistency,
    calculate_pair_confidence,
    resolve,
    sanitize_company_name,
    select_canonical_name,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from firmlink.domain.model import Entity

SAMSUNG_BRNO = "1248100998"
SAMSUNG_CRNO = "1301110006246"


def _entity_of(entities: Sequence[Entity], source: str) -> Entity:
    return next(entity for entity in entities if source in entity.sources)


def test_records_sharing_a_brno_form_one_entity() -> None:
    result = resolve(
        [
            SourceRecord(source="A", brno=SAMSUNG_BRNO, company_name="삼성전자"),
            SourceRecord(source="B", brno=SAMSUNG_BRNO, company_name="(주)삼성전자"),
        ]
    )

    assert len(result.entities) == 1
    entity = result.entities[0]
    assert entity.entity_id == f"ent_{SAMSUNG_BRNO}"
    assert entity.canonical_name == "삼성전자"
    assert entity.confidence == 1.0
    assert entity.match_level is MatchLevel.MATCH
    assert entity.sources == ("A", "B")
    assert entity.name_variants == ("삼성전자", "(주)삼성전자")
    assert entity.identifiers.brno == SAMSUNG_BRNO
    assert result.unmatched == ()


def test_identifierless_record_attaches_by_name() -> None:
    result = resolve(
        [
            SourceRecord(source="A", brno=SAMSUNG_BRNO, company_name="삼성전자"),
            SourceRecord(source="B", brno=SAMSUNG_BRNO, company_name="(주)삼성전자"),
            SourceRecord(source="C", company_name="삼성전자반도체"),
        ]
    )

    assert calculate_name_similarity("삼성전자", "삼성전자반도체") == 0.95
    assert len(result.entities) == 1
    assert result.entities[0].sources == ("A", "B", "C")
    assert result.unmatched == ()


def test_unrelated_companies_are_never_grouped() -> None:
    result = resolve(
        [
            SourceRecord(source="A", company_name="삼성전자"),
            SourceRecord(source="B", company_name="현대자동차"),
        ]
    )

    assert calculate_name_similarity("삼성전자", "현대자동차") < MATCH_THRESHOLD
    assert all(len(entity.members) <= 1 for entity in result.entities)
    assert len(result.entities) + len(result.unmatched) == 2


def test_record_without_identifiers_or_name_is_unmatched() -> None:
    anonymous = SourceRecord(source="X", address="서울특별시 중구")
    result = resolve([SourceRecord(source="A", brno=SAMSUNG_BRNO, company_name="삼성전자"), anonymous])

    assert result.unmatched == (anonymous,)


def test_empty_input() -> None:
    result = resolve([])
    assert result.entities == ()
    assert result.unmatched == ()


@pytest.mark.parametrize(
    "order",
    list(permutations(range(4))),
)
def test_same_brno_lands_in_one_entity_for_any_order(order: tuple[int, ...]) -> None:
    records = [
        SourceRecord(source="A", brno="124-81-00998", company_name="삼성전자"),
        SourceRecord(source="B", brno="1248100998", company_name="Samsung Electronics"),
        SourceRecord(source="C", brno="2208162517", company_name="카카오"),
        SourceRecord(source="D", crno=SAMSUNG_CRNO, company_name="삼성전자(주)"),
    ]
    result = resolve([records[i] for i in order])

    samsung = _entity_of(result.entities, "A")
    assert "B" in samsung.sources
    assert "C" not in samsung.sources
    assert len(result.entities) == 2


def test_brno_and_crno_groups_bridge_through_a_record_with_both() -> None:
    result = resolve(
        [
            SourceRecord(source="A", brno=SAMSUNG_BRNO, company_name="가나"),
            SourceRecord(source="B", crno=SAMSUNG_CRNO, company_name="다라마바"),
            SourceRecord(source="C", brno=SAMSUNG_BRNO, crno=SAMSUNG_CRNO),
        ]
    )

    assert len(result.entities) == 1
    assert result.entities[0].identifiers.crno == SAMSUNG_CRNO


def test_name_merge_never_joins_conflicting_brnos() -> None:
    result = resolve(
        [
            SourceRecord(source="A", brno="1111111111", company_name="삼성전자"),
            SourceRecord(source="B", brno="2222222222", company_name="삼성전자"),
        ]
    )

    assert len(result.entities) == 2


def test_name_merge_joins_brno_and_crno_only_groups() -> None:
    result = resolve(
        [
            SourceRecord(source="A", brno=SAMSUNG_BRNO, company_name="삼성전자"),
            SourceRecord(source="B", crno=SAMSUNG_CRNO, company_name="삼성전자(주)"),
        ]
    )

    assert len(result.entities) == 1
    entity = result.entities[0]
    assert entity.identifiers.brno == SAMSUNG_BRNO
    assert entity.identifiers.crno == SAMSUNG_CRNO


def test_confidence_is_bounded_and_singletons_are_certain() -> None:
    result = resolve(
        [
            SourceRecord(source="A", brno=SAMSUNG_BRNO, company_name="삼성전자", address="서울"),
            SourceRecord(source="B", brno=SAMSUNG_BRNO, company_name="삼성", address="수원"),
            SourceRecord(source="C", brno="2208162517", company_name="카카오"),
        ]
    )

    for entity in result.entities:
        assert 0.0 <= entity.confidence <= 1.0
    assert _entity_of(result.entities, "C").confidence == 1.0


def test_pair_confidence_only_weighs_fields_both_records_carry() -> None:
    a = SourceRecord(brno=SAMSUNG_BRNO, company_name="삼성전자", representative="한종희")
    b = SourceRecord(brno=SAMSUNG_BRNO, company_name="삼성전자", industry_code="26410")
    assert calculate_pair_confidence(a, b) == 1.0

    c = SourceRecord(brno="1111111111", company_name="삼성전자")
    # brno 0.35 disagrees, name 0.15 agrees
    assert calculate_pair_confidence(a, c) == pytest.approx(0.15 / 0.5)

    assert calculate_pair_confidence(SourceRecord(), SourceRecord()) == 0.0


def test_group_consistency_of_small_groups() -> None:
    assert calculate_group_consistency([]) == 1.0
    assert calculate_group_consistency([SourceRecord(company_name="x")]) == 1.0


def test_canonical_name_prefers_frequency_then_length() -> None:
    assert select_canonical_name(["삼성전자", "(주)삼성전자", "삼성전자반도체"]) == "삼성전자"
    assert select_canonical_name(["삼성전자반도체", "삼성전자"]) == "삼성전자"
    assert select_canonical_name([]) is None


def test_canonical_name_truncates_separated_suffixes() -> None:
    assert sanitize_company_name("카카오/정규직/판교") == "카카오"
    # a one-character prefix is not a name on its own
    assert sanitize_company_name("A/S센터") == "A/S센터"
    assert sanitize_company_name("&lt;주&gt;테스트") == "<주>테스트"
    assert select_canonical_name(["카카오/정규직", "카카오/계약직", "다음"]) == "카카오"
