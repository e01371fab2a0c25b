from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from firmlink.adapters.sqlalchemy.repositories import SqlAlchemyCrossCheckRepository
from firmlink.domain.model import (
    CompanyQuery,
    CrossCheckField,
    Entity,
    EntityIdentifiers,
    MatchLevel,
    SearchMeta,
    SearchResult,
    SourceRecord,
    SourceSnapshot,
)
from firmlink.domain.persistence import (
    compute_cross_checks,
    compute_diff,
    field_similarity,
    load_entity,
    persist_search_result,
)
from firmlink.domain.resolution import resolve

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from firmlink.adapters.sqlalchemy.unit_of_work import SqlAlchemyEntityUnitOfWork

BRNO = "1248100998"
CRNO = "1301110006246"
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def _search_result(records: Sequence[SourceRecord]) -> SearchResult:
    resolution = resolve(records)
    return SearchResult(
        query=CompanyQuery(brno=BRNO),
        entities=resolution.entities,
        unmatched=resolution.unmatched,
        meta=SearchMeta(),
    )


def _samsung(**raw: object) -> list[SourceRecord]:
    return [
        SourceRecord(
            source="A",
            brno=BRNO,
            company_name="삼성전자",
            address="서울특별시 서초구 서초대로74길 11",
            representative="한종희",
            raw_data={"source": "A", **raw},
        ),
        SourceRecord(
            source="B",
            brno=BRNO,
            company_name="(주)삼성전자",
            address="경기도 수원시 영통구 삼성로 129",
            representative="한종희",
            raw_data={"source": "B"},
        ),
    ]


def test_persist_then_load(sqlite_unit_of_work: Callable[[], SqlAlchemyEntityUnitOfWork]) -> None:
    summary = persist_search_result(
        _search_result(_samsung()),
        unit_of_work_factory=sqlite_unit_of_work,
        now=NOW,
        refresh_interval_hours=24,
    )

    assert summary.entities_saved == 1
    assert summary.sources_saved == 2
    assert summary.crosschecks_saved == 3

    stored = load_entity(unit_of_work_factory=sqlite_unit_of_work, brno=BRNO)
    assert stored is not None
    registry = stored.registry
    assert registry.entity_id == f"ent_{BRNO}"
    assert registry.canonical_name == "삼성전자"
    assert registry.name_variants == ("삼성전자", "(주)삼성전자")
    assert registry.match_level is MatchLevel.MATCH
    assert registry.sources == ("A", "B")
    assert registry.source_count == 2
    assert registry.last_fetched_at == NOW
    assert registry.refresh_due_at == NOW + timedelta(hours=24)
    assert not registry.is_stale

    assert [snapshot.source_name for snapshot in stored.snapshots] == ["A", "B"]
    assert stored.snapshots[0].raw_data == {"source": "A"}
    assert [conflict.field for conflict in stored.conflicts] == [CrossCheckField.ADDRESS]
    assert stored.as_entity().members[1].company_name == "(주)삼성전자"


def test_entities_without_identifiers_are_skipped(
    sqlite_unit_of_work: Callable[[], SqlAlchemyEntityUnitOfWork],
) -> None:
    anonymous = Entity(
        entity_id="ent_0",
        confidence=1.0,
        match_level=MatchLevel.MATCH,
        identifiers=EntityIdentifiers(),
        canonical_name="삼성전자",
        members=(SourceRecord(source="A", company_name="삼성전자"),),
    )
    result = SearchResult(
        query=CompanyQuery(company_name="삼성전자"),
        entities=(anonymous,),
        unmatched=(),
        meta=SearchMeta(),
    )

    summary = persist_search_result(result, unit_of_work_factory=sqlite_unit_of_work, now=NOW)

    assert summary.entities_saved == 0
    with sqlite_unit_of_work() as uow:
        assert uow.repositories.registry.get("ent_0") is None


def test_upsert_keeps_batch_id_and_clears_the_stale_flag(
    sqlite_unit_of_work: Callable[[], SqlAlchemyEntityUnitOfWork],
) -> None:
    entity_id = f"ent_{BRNO}"
    persist_search_result(
        _search_result(_samsung()),
        unit_of_work_factory=sqlite_unit_of_work,
        batch_id="import-2026-03",
        now=NOW,
    )
    with sqlite_unit_of_work() as uow:
        uow.repositories.registry.mark_stale(entity_id)
        uow.commit()

    later = NOW + timedelta(hours=1)
    persist_search_result(
        _search_result(_samsung()), unit_of_work_factory=sqlite_unit_of_work, now=later
    )

    with sqlite_unit_of_work() as uow:
        entry = uow.repositories.registry.get(entity_id)
    assert entry is not None
    assert entry.batch_id == "import-2026-03"
    assert not entry.is_stale
    assert entry.last_fetched_at == later


def test_sources_missing_from_a_later_search_are_retired(
    sqlite_unit_of_work: Callable[[], SqlAlchemyEntityUnitOfWork],
) -> None:
    persist_search_result(
        _search_result(_samsung()), unit_of_work_factory=sqlite_unit_of_work, now=NOW
    )
    only_a = _samsung()[:1]
    summary = persist_search_result(
        _search_result(only_a), unit_of_work_factory=sqlite_unit_of_work, now=NOW
    )

    assert summary.crosschecks_saved == 0
    stored = load_entity(unit_of_work_factory=sqlite_unit_of_work, brno=BRNO)
    assert stored is not None
    assert [snapshot.source_name for snapshot in stored.snapshots] == ["A"]
    assert stored.conflicts == ()


def test_failed_write_leaves_the_entity_as_it_was(
    sqlite_unit_of_work: Callable[[], SqlAlchemyEntityUnitOfWork],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    persist_search_result(
        _search_result(_samsung()), unit_of_work_factory=sqlite_unit_of_work, now=NOW
    )
    before = load_entity(unit_of_work_factory=sqlite_unit_of_work, brno=BRNO)
    assert before is not None

    def fail(self: object, entity_id: str, checks: object) -> None:
        raise RuntimeError("disk full")

    monkeypatch.setattr(SqlAlchemyCrossCheckRepository, "replace_for_entity", fail)
    changed = [
        *_samsung(revision=2),
        SourceRecord(source="C", brno=BRNO, company_name="삼성전자(주)", raw_data={}),
    ]
    with pytest.raises(RuntimeError, match="disk full"):
        persist_search_result(
            _search_result(changed),
            unit_of_work_factory=sqlite_unit_of_work,
            batch_id="second",
            now=NOW + timedelta(hours=1),
        )

    after = load_entity(unit_of_work_factory=sqlite_unit_of_work, brno=BRNO)
    assert after == before
    assert after is not None
    assert after.registry.sources == ("A", "B")
    assert after.snapshots[0].raw_data == {"source": "A"}
    assert [conflict.field for conflict in after.conflicts] == [CrossCheckField.ADDRESS]


def test_stale_entities_are_hidden_unless_asked_for(
    sqlite_unit_of_work: Callable[[], SqlAlchemyEntityUnitOfWork],
) -> None:
    persist_search_result(
        _search_result(_samsung()), unit_of_work_factory=sqlite_unit_of_work, now=NOW
    )
    with sqlite_unit_of_work() as uow:
        uow.repositories.registry.mark_stale(f"ent_{BRNO}")
        uow.commit()

    assert load_entity(unit_of_work_factory=sqlite_unit_of_work, brno=BRNO) is None
    stale = load_entity(unit_of_work_factory=sqlite_unit_of_work, brno=BRNO, allow_stale=True)
    assert stale is not None
    assert stale.registry.is_stale


def test_load_by_crno(sqlite_unit_of_work: Callable[[], SqlAlchemyEntityUnitOfWork]) -> None:
    persist_search_result(
        _search_result([SourceRecord(source="DART", crno=CRNO, company_name="삼성전자")]),
        unit_of_work_factory=sqlite_unit_of_work,
        now=NOW,
    )

    stored = load_entity(unit_of_work_factory=sqlite_unit_of_work, crno=CRNO)

    assert stored is not None
    assert stored.entity_id == f"ent_{CRNO}"
    assert load_entity(unit_of_work_factory=sqlite_unit_of_work) is None
    assert load_entity(unit_of_work_factory=sqlite_unit_of_work, brno="9999999999") is None


def test_compute_diff(sqlite_unit_of_work: Callable[[], SqlAlchemyEntityUnitOfWork]) -> None:
    persist_search_result(
        _search_result(_samsung()), unit_of_work_factory=sqlite_unit_of_work, now=NOW
    )
    stored = load_entity(unit_of_work_factory=sqlite_unit_of_work, brno=BRNO)

    a, b = _samsung()
    live = _search_result(
        [
            a,
            SourceRecord(source="B", brno=BRNO, company_name="삼성전자", raw_data={"source": "B2"}),
            SourceRecord(source="C", brno=BRNO, company_name="삼성전자", raw_data={"c": 1}),
        ]
    )
    diff = compute_diff(stored, live)

    assert diff is not None
    assert diff.added == ("C",)
    assert diff.updated == ("B",)
    assert diff.unchanged == ("A",)
    assert diff.removed == ()
    assert diff.has_changes

    same = compute_diff(stored, _search_result([a, b]))
    assert same is not None
    assert not same.has_changes

    assert compute_diff(None, live) is None
    assert compute_diff(stored, None) is None
    assert compute_diff(stored, _search_result([])) is None


def _snapshot(source: str, **fields: str | None) -> SourceSnapshot:
    return SourceSnapshot(
        entity_id="ent_1",
        source_name=source,
        brno=None,
        crno=None,
        company_name=fields.get("company_name"),
        address=fields.get("address"),
        representative=fields.get("representative"),
        industry_code=fields.get("industry_code"),
        raw_data=None,
        fetched_at=NOW,
    )


def test_cross_checks_cover_fields_both_sources_report() -> None:
    checks = compute_cross_checks(
        "ent_1",
        [
            _snapshot("A", company_name="삼성전자", industry_code="26410"),
            _snapshot("B", company_name="삼성전자(주)", industry_code="26421"),
            _snapshot("C", address="서울"),
        ],
        checked_at=NOW,
    )

    assert [(c.source_a, c.source_b, c.field) for c in checks] == [
        ("A", "B", CrossCheckField.COMPANY_NAME),
        ("A", "B", CrossCheckField.INDUSTRY_CODE),
    ]
    name_check, industry_check = checks
    assert name_check.similarity == 1.0
    assert not name_check.is_conflict
    assert industry_check.similarity == 0.0
    assert industry_check.is_conflict


@pytest.mark.parametrize(
    ("field", "value_a", "value_b", "expected"),
    [
        (CrossCheckField.ADDRESS, "서울  중구 세종대로 110", "서울 중구 세종대로 110", 1.0),
        (CrossCheckField.ADDRESS, "서울 중구 세종대로 110", "서울 중구 세종대로 110 3층", 0.9),
        (CrossCheckField.ADDRESS, "서울 중구", "부산 해운대구", 0.3),
        (CrossCheckField.REPRESENTATIVE, "한종희", "한종희", 1.0),
        (CrossCheckField.REPRESENTATIVE, "한종희", "경계현", 0.0),
        (CrossCheckField.COMPANY_NAME, "㈜카카오", "카카오", 1.0),
    ],
)
def test_field_similarity(
    field: CrossCheckField, value_a: str, value_b: str, expected: float
) -> None:
    assert field_similarity(field, value_a, value_b) == pytest.approx(expected)
