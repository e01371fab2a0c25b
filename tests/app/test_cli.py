from __future__ import annotations

import json

import pytest

from firmlink.domain.bulk import MaterializeSummary
from firmlink.domain.model import (
    AuditSummary,
    CompanyQuery,
    RefreshSummary,
    SearchMeta,
    SearchResult,
    SourceRecord,
)
from firmlink.domain.resolution import resolve
from firmlink.ui import cli as cli_module


def _result(query: CompanyQuery) -> SearchResult:
    resolution = resolve(
        [
            SourceRecord(source="NTS", brno=query.brno, company_name="삼성전자"),
            SourceRecord(source="FSC", brno=query.brno, crno="1301110006246"),
        ]
    )
    return SearchResult(
        query=query,
        entities=resolution.entities,
        unmatched=resolution.unmatched,
        meta=SearchMeta(apis_attempted=2, apis_succeeded=2, total_records=2),
    )


def test_search_prints_resolved_entities(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    captured: dict[str, object] = {}

    def fake_search(query: CompanyQuery, **kwargs: object) -> tuple[SearchResult, None]:
        captured["query"] = query
        captured.update(kwargs)
        return _result(query), None

    monkeypatch.setattr(cli_module, "search_company", fake_search)

    cli_module.main(["search", "--brno", "124-81-00998", "--name", " 삼성전자 "])

    assert captured["query"] == CompanyQuery(brno="1248100998", company_name="삼성전자")
    assert captured["persist"] is False
    assert captured["batch_id"] is None

    document = json.loads(capsys.readouterr().out)
    assert document["from_cache"] is False
    assert document["meta"]["apis_succeeded"] == 2
    [entity] = document["entities"]
    assert entity["entity_id"] == "ent_1248100998"
    assert entity["identifiers"] == {"brno": "1248100998", "crno": "1301110006246"}
    assert entity["match_level"] == "MATCH"


def test_search_passes_persist_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_search(query: CompanyQuery, **kwargs: object) -> tuple[SearchResult, None]:
        captured.update(kwargs)
        return _result(query), None

    monkeypatch.setattr(cli_module, "search_company", fake_search)

    cli_module.main(["search", "--crno", "130111-0006246", "--persist", "--batch-id", "nightly"])

    assert captured == {"persist": True, "batch_id": "nightly"}


@pytest.mark.parametrize(
    "argv",
    [
        ["search", "--brno", "12481009"],
        ["search", "--brno", "12481009AB"],
        ["search", "--crno", "1301110006"],
        ["search", "--name", "   "],
        ["search"],
    ],
)
def test_invalid_search_arguments_exit_with_usage_error(
    monkeypatch: pytest.MonkeyPatch, argv: list[str]
) -> None:
    def fake_search(*_: object, **__: object) -> None:
        raise AssertionError("search must not run")

    monkeypatch.setattr(cli_module, "search_company", fake_search)

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(argv)

    assert excinfo.value.code == 2


def test_failing_command_exits_with_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_refresh(**_: object) -> RefreshSummary:
        raise RuntimeError("database is gone")

    monkeypatch.setattr(cli_module, "refresh_entities", fake_refresh)

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["refresh"])

    assert excinfo.value.code == 1


def test_refresh_and_audit_commands(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    def fake_refresh(**_: object) -> RefreshSummary:
        calls.append("refresh")
        return RefreshSummary(refreshed=3, failed=1, failed_entity_ids=("ent_1",))

    def fake_audit(**_: object) -> AuditSummary:
        calls.append("audit")
        return AuditSummary(entities_with_conflicts=2, total_conflicts=5)

    monkeypatch.setattr(cli_module, "refresh_entities", fake_refresh)
    monkeypatch.setattr(cli_module, "audit_conflicts", fake_audit)

    cli_module.main(["refresh"])
    cli_module.main(["audit"])

    assert calls == ["refresh", "audit"]


def test_bulk_load_arguments(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_load(source_id: str, **kwargs: object) -> MaterializeSummary:
        captured["source_id"] = source_id
        captured.update(kwargs)
        return MaterializeSummary(
            source_id=source_id, pages_loaded=2, items_saved=40, page_errors=0
        )

    monkeypatch.setattr(cli_module, "load_bulk_source", fake_load)

    cli_module.main(["bulk-load", "--source", "nps_bulk", "--start-page", "3", "--max-pages", "2"])

    assert captured == {"source_id": "nps_bulk", "start_page": 3, "max_pages": 2}
