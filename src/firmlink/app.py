"""Application entry points wiring configuration, sources, transport and the store."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

from firmlink.adapters.datagokr import build_registry, should_cache_payload
from firmlink.adapters.http_transport import build_transport_factory
from firmlink.adapters.sqlalchemy import SqlAlchemyEntityUnitOfWork, is_started, startup
from firmlink.config import (
    get_datagokr_config,
    get_orchestrator_config,
    get_refresh_config,
)
from firmlink.domain.bulk import BulkIndex, MaterializeSummary
from firmlink.domain.orchestration import Orchestrator
from firmlink.domain.persistence import persist_search_result
from firmlink.domain.refresh import refresh_stale_entities, run_cross_check_audit

if TYPE_CHECKING:
    import httpx

    from firmlink.config import DataGoKrConfig, OrchestratorConfig, RefreshConfig
    from firmlink.domain.model import (
        AuditSummary,
        CompanyQuery,
        PersistSummary,
        RefreshSummary,
        SearchResult,
    )
    from firmlink.domain.ports import EntityUnitOfWorkFactory


log = getLogger(__name__)


def _ensure_store() -> None:
    if not is_started():
        startup()


def build_orchestrator(
    *,
    datagokr_config: DataGoKrConfig | None = None,
    orchestrator_config: OrchestratorConfig | None = None,
    unit_of_work_factory: EntityUnitOfWorkFactory | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> Orchestrator:
    """Orchestrator over every data.go.kr source, sharing one key and one HTTP policy."""

    datagokr = datagokr_config or get_datagokr_config(cache_predicate=should_cache_payload)
    registry = build_registry(datagokr.service_key)
    return Orchestrator(
        registry=registry,
        transport_factory=build_transport_factory(
            datagokr.resilience, http_transport=http_transport
        ),
        bulk_index=BulkIndex(
            sources=registry.bulk_sources, unit_of_work_factory=unit_of_work_factory
        ),
        config=orchestrator_config or get_orchestrator_config(),
    )


def search_company(
    query: CompanyQuery,
    *,
    persist: bool = False,
    batch_id: str | None = None,
    orchestrator: Orchestrator | None = None,
    unit_of_work_factory: EntityUnitOfWorkFactory | None = None,
) -> tuple[SearchResult, PersistSummary | None]:
    """Search every source for ``query``; optionally store the resolved entities."""

    if unit_of_work_factory is None:
        _ensure_store()
    effective_uow = unit_of_work_factory or SqlAlchemyEntityUnitOfWork
    effective_orchestrator = orchestrator or build_orchestrator(
        unit_of_work_factory=effective_uow
    )

    result = effective_orchestrator.search(query)
    log.info(
        "Search finished: entities=%s, unmatched=%s, apis=%s/%s",
        len(result.entities),
        len(result.unmatched),
        result.meta.apis_succeeded,
        result.meta.apis_attempted,
    )
    if not persist:
        return result, None

    summary = persist_search_result(
        result,
        unit_of_work_factory=effective_uow,
        batch_id=batch_id,
        refresh_interval_hours=get_refresh_config().interval_hours,
    )
    log.info(
        "Stored %s entities, %s snapshots, %s cross-checks",
        summary.entities_saved,
        summary.sources_saved,
        summary.crosschecks_saved,
    )
    return result, summary


def refresh_entities(
    *,
    orchestrator: Orchestrator | None = None,
    unit_of_work_factory: EntityUnitOfWorkFactory | None = None,
    config: RefreshConfig | None = None,
) -> RefreshSummary:
    if unit_of_work_factory is None:
        _ensure_store()
    effective_uow = unit_of_work_factory or SqlAlchemyEntityUnitOfWork
    effective_orchestrator = orchestrator or build_orchestrator(
        unit_of_work_factory=effective_uow
    )
    return asyncio.run(
        refresh_stale_entities(
            effective_orchestrator,
            unit_of_work_factory=effective_uow,
            config=config or get_refresh_config(),
        )
    )


def audit_conflicts(
    *,
    unit_of_work_factory: EntityUnitOfWorkFactory | None = None,
    config: RefreshConfig | None = None,
) -> AuditSummary:
    if unit_of_work_factory is None:
        _ensure_store()
    return run_cross_check_audit(
        unit_of_work_factory=unit_of_work_factory or SqlAlchemyEntityUnitOfWork,
        config=config or get_refresh_config(),
    )


def load_bulk_source(
    source_id: str,
    *,
    start_page: int = 1,
    max_pages: int | None = None,
    datagokr_config: DataGoKrConfig | None = None,
    unit_of_work_factory: EntityUnitOfWorkFactory | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> MaterializeSummary:
    """Page a bulk dataset into the store so DATABASE-strategy lookups can find it."""

    if unit_of_work_factory is None:
        _ensure_store()
    datagokr = datagokr_config or get_datagokr_config(cache_predicate=should_cache_payload)
    registry = build_registry(datagokr.service_key)
    bulk_index = BulkIndex(
        sources=registry.bulk_sources,
        unit_of_work_factory=unit_of_work_factory or SqlAlchemyEntityUnitOfWork,
    )
    transport_factory = build_transport_factory(
        datagokr.resilience, http_transport=http_transport
    )

    async def run() -> MaterializeSummary:
        async with transport_factory() as transport:
            return await bulk_index.materialize(
                source_id, transport=transport, start_page=start_page, max_pages=max_pages
            )

    return asyncio.run(run())
