"""Scheduled upkeep of stored entities: refresh what is due, audit what disagrees."""

from __future__ import annotations

import asyncio
from dataclasses import asdict
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Final

from firmlink.config.refresh import RefreshConfig
from firmlink.domain.model import AuditSummary, CollectionLogEntry, CompanyQuery, RefreshSummary
from firmlink.domain.persistence import persist_search_result

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from firmlink.domain.model import RegistryEntry
    from firmlink.domain.orchestration import Orchestrator
    from firmlink.domain.ports import EntityUnitOfWorkFactory

log = getLogger(__name__)

REFRESH_BATCH_ID: Final[str] = "scheduler_refresh"
AUDIT_LOG_TYPE: Final[str] = "crosscheck_audit"
AUDIT_LOG_STATUS: Final[str] = "warning"
AUDIT_SUMMARY_LIMIT: Final[int] = 50


class EntityNotRefreshedError(RuntimeError):
    """Raised when a fresh search no longer yields a storable entity."""


async def refresh_stale_entities(
    orchestrator: Orchestrator,
    *,
    unit_of_work_factory: EntityUnitOfWorkFactory,
    config: RefreshConfig | None = None,
    now: datetime | None = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> RefreshSummary:
    """Re-run the search for entities that are stale or past their refresh time.

    Entities are processed ``config.concurrency`` at a time with a pause between
    groups. A failing entity is marked stale again and does not stop the run.
    """

    config = config or RefreshConfig()
    now = now or datetime.now(UTC)
    with unit_of_work_factory() as uow:
        due = uow.repositories.registry.list_due(now=now, limit=config.batch_size)
    if not due:
        log.info("No entities due for refresh")
        return RefreshSummary()

    log.info("%s entities due for refresh", len(due))
    refreshed = 0
    failed_ids: list[str] = []
    for start in range(0, len(due), config.concurrency):
        group = due[start : start + config.concurrency]
        outcomes = await asyncio.gather(
            *(_refresh_one(orchestrator, entry, unit_of_work_factory, config) for entry in group),
            return_exceptions=True,
        )
        for entry, outcome in zip(group, outcomes, strict=True):
            if isinstance(outcome, Exception):
                log.error("Refresh of %s failed: %s", entry.entity_id, outcome)
                failed_ids.append(entry.entity_id)
                _mark_stale(entry.entity_id, unit_of_work_factory)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                refreshed += 1
                log.info("Refreshed %s", entry.entity_id)
        if start + config.concurrency < len(due):
            await sleep(config.delay_seconds)

    return RefreshSummary(
        refreshed=refreshed,
        failed=len(failed_ids),
        failed_entity_ids=tuple(failed_ids),
    )


async def _refresh_one(
    orchestrator: Orchestrator,
    entry: RegistryEntry,
    unit_of_work_factory: EntityUnitOfWorkFactory,
    config: RefreshConfig,
) -> None:
    query = CompanyQuery(brno=entry.brno, crno=entry.crno, company_name=entry.canonical_name)
    result = await orchestrator.search_async(query, use_cache=False)
    summary = persist_search_result(
        result,
        unit_of_work_factory=unit_of_work_factory,
        batch_id=REFRESH_BATCH_ID,
        refresh_interval_hours=config.interval_hours,
    )
    if summary.entities_saved == 0:
        raise EntityNotRefreshedError(f"search for {entry.entity_id} returned no storable entity")


def _mark_stale(entity_id: str, unit_of_work_factory: EntityUnitOfWorkFactory) -> None:
    with unit_of_work_factory() as uow:
        uow.repositories.registry.mark_stale(entity_id)
        uow.commit()


def run_cross_check_audit(
    *,
    unit_of_work_factory: EntityUnitOfWorkFactory,
    config: RefreshConfig | None = None,
    now: datetime | None = None,
) -> AuditSummary:
    """Count recent cross-source conflicts and leave a log row when there are any."""

    config = config or RefreshConfig()
    now = now or datetime.now(UTC)
    since = now - timedelta(hours=config.audit_window_hours)

    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        counts = repositories.crosschecks.conflict_counts_since(since, limit=config.audit_limit)
        if not counts:
            log.info("No cross-check conflicts since %s", since.isoformat())
            return AuditSummary()

        for count in counts[:10]:
            log.info(
                "entity=%s conflicts=%s fields=%s",
                count.entity_id,
                count.conflict_count,
                ",".join(count.fields),
            )
        repositories.logs.add(
            CollectionLogEntry(
                log_type=AUDIT_LOG_TYPE,
                status=AUDIT_LOG_STATUS,
                message=f"{len(counts)} entities with field conflicts detected",
                metadata={
                    "conflict_summary": [asdict(count) for count in counts[:AUDIT_SUMMARY_LIMIT]]
                },
                created_at=now,
            )
        )
        uow.commit()

    log.warning("%s entities with cross-check conflicts", len(counts))
    return AuditSummary(
        entities_with_conflicts=len(counts),
        total_conflicts=sum(count.conflict_count for count in counts),
    )
