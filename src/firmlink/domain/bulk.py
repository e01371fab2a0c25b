"""BRNO lookups over bulk datasets that cannot be queried per key.

Small datasets are paged into memory once and kept for ``ttl_seconds``; concurrent
lookups wait on the same load instead of starting their own. Large datasets are
materialised into the relational store ahead of time (see :meth:`BulkIndex.materialize`)
and read through :class:`~firmlink.domain.ports.BulkRecordRepository`.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from firmlink.domain.model import SourceRecord
from firmlink.domain.normalize import normalize_brno
from firmlink.domain.ports import BulkStrategy

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from firmlink.domain.ports import BulkSource, EntityUnitOfWorkFactory, SourceTransport

log = getLogger(__name__)

DEFAULT_PAGE_SIZE: Final[int] = 1000
DEFAULT_MAX_PAGES: Final[int] = 200
DEFAULT_MEMORY_TTL_SECONDS: Final[float] = 24 * 60 * 60
DATABASE_LOOKUP_LIMIT: Final[int] = 100
MAX_CONSECUTIVE_PAGE_ERRORS: Final[int] = 5


class BulkIndexUnavailableError(RuntimeError):
    """Raised when a database-backed bulk source is used without a store."""


@dataclass(slots=True, frozen=True)
class _MemoryIndex:
    items_by_brno: dict[str, list[Mapping[str, object]]]
    loaded_at: float
    pages: int


@dataclass(slots=True, frozen=True)
class MaterializeSummary:
    source_id: str
    pages_loaded: int
    items_saved: int
    page_errors: int


class BulkIndex:
    def __init__(
        self,
        *,
        sources: Sequence[BulkSource],
        unit_of_work_factory: EntityUnitOfWorkFactory | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
        ttl_seconds: float = DEFAULT_MEMORY_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sources = tuple(sources)
        self._unit_of_work_factory = unit_of_work_factory
        self._page_size = page_size
        self._max_pages = max_pages
        self._ttl = ttl_seconds
        self._clock = clock
        self._memory: dict[str, _MemoryIndex] = {}
        self._loading: dict[str, asyncio.Task[_MemoryIndex]] = {}

    @property
    def sources(self) -> tuple[BulkSource, ...]:
        return self._sources

    def source(self, source_id: str) -> BulkSource:
        for source in self._sources:
            if source.id == source_id:
                return source
        raise KeyError(f"Unknown bulk source: {source_id}")

    async def search_by_brno(self, brno: str, *, transport: SourceTransport) -> list[SourceRecord]:
        """Look ``brno`` up in every source; a failing source is logged and skipped."""

        records: list[SourceRecord] = []
        for source in self._sources:
            try:
                record = await self.lookup(source, brno, transport=transport)
            except Exception as exc:  # noqa: BLE001
                log.warning("Bulk source %s lookup failed: %s", source.id, exc)
                continue
            if record is not None:
                records.append(record)
        return records

    async def warm(self, *, transport: SourceTransport) -> None:
        """Load every MEMORY source that is missing or past its TTL.

        Callers await this without a per-call deadline so a long first load
        completes instead of being abandoned and restarted by the next search.
        """

        for source in self._sources:
            if source.strategy is not BulkStrategy.MEMORY:
                continue
            try:
                await self._memory_index(source, transport)
            except Exception as exc:  # noqa: BLE001
                log.warning("Bulk source %s could not be loaded: %s", source.id, exc)

    async def lookup(
        self,
        source: BulkSource,
        brno: str,
        *,
        transport: SourceTransport,
    ) -> SourceRecord | None:
        normalized = normalize_brno(brno)
        if normalized is None:
            return None
        if source.strategy is BulkStrategy.DATABASE:
            items = self._lookup_database(source, normalized)
        else:
            index = await self._memory_index(source, transport)
            items = index.items_by_brno.get(normalized, [])
        if not items:
            return None
        return SourceRecord(
            source=source.name,
            brno=normalized,
            company_name=source.extract_name(items[0]),
            raw_data=[dict(item) for item in items],
        )

    def _lookup_database(self, source: BulkSource, brno: str) -> list[Mapping[str, object]]:
        if self._unit_of_work_factory is None:
            raise BulkIndexUnavailableError(
                f"Bulk source {source.id} is materialised in the database "
                "but no store is configured"
            )
        with self._unit_of_work_factory() as uow:
            return uow.repositories.bulk_records.find_by_brno(
                source.id, brno, limit=DATABASE_LOOKUP_LIMIT
            )

    async def _memory_index(self, source: BulkSource, transport: SourceTransport) -> _MemoryIndex:
        cached = self._memory.get(source.id)
        if cached is not None and self._clock() - cached.loaded_at < self._ttl:
            return cached

        task = self._loading.get(source.id)
        if task is None:
            task = asyncio.ensure_future(self._load_memory(source, transport))
            self._loading[source.id] = task
            task.add_done_callback(lambda _done, key=source.id: self._loading.pop(key, None))
        # a caller timing out must not cancel the load other callers wait on
        return await asyncio.shield(task)

    async def _load_memory(self, source: BulkSource, transport: SourceTransport) -> _MemoryIndex:
        log.info("Loading bulk source %s into memory", source.id)
        items_by_brno: dict[str, list[Mapping[str, object]]] = {}
        pages = 0
        for page_no in range(1, self._max_pages + 1):
            try:
                payload = await transport.fetch(source.build_page_request(page_no, self._page_size))
                items = source.extract_items(payload)
            except Exception as exc:
                if pages == 0:
                    raise
                # keep what was loaded; the TTL schedules the next full attempt
                log.warning(
                    "Bulk source %s stopped at page %s, keeping %s pages: %s",
                    source.id,
                    page_no,
                    pages,
                    exc,
                )
                break
            if not items:
                break
            for item in items:
                brno = normalize_brno(source.extract_brno(item))
                if brno is not None:
                    items_by_brno.setdefault(brno, []).append(item)
            pages += 1
            if len(items) < self._page_size:
                break

        index = _MemoryIndex(items_by_brno=items_by_brno, loaded_at=self._clock(), pages=pages)
        self._memory[source.id] = index
        log.info(
            "Loaded bulk source %s: %s pages, %s distinct BRNOs",
            source.id,
            pages,
            len(items_by_brno),
        )
        return index

    async def materialize(
        self,
        source_id: str,
        *,
        transport: SourceTransport,
        start_page: int = 1,
        max_pages: int | None = None,
    ) -> MaterializeSummary:
        """Page a source into the bulk record table, tolerating sporadic page errors."""

        if self._unit_of_work_factory is None:
            raise BulkIndexUnavailableError("Materialising a bulk source requires a store")
        source = self.source(source_id)
        last_page = start_page + (max_pages or self._max_pages) - 1

        pages = saved = page_errors = consecutive_errors = 0
        page_no = start_page
        while page_no <= last_page:
            try:
                payload = await transport.fetch(source.build_page_request(page_no, self._page_size))
                items = source.extract_items(payload)
            except Exception as exc:  # noqa: BLE001
                page_errors += 1
                consecutive_errors += 1
                log.warning("Bulk source %s page %s failed: %s", source_id, page_no, exc)
                if consecutive_errors >= MAX_CONSECUTIVE_PAGE_ERRORS:
                    log.error(
                        "Stopping %s after %s consecutive page errors",
                        source_id,
                        consecutive_errors,
                    )
                    break
                page_no += 1
                continue

            consecutive_errors = 0
            if not items:
                break
            rows = [
                (brno, source.extract_name(item), dict(item))
                for item in items
                if (brno := normalize_brno(source.extract_brno(item))) is not None
            ]
            with self._unit_of_work_factory() as uow:
                saved += uow.repositories.bulk_records.add_items(source_id, rows)
                uow.commit()
            pages += 1
            if pages % 10 == 0:
                log.info("Bulk source %s: %s pages, %s rows saved", source_id, pages, saved)
            if len(items) < self._page_size:
                break
            page_no += 1

        return MaterializeSummary(
            source_id=source_id,
            pages_loaded=pages,
            items_saved=saved,
            page_errors=page_errors,
        )

    def clear(self, source_id: str | None = None) -> None:
        if source_id is None:
            self._memory.clear()
        else:
            self._memory.pop(source_id, None)
