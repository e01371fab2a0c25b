"""Multi-source company search.

A search runs in three stages against one transport:

* identity discovery fills in the identifiers the caller did not supply;
* the direct phase queries every source keyed by BRNO or CRNO;
* two-step, reverse-match, bulk-filter and phonetic phases then run concurrently.

All source calls go through one :class:`BoundedFanout`, so ``batch_size`` bounds the
calls in flight across every phase. Records are resolved once, at the end.
"""

from __future__ import annotations

import asyncio
import time
from copy import deepcopy
from dataclasses import replace
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING

from firmlink.config.orchestrator import OrchestratorConfig
from firmlink.domain.model import CompanyQuery, SearchMeta, SearchResult, SourceRecord
from firmlink.domain.normalize import calculate_name_similarity, normalize_brno, normalize_crno
from firmlink.domain.ports import QueryKeyType, QueryPattern
from firmlink.domain.resolution import resolve

from .cache import QueryCache
from .fanout import BoundedFanout
from .patterns import filter_affiliates, infer_group_name, select_best_candidate
from .phonetic import masked_brno_matches, name_variants, select_phonetic_candidate

if TYPE_CHECKING:
    from collections.abc import Awaitable, Sequence

    from firmlink.domain.bulk import BulkIndex
    from firmlink.domain.ports import (
        DiscoveryAdapter,
        ExtractedRecords,
        PhoneticSearchAdapter,
        SearchCandidate,
        SourceAdapter,
        SourceRegistry,
        SourceRequest,
        SourceTransport,
        TransportFactory,
    )

log = getLogger(__name__)

_IDENTIFIER_KEYS = frozenset({QueryKeyType.BRNO, QueryKeyType.CRNO})


def _as_records(extracted: ExtractedRecords) -> list[SourceRecord]:
    if extracted is None:
        return []
    if isinstance(extracted, SourceRecord):
        return [extracted]
    return list(extracted)


def _stamp(source_name: str, records: Sequence[SourceRecord]) -> list[SourceRecord]:
    return [replace(record, source=source_name) for record in records]


def _is_some(value: object) -> bool:
    return value is not None


class Orchestrator:
    def __init__(
        self,
        *,
        registry: SourceRegistry,
        transport_factory: TransportFactory,
        bulk_index: BulkIndex | None = None,
        config: OrchestratorConfig | None = None,
        cache: QueryCache | None = None,
    ) -> None:
        self._registry = registry
        self._transport_factory = transport_factory
        self._bulk_index = bulk_index
        self._config = config or OrchestratorConfig()
        self._cache = cache or QueryCache(ttl_seconds=self._config.cache_ttl_seconds)

    @property
    def registry(self) -> SourceRegistry:
        return self._registry

    def search(self, query: CompanyQuery) -> SearchResult:
        return asyncio.run(self.search_async(query))

    def clear_cache(self) -> None:
        self._cache.clear()

    async def search_async(self, query: CompanyQuery, *, use_cache: bool = True) -> SearchResult:
        if query.is_empty:
            return SearchResult(query=query, entities=(), unmatched=(), meta=SearchMeta())

        cache_key = query.cache_key
        if use_cache:
            cached = self._cache.get(cache_key)
            if cached is not None:
                log.debug("Cache hit for %s", cache_key)
                return replace(cached, meta=deepcopy(cached.meta), from_cache=True)

        started = time.perf_counter()
        meta = SearchMeta()
        async with self._transport_factory() as transport:
            fanout = BoundedFanout(
                limit=self._config.batch_size,
                timeout_seconds=self._config.call_timeout_seconds,
                meta=meta,
            )
            search = _Search(
                registry=self._registry,
                bulk_index=self._bulk_index,
                config=self._config,
                transport=transport,
                fanout=fanout,
                meta=meta,
            )
            resolved_query, records = await search.run(query)

        phase_started = time.perf_counter()
        resolution = resolve(records)
        meta.timing["resolution"] = _elapsed_ms(phase_started)
        meta.timing["total"] = _elapsed_ms(started)
        meta.total_records = len(records)

        result = SearchResult(
            query=resolved_query,
            entities=resolution.entities,
            unmatched=resolution.unmatched,
            meta=meta,
        )
        log.info(
            "Search %s: %s records from %s/%s sources, %s entities",
            cache_key,
            len(records),
            meta.apis_succeeded,
            meta.apis_attempted,
            len(result.entities),
        )
        self._cache.put(cache_key, replace(result, meta=deepcopy(meta)))
        return result


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 1)


class _Search:
    """State of one running search: its transport, fan-out and collected records."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        registry: SourceRegistry,
        bulk_index: BulkIndex | None,
        config: OrchestratorConfig,
        transport: SourceTransport,
        fanout: BoundedFanout,
        meta: SearchMeta,
    ) -> None:
        self._registry = registry
        self._bulk_index = bulk_index
        self._config = config
        self._transport = transport
        self._fanout = fanout
        self._meta = meta
        self._discovered = False
        self._discovery_bulk: list[SourceRecord] | None = None
        self._bulk_warmed = False

    async def run(self, query: CompanyQuery) -> tuple[CompanyQuery, list[SourceRecord]]:
        records: list[SourceRecord] = []

        query, discovered = await self._timed("discovery", self._discover(query))
        records.extend(discovered)

        direct = await self._timed("direct", self._run_direct(query))
        records.extend(direct)
        if not query.company_name:
            named = next((record for record in records if record.company_name), None)
            if named is not None:
                query = replace(query, company_name=named.company_name)

        phases = await asyncio.gather(
            self._timed("two_step", self._run_two_step(query)),
            self._timed("reverse_match", self._run_reverse_match(query)),
            self._timed("bulk_filter", self._run_bulk_filter(query)),
            self._timed("phonetic", self._run_phonetic(query)),
        )
        for phase_records in phases:
            records.extend(phase_records)
        return query, records

    async def _timed[T](self, phase: str, work: Awaitable[T]) -> T:
        started = time.perf_counter()
        try:
            return await work
        finally:
            self._meta.timing[phase] = _elapsed_ms(started)

    async def _fetch(self, request: SourceRequest) -> object:
        return await self._transport.fetch(request)

    # identity discovery

    async def _discover(self, query: CompanyQuery) -> tuple[CompanyQuery, list[SourceRecord]]:
        discovery = self._registry.discovery
        brno = normalize_brno(query.brno)

        if brno and not query.crno:
            found = None
            if discovery is not None:
                candidates = await self._fanout.call(
                    discovery.id,
                    partial(self._discovery_candidates, discovery, brno=brno),
                )
                found = candidates[0] if candidates else None
            if found is not None:
                self._discovered = True
                query = replace(
                    query,
                    crno=found.crno or query.crno,
                    company_name=query.company_name or found.company_name,
                )
                return query, [found]
            return await self._discover_from_bulk(query, brno)

        if not brno and query.company_name and discovery is not None:
            candidates = await self._fanout.call(
                discovery.id,
                partial(
                    self._discovery_candidates, discovery, company_name=query.company_name
                ),
            )
            if not candidates:
                return query, []
            name = query.company_name
            found = max(
                candidates,
                key=lambda c: calculate_name_similarity(name, c.company_name or ""),
            )
            self._discovered = True
            query = replace(query, brno=found.brno or query.brno, crno=query.crno or found.crno)
            return query, [found]

        return query, []

    async def _discovery_candidates(
        self,
        discovery: DiscoveryAdapter,
        *,
        brno: str | None = None,
        company_name: str | None = None,
    ) -> list[SourceRecord]:
        payload = await self._fetch(discovery.build_request(brno=brno, company_name=company_name))
        return _stamp(discovery.name, discovery.extract_candidates(payload))

    async def _discover_from_bulk(
        self, query: CompanyQuery, brno: str
    ) -> tuple[CompanyQuery, list[SourceRecord]]:
        # sole proprietors are absent from the corporate registry
        if self._bulk_index is None or not self._bulk_index.sources:
            return query, []
        bulk_index = self._bulk_index
        await self._warm_bulk_index(bulk_index)
        transport = self._transport
        found = await self._fanout.call(
            "bulk_index",
            lambda: bulk_index.search_by_brno(brno, transport=transport),
        )
        if found is None:
            return query, []
        self._discovery_bulk = found
        if not query.company_name:
            named = next((record for record in found if record.company_name), None)
            if named is not None:
                query = replace(query, company_name=named.company_name)
        return query, []

    async def _warm_bulk_index(self, bulk_index: BulkIndex) -> None:
        # outside the fan-out: a first load may outlast the per-call timeout
        if self._bulk_warmed:
            return
        self._bulk_warmed = True
        await bulk_index.warm(transport=self._transport)

    # direct

    async def _run_direct(self, query: CompanyQuery) -> list[SourceRecord]:
        twin = self._registry.discovery.direct_twin_id if self._registry.discovery else None
        calls = []
        for adapter in self._registry.by_pattern(QueryPattern.DIRECT):
            if adapter.query_key_type not in _IDENTIFIER_KEYS:
                continue
            if self._discovered and adapter.id == twin:
                continue
            key = _query_key(adapter.query_key_type, query)
            if key is None:
                continue
            calls.append((adapter.id, partial(self._fetch_records, adapter, key)))
        results = await self._fanout.gather(calls)
        return [record for records in results if records for record in records]

    async def _fetch_records(self, adapter: SourceAdapter, key: str) -> list[SourceRecord]:
        payload = await self._fetch(adapter.build_request(key))
        return _stamp(adapter.name, _as_records(adapter.extract_response(payload)))

    # two-step

    async def _run_two_step(self, query: CompanyQuery) -> list[SourceRecord]:
        calls = []
        for adapter in self._registry.by_pattern(QueryPattern.TWO_STEP):
            key = _query_key(adapter.query_key_type, query)
            if key is not None:
                calls.append((adapter.id, partial(self._best_two_step, adapter, key, query)))
        results = await self._fanout.gather(calls, counts_success=_is_some)
        return [record for record in results if record is not None]

    async def _best_two_step(
        self, adapter: SourceAdapter, key: str, query: CompanyQuery
    ) -> SourceRecord | None:
        candidates = await self._fetch_records(adapter, key)
        return select_best_candidate(candidates, query)

    # reverse match

    async def _run_reverse_match(self, query: CompanyQuery) -> list[SourceRecord]:
        adapters = self._registry.by_pattern(QueryPattern.REVERSE_MATCH)
        if not adapters or not (query.company_name or query.crno):
            return []
        group_name = infer_group_name(
            query.company_name, prefix_fallback=self._config.group_prefix_fallback
        )
        calls = []
        for adapter in adapters:
            key = _query_key(adapter.query_key_type, query, group_name=group_name)
            if key is not None:
                calls.append((adapter.id, partial(self._matched_affiliates, adapter, key, query)))
        results = await self._fanout.gather(calls)
        return [record for records in results if records for record in records]

    async def _matched_affiliates(
        self, adapter: SourceAdapter, key: str, query: CompanyQuery
    ) -> list[SourceRecord]:
        affiliates = await self._fetch_records(adapter, key)
        return filter_affiliates(affiliates, company_name=query.company_name, crno=query.crno)

    # bulk filter

    async def _run_bulk_filter(self, query: CompanyQuery) -> list[SourceRecord]:
        brno = normalize_brno(query.brno)
        bulk_index = self._bulk_index
        if brno is None or bulk_index is None:
            return []
        if self._discovery_bulk is not None:
            return list(self._discovery_bulk)
        await self._warm_bulk_index(bulk_index)
        transport = self._transport
        calls = [
            (source.id, partial(bulk_index.lookup, source, brno, transport=transport))
            for source in bulk_index.sources
        ]
        results = await self._fanout.gather(calls, counts_success=_is_some)
        return [record for record in results if record is not None]

    # phonetic multi-step

    async def _run_phonetic(self, query: CompanyQuery) -> list[SourceRecord]:
        company_name = query.company_name
        if not company_name or not self._registry.phonetic:
            return []
        results = await asyncio.gather(
            *(
                self._phonetic_record(adapter, company_name, query)
                for adapter in self._registry.phonetic
            )
        )
        return [record for record in results if record is not None]

    async def _phonetic_record(
        self, adapter: PhoneticSearchAdapter, company_name: str, query: CompanyQuery
    ) -> SourceRecord | None:
        variants = name_variants(company_name, limit=self._config.max_name_variants)
        for variant in variants:
            candidates = await self._fanout.call(
                f"{adapter.id}:search",
                partial(self._phonetic_candidates, adapter, variant),
            )
            if not candidates:
                continue
            accepted = select_phonetic_candidate(
                candidates, known_brno=query.brno, search_name=variant
            )
            if accepted is None:
                continue
            if accepted.sequence_id is None:
                # without a sequence id there is no workplace detail to fetch
                log.debug("%s candidate for %s has no sequence id", adapter.id, variant)
                return None
            log.debug("%s accepted %s for %s", adapter.id, accepted.record.company_name, variant)
            return await self._complete_phonetic(adapter, accepted, query, accepted.sequence_id)
        return None

    async def _phonetic_candidates(
        self, adapter: PhoneticSearchAdapter, variant: str
    ) -> Sequence[SearchCandidate]:
        payload = await self._fetch(adapter.build_search_request(variant))
        return adapter.extract_candidates(payload)

    async def _complete_phonetic(
        self,
        adapter: PhoneticSearchAdapter,
        candidate: SearchCandidate,
        query: CompanyQuery,
        sequence_id: str,
    ) -> SourceRecord:
        requests = adapter.build_followup_requests(sequence_id)
        keys = list(requests)
        payloads = await self._fanout.gather(
            [(f"{adapter.id}:{key}", partial(self._fetch, requests[key])) for key in keys],
            counts_success=_is_some,
        )
        followups = {
            key: payload
            for key, payload in zip(keys, payloads, strict=True)
            if payload is not None
        }
        record = replace(adapter.assemble_record(candidate, followups), source=adapter.name)
        if record.brno is None and masked_brno_matches(candidate.record.brno, query.brno):
            # the masked number agrees with the one being searched
            record = replace(record, brno=normalize_brno(query.brno))
        return record


def _query_key(
    key_type: QueryKeyType,
    query: CompanyQuery,
    *,
    group_name: str | None = None,
) -> str | None:
    match key_type:
        case QueryKeyType.BRNO:
            return normalize_brno(query.brno)
        case QueryKeyType.CRNO:
            return normalize_crno(query.crno)
        case QueryKeyType.COMPANY_NAME:
            return query.company_name
        case QueryKeyType.GROUP_NAME:
            return group_name
        case QueryKeyType.NONE:
            return ""
