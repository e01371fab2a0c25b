"""Ports describing external company data sources.

Source descriptors are data: they know how to build a request for a key and how to
turn the raw payload into :class:`SourceRecord` values. The orchestrator is generic
over these protocols and never encodes source-specific URLs or field names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from firmlink.domain.model import SourceRecord


class QueryKeyType(StrEnum):
    BRNO = "brno"
    CRNO = "crno"
    COMPANY_NAME = "company_name"
    GROUP_NAME = "group_name"
    NONE = "none"


class QueryPattern(StrEnum):
    DIRECT = "direct"
    TWO_STEP = "two_step"
    REVERSE_MATCH = "reverse_match"


class BulkStrategy(StrEnum):
    MEMORY = "memory"
    DATABASE = "database"


@dataclass(slots=True, frozen=True)
class SourceRequest:
    url: str
    method: str = "GET"
    params: Mapping[str, object] = field(default_factory=dict)
    body: object | None = None


type ExtractedRecords = SourceRecord | Sequence[SourceRecord] | None


@runtime_checkable
class SourceAdapter(Protocol):
    """Single-call source keyed by one query field.

    For ``DIRECT`` sources the extracted record is used as-is, for ``TWO_STEP``
    sources the extracted records are candidates of a name search, and for
    ``REVERSE_MATCH`` sources they are the affiliates of a business group.
    """

    @property
    def id(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def pattern(self) -> QueryPattern: ...

    @property
    def query_key_type(self) -> QueryKeyType: ...

    def build_request(self, key: str) -> SourceRequest: ...

    def extract_response(self, payload: object) -> ExtractedRecords: ...


@runtime_checkable
class DiscoveryAdapter(Protocol):
    """Source able to map a BRNO or a name onto the complementary identifiers."""

    @property
    def id(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def direct_twin_id(self) -> str | None:
        """Id of the direct adapter calling the same endpoint, skipped after discovery."""
        ...

    def build_request(
        self, *, brno: str | None = None, company_name: str | None = None
    ) -> SourceRequest: ...

    def extract_candidates(self, payload: object) -> Sequence[SourceRecord]: ...


@dataclass(slots=True, frozen=True)
class SearchCandidate:
    """Search hit whose identifier may be masked; ``sequence_id`` keys follow-up calls."""

    record: SourceRecord
    sequence_id: str | None = None


@runtime_checkable
class PhoneticSearchAdapter(Protocol):
    """Multi-step source searched by name variants and completed by follow-up calls."""

    @property
    def id(self) -> str: ...

    @property
    def name(self) -> str: ...

    def build_search_request(self, name_variant: str) -> SourceRequest: ...

    def extract_candidates(self, payload: object) -> Sequence[SearchCandidate]: ...

    def build_followup_requests(self, sequence_id: str) -> Mapping[str, SourceRequest]: ...

    def assemble_record(
        self,
        candidate: SearchCandidate,
        followups: Mapping[str, object],
    ) -> SourceRecord: ...


@runtime_checkable
class BulkSource(Protocol):
    """Paged dataset filtered locally by BRNO instead of being queried per key."""

    @property
    def id(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def strategy(self) -> BulkStrategy: ...

    def build_page_request(self, page_no: int, page_size: int) -> SourceRequest: ...

    def extract_items(self, payload: object) -> Sequence[Mapping[str, object]]: ...

    def extract_brno(self, item: Mapping[str, object]) -> str | None: ...

    def extract_name(self, item: Mapping[str, object]) -> str | None: ...


@dataclass(slots=True, frozen=True)
class SourceRegistry:
    """Catalogue of every source available to a deployment."""

    adapters: tuple[SourceAdapter, ...] = ()
    discovery: DiscoveryAdapter | None = None
    phonetic: tuple[PhoneticSearchAdapter, ...] = ()
    bulk_sources: tuple[BulkSource, ...] = ()

    def by_pattern(self, pattern: QueryPattern) -> tuple[SourceAdapter, ...]:
        return tuple(adapter for adapter in self.adapters if adapter.pattern == pattern)

    def bulk_source(self, source_id: str) -> BulkSource:
        for source in self.bulk_sources:
            if source.id == source_id:
                return source
        raise KeyError(f"Unknown bulk source: {source_id}")
