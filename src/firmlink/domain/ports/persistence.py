"""Ports for persisting resolved entities and their evidence."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from firmlink.domain.model import (
    CollectionLogEntry,
    ConflictCount,
    CrossCheck,
    RegistryEntry,
    SourceSnapshot,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from datetime import datetime


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class EntityRegistryRepository(Repository[RegistryEntry], Protocol):
    """Upsert-by-entity-id store of resolved companies.

    ``add`` keeps already stored identifiers and batch tags when the new entry
    carries none, and always clears the stale flag.
    """

    def get(self, entity_id: str) -> RegistryEntry | None: ...

    def find_by_identifier(
        self,
        *,
        brno: str | None = None,
        crno: str | None = None,
        allow_stale: bool = False,
    ) -> RegistryEntry | None: ...

    def list_due(self, *, now: datetime, limit: int) -> list[RegistryEntry]: ...

    def mark_stale(self, entity_id: str) -> None: ...


@runtime_checkable
class SourceSnapshotRepository(Repository[SourceSnapshot], Protocol):
    """Upsert-by-(entity, source) store of the last answer of each source."""

    def retire_absent(self, entity_id: str, *, keep: Iterable[str]) -> int: ...

    def list_current(self, entity_id: str) -> list[SourceSnapshot]: ...


@runtime_checkable
class CrossCheckRepository(Protocol):
    def replace_for_entity(self, entity_id: str, checks: Sequence[CrossCheck]) -> None: ...

    def list_for_entity(self, entity_id: str) -> list[CrossCheck]: ...

    def conflict_counts_since(self, since: datetime, *, limit: int) -> list[ConflictCount]:
        """Entities with conflicts checked after ``since``, most conflicted first."""
        ...


@runtime_checkable
class CollectionLogRepository(Repository[CollectionLogEntry], Protocol):
    """Append-only audit sink."""


@runtime_checkable
class BulkRecordRepository(Protocol):
    """Externally materialised index of bulk datasets, looked up by BRNO."""

    def add_items(
        self,
        source_id: str,
        rows: Sequence[tuple[str, str | None, Mapping[str, object]]],
    ) -> int: ...

    def find_by_brno(
        self, source_id: str, brno: str, *, limit: int = 100
    ) -> list[Mapping[str, object]]: ...

    def count(self, source_id: str) -> int: ...

    def clear(self, source_id: str) -> int: ...
