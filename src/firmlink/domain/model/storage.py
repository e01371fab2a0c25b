"""Persisted views of resolved entities and the summaries of store operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from firmlink.domain.model.records import Entity, EntityIdentifiers, SourceRecord

if TYPE_CHECKING:
    from datetime import datetime

    from firmlink.domain.model.enums import CrossCheckField, MatchLevel


@dataclass(slots=True)
class RegistryEntry:
    """One row per resolved company, keyed by ``ent_<brno>`` or ``ent_<crno>``."""

    entity_id: str
    brno: str | None
    crno: str | None
    canonical_name: str | None
    name_variants: tuple[str, ...]
    confidence: float
    match_level: MatchLevel
    source_count: int
    sources: tuple[str, ...]
    last_fetched_at: datetime
    refresh_due_at: datetime
    is_stale: bool = False
    batch_id: str | None = None


@dataclass(slots=True)
class SourceSnapshot:
    """Last-seen answer of one source for one entity."""

    entity_id: str
    source_name: str
    brno: str | None
    crno: str | None
    company_name: str | None
    address: str | None
    representative: str | None
    industry_code: str | None
    raw_data: object
    fetched_at: datetime
    is_current: bool = True

    @classmethod
    def from_record(
        cls,
        entity_id: str,
        record: SourceRecord,
        *,
        fetched_at: datetime,
    ) -> SourceSnapshot:
        return cls(
            entity_id=entity_id,
            source_name=record.source,
            brno=record.brno,
            crno=record.crno,
            company_name=record.company_name,
            address=record.address,
            representative=record.representative,
            industry_code=record.industry_code,
            raw_data=record.raw_data,
            fetched_at=fetched_at,
        )

    def as_record(self) -> SourceRecord:
        return SourceRecord(
            source=self.source_name,
            brno=self.brno,
            crno=self.crno,
            company_name=self.company_name,
            address=self.address,
            representative=self.representative,
            industry_code=self.industry_code,
            raw_data=self.raw_data,
        )


@dataclass(slots=True, frozen=True)
class CrossCheck:
    """Agreement of two sources on one field of one entity."""

    entity_id: str
    source_a: str
    source_b: str
    field: CrossCheckField
    value_a: str
    value_b: str
    similarity: float
    is_conflict: bool
    checked_at: datetime


@dataclass(slots=True, frozen=True)
class CollectionLogEntry:
    log_type: str
    status: str
    message: str
    metadata: dict[str, object]
    created_at: datetime


@dataclass(slots=True, frozen=True)
class StoredEntity:
    """Registry row joined with its current snapshots and cross-check results."""

    registry: RegistryEntry
    snapshots: tuple[SourceSnapshot, ...] = ()
    conflicts: tuple[CrossCheck, ...] = ()

    @property
    def entity_id(self) -> str:
        return self.registry.entity_id

    def as_entity(self) -> Entity:
        registry = self.registry
        return Entity(
            entity_id=registry.entity_id,
            confidence=registry.confidence,
            match_level=registry.match_level,
            identifiers=EntityIdentifiers(brno=registry.brno, crno=registry.crno),
            canonical_name=registry.canonical_name,
            name_variants=registry.name_variants,
            sources=registry.sources,
            members=tuple(snapshot.as_record() for snapshot in self.snapshots),
        )


@dataclass(slots=True, frozen=True)
class EntityDiff:
    added: tuple[str, ...] = ()
    updated: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    unchanged: tuple[str, ...] = ()

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.updated or self.removed)


@dataclass(slots=True, frozen=True)
class PersistSummary:
    entities_saved: int = 0
    sources_saved: int = 0
    crosschecks_saved: int = 0


@dataclass(slots=True, frozen=True)
class RefreshSummary:
    refreshed: int = 0
    failed: int = 0
    failed_entity_ids: tuple[str, ...] = field(default_factory=tuple)


@dataclass(slots=True, frozen=True)
class ConflictCount:
    entity_id: str
    conflict_count: int
    fields: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class AuditSummary:
    entities_with_conflicts: int = 0
    total_conflicts: int = 0
