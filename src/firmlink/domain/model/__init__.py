"""Public domain model surface."""

from __future__ import annotations

from firmlink.domain.model.enums import CrossCheckField, MatchLevel
from firmlink.domain.model.records import Entity, EntityIdentifiers, ResolutionResult, SourceRecord
from firmlink.domain.model.search import (
    AdapterError,
    CompanyQuery,
    SearchMeta,
    SearchResult,
)
from firmlink.domain.model.storage import (
    AuditSummary,
    CollectionLogEntry,
    ConflictCount,
    CrossCheck,
    EntityDiff,
    PersistSummary,
    RefreshSummary,
    RegistryEntry,
    SourceSnapshot,
    StoredEntity,
)

__all__ = [  # noqa: RUF022
    # enums
    "CrossCheckField",
    "MatchLevel",
    # resolution
    "SourceRecord",
    "EntityIdentifiers",
    "Entity",
    "ResolutionResult",
    # search
    "AdapterError",
    "CompanyQuery",
    "SearchMeta",
    "SearchResult",
    # storage
    "AuditSummary",
    "CollectionLogEntry",
    "ConflictCount",
    "CrossCheck",
    "EntityDiff",
    "PersistSummary",
    "RefreshSummary",
    "RegistryEntry",
    "SourceSnapshot",
    "StoredEntity",
]
