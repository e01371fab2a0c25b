"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import (
    BulkRecordRepository,
    CollectionLogRepository,
    CrossCheckRepository,
    EntityRegistryRepository,
    Repository,
    SourceSnapshotRepository,
)
from .sources import (
    BulkSource,
    BulkStrategy,
    DiscoveryAdapter,
    ExtractedRecords,
    PhoneticSearchAdapter,
    QueryKeyType,
    QueryPattern,
    SearchCandidate,
    SourceAdapter,
    SourceRegistry,
    SourceRequest,
)
from .transport import SourceResponseError, SourceTransport, TransportFactory
from .unit_of_work import (
    EntityRepositories,
    EntityUnitOfWork,
    EntityUnitOfWorkFactory,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "BulkRecordRepository",
    "BulkSource",
    "BulkStrategy",
    "CollectionLogRepository",
    "CrossCheckRepository",
    "DiscoveryAdapter",
    "EntityRegistryRepository",
    "EntityRepositories",
    "EntityUnitOfWork",
    "EntityUnitOfWorkFactory",
    "ExtractedRecords",
    "PhoneticSearchAdapter",
    "QueryKeyType",
    "QueryPattern",
    "Repository",
    "RepositoryCollection",
    "SearchCandidate",
    "SourceAdapter",
    "SourceRegistry",
    "SourceRequest",
    "SourceResponseError",
    "SourceSnapshotRepository",
    "SourceTransport",
    "TransportFactory",
    "UnitOfWork",
]
