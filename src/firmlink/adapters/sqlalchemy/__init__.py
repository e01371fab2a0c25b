"""SQLAlchemy adapter package for firmlink."""

from __future__ import annotations

from .mappings import mapper_registry
from .repositories import (
    SqlAlchemyBulkRecordRepository,
    SqlAlchemyCollectionLogRepository,
    SqlAlchemyCrossCheckRepository,
    SqlAlchemyEntityRegistryRepository,
    SqlAlchemySourceSnapshotRepository,
)
from .unit_of_work import (
    SqlAlchemyEntityUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyBulkRecordRepository",
    "SqlAlchemyCollectionLogRepository",
    "SqlAlchemyCrossCheckRepository",
    "SqlAlchemyEntityRegistryRepository",
    "SqlAlchemyEntityUnitOfWork",
    "SqlAlchemySourceSnapshotRepository",
    "StartupError",
    "configured_engine",
    "is_started",
    "mapper_registry",
    "shutdown",
    "startup",
]
