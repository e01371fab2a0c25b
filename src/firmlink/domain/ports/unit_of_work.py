"""Transaction boundary for writing one resolved company and its evidence."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from firmlink.domain.ports.persistence import (
        BulkRecordRepository,
        CollectionLogRepository,
        CrossCheckRepository,
        EntityRegistryRepository,
        SourceSnapshotRepository,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Repositories that share one database transaction."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Commits or rolls back every repository write made inside the ``with`` block.

    Leaving the block with an exception rolls back; nothing is committed implicitly.
    """

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class EntityRepositories(RepositoryCollection):
    """Repositories behind the entity store and the materialised bulk index."""

    registry: EntityRegistryRepository
    snapshots: SourceSnapshotRepository
    crosschecks: CrossCheckRepository
    logs: CollectionLogRepository
    bulk_records: BulkRecordRepository


type EntityUnitOfWork = UnitOfWork[EntityRepositories]
type EntityUnitOfWorkFactory = Callable[[], EntityUnitOfWork]
