"""Query and result types of a multi-source company search."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from firmlink.domain.model.records import Entity, SourceRecord


@dataclass(slots=True, frozen=True)
class CompanyQuery:
    """Partial lookup key; any subset of the three fields may be set."""

    brno: str | None = None
    crno: str | None = None
    company_name: str | None = None

    @property
    def cache_key(self) -> str:
        return f"{self.brno or ''}_{self.crno or ''}_{self.company_name or ''}"

    @property
    def is_empty(self) -> bool:
        return not (self.brno or self.crno or self.company_name)


@dataclass(slots=True, frozen=True)
class AdapterError:
    api: str
    error: str


@dataclass(slots=True)
class SearchMeta:
    """Mutable bookkeeping filled in while a search runs."""

    apis_attempted: int = 0
    apis_succeeded: int = 0
    apis_failed: int = 0
    errors: list[AdapterError] = field(default_factory=list)
    timing: dict[str, float] = field(default_factory=dict)
    total_records: int = 0

    def record_failure(self, api: str, error: str) -> None:
        self.apis_failed += 1
        self.errors.append(AdapterError(api=api, error=error))


@dataclass(slots=True, frozen=True)
class SearchResult:
    query: CompanyQuery
    entities: tuple[Entity, ...]
    unmatched: tuple[SourceRecord, ...]
    meta: SearchMeta
    from_cache: bool = False
