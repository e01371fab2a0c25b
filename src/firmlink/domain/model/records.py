"""Source records and resolved entities."""

from __future__ import annotations

from dataclasses import dataclass, field

from firmlink.domain.model.enums import MatchLevel


@dataclass(slots=True, frozen=True)
class SourceRecord:
    """One source's standardised answer about a company.

    ``source`` is the human readable adapter name. Adapters may leave it blank;
    the orchestrator stamps it before records reach resolution.
    """

    source: str = ""
    brno: str | None = None
    crno: str | None = None
    company_name: str | None = None
    address: str | None = None
    representative: str | None = None
    industry_code: str | None = None
    raw_data: object = None


@dataclass(slots=True, frozen=True)
class EntityIdentifiers:
    brno: str | None = None
    crno: str | None = None


@dataclass(slots=True, frozen=True)
class Entity:
    entity_id: str
    confidence: float
    match_level: MatchLevel
    identifiers: EntityIdentifiers
    canonical_name: str | None
    name_variants: tuple[str, ...] = ()
    sources: tuple[str, ...] = ()
    members: tuple[SourceRecord, ...] = ()


@dataclass(slots=True, frozen=True)
class ResolutionResult:
    entities: tuple[Entity, ...] = field(default_factory=tuple)
    unmatched: tuple[SourceRecord, ...] = field(default_factory=tuple)
