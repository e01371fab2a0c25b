"""Store resolved entities with their per-source evidence and cross-source conflicts."""

from __future__ import annotations

import json
import re
from datetime import UTC, datetime, timedelta
from itertools import combinations
from logging import getLogger
from typing import TYPE_CHECKING, Final

from firmlink.config.refresh import DEFAULT_REFRESH_INTERVAL_HOURS
from firmlink.domain.model import (
    CrossCheck,
    CrossCheckField,
    EntityDiff,
    PersistSummary,
    RegistryEntry,
    SourceSnapshot,
    StoredEntity,
)
from firmlink.domain.normalize import MATCH_THRESHOLD, calculate_name_similarity

if TYPE_CHECKING:
    from collections.abc import Sequence

    from firmlink.domain.model import Entity, SearchResult, SourceRecord
    from firmlink.domain.ports import EntityUnitOfWorkFactory

log = getLogger(__name__)

ADDRESS_PREFIX_SIMILARITY: Final[float] = 0.9
ADDRESS_MISMATCH_SIMILARITY: Final[float] = 0.3
SIMILARITY_DIGITS: Final[int] = 4

_WHITESPACE = re.compile(r"\s+")


def persist_search_result(
    result: SearchResult,
    *,
    unit_of_work_factory: EntityUnitOfWorkFactory,
    batch_id: str | None = None,
    now: datetime | None = None,
    refresh_interval_hours: float = DEFAULT_REFRESH_INTERVAL_HOURS,
) -> PersistSummary:
    """Upsert every identified entity of ``result``, one transaction per entity.

    Entities without BRNO and CRNO have no stable key and are skipped. Store errors
    roll back the entity being written and propagate; entities committed before it
    stay committed.
    """

    now = now or datetime.now(UTC)
    refresh_due_at = now + timedelta(hours=refresh_interval_hours)
    entities_saved = sources_saved = crosschecks_saved = 0

    for entity in result.entities:
        if entity.identifiers.brno is None and entity.identifiers.crno is None:
            log.debug("Skipping %s: no registration number to key it by", entity.entity_id)
            continue

        snapshots = _snapshots_for(entity, fetched_at=now)
        checks = compute_cross_checks(entity.entity_id, snapshots, checked_at=now)
        with unit_of_work_factory() as uow:
            repositories = uow.repositories
            repositories.registry.add(
                RegistryEntry(
                    entity_id=entity.entity_id,
                    brno=entity.identifiers.brno,
                    crno=entity.identifiers.crno,
                    canonical_name=entity.canonical_name,
                    name_variants=entity.name_variants,
                    confidence=entity.confidence,
                    match_level=entity.match_level,
                    source_count=len(entity.sources),
                    sources=entity.sources,
                    last_fetched_at=now,
                    refresh_due_at=refresh_due_at,
                    batch_id=batch_id,
                )
            )
            for snapshot in snapshots:
                repositories.snapshots.add(snapshot)
            repositories.snapshots.retire_absent(
                entity.entity_id, keep=[snapshot.source_name for snapshot in snapshots]
            )
            repositories.crosschecks.replace_for_entity(entity.entity_id, checks)
            uow.commit()

        entities_saved += 1
        sources_saved += len(snapshots)
        crosschecks_saved += len(checks)

    log.info(
        "Persisted %s entities, %s source snapshots, %s cross-checks",
        entities_saved,
        sources_saved,
        crosschecks_saved,
    )
    return PersistSummary(
        entities_saved=entities_saved,
        sources_saved=sources_saved,
        crosschecks_saved=crosschecks_saved,
    )


def _snapshots_for(entity: Entity, *, fetched_at: datetime) -> list[SourceSnapshot]:
    # one snapshot per source; the first record of a source wins
    first_by_source: dict[str, SourceRecord] = {}
    for member in entity.members:
        first_by_source.setdefault(member.source, member)
    return [
        SourceSnapshot.from_record(entity.entity_id, record, fetched_at=fetched_at)
        for record in first_by_source.values()
    ]


def field_similarity(field: CrossCheckField, value_a: str, value_b: str) -> float:
    match field:
        case CrossCheckField.COMPANY_NAME:
            return calculate_name_similarity(value_a, value_b)
        case CrossCheckField.ADDRESS:
            a = _WHITESPACE.sub(" ", value_a).strip()
            b = _WHITESPACE.sub(" ", value_b).strip()
            if a == b:
                return 1.0
            if a.startswith(b) or b.startswith(a):
                return ADDRESS_PREFIX_SIMILARITY
            return ADDRESS_MISMATCH_SIMILARITY
        case _:
            return 1.0 if value_a == value_b else 0.0


def compute_cross_checks(
    entity_id: str,
    snapshots: Sequence[SourceSnapshot],
    *,
    checked_at: datetime,
) -> list[CrossCheck]:
    """Compare every pair of sources on every field both of them report."""

    checks: list[CrossCheck] = []
    for a, b in combinations(snapshots, 2):
        for field in CrossCheckField:
            value_a = getattr(a, field.value)
            value_b = getattr(b, field.value)
            if not value_a or not value_b:
                continue
            similarity = round(field_similarity(field, value_a, value_b), SIMILARITY_DIGITS)
            checks.append(
                CrossCheck(
                    entity_id=entity_id,
                    source_a=a.source_name,
                    source_b=b.source_name,
                    field=field,
                    value_a=value_a,
                    value_b=value_b,
                    similarity=similarity,
                    is_conflict=similarity < MATCH_THRESHOLD,
                    checked_at=checked_at,
                )
            )
    return checks


def load_entity(
    *,
    unit_of_work_factory: EntityUnitOfWorkFactory,
    brno: str | None = None,
    crno: str | None = None,
    allow_stale: bool = False,
) -> StoredEntity | None:
    """Latest stored entity for a BRNO (preferred) or CRNO, with its current evidence."""

    if not brno and not crno:
        return None
    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        if brno:
            entry = repositories.registry.find_by_identifier(brno=brno, allow_stale=allow_stale)
        else:
            entry = repositories.registry.find_by_identifier(crno=crno, allow_stale=allow_stale)
        if entry is None:
            return None
        snapshots = repositories.snapshots.list_current(entry.entity_id)
        conflicts = [
            check
            for check in repositories.crosschecks.list_for_entity(entry.entity_id)
            if check.is_conflict
        ]
    return StoredEntity(registry=entry, snapshots=tuple(snapshots), conflicts=tuple(conflicts))


def _payload_key(raw_data: object) -> str:
    return json.dumps(raw_data, sort_keys=True, ensure_ascii=False, default=str)


def compute_diff(stored: StoredEntity | None, live: SearchResult | None) -> EntityDiff | None:
    """Per-source comparison of stored payloads against a fresh search.

    The live entity with the stored entity's id is compared; without one the first
    live entity is used. ``None`` when either side has nothing to compare.
    """

    if stored is None or live is None or not live.entities:
        return None
    live_entity = next(
        (entity for entity in live.entities if entity.entity_id == stored.entity_id),
        live.entities[0],
    )

    stored_payloads = {
        snapshot.source_name: _payload_key(snapshot.raw_data) for snapshot in stored.snapshots
    }
    live_payloads: dict[str, str] = {}
    for member in live_entity.members:
        live_payloads.setdefault(member.source, _payload_key(member.raw_data))

    added: list[str] = []
    updated: list[str] = []
    unchanged: list[str] = []
    for source, payload in live_payloads.items():
        previous = stored_payloads.get(source)
        if previous is None:
            added.append(source)
        elif previous != payload:
            updated.append(source)
        else:
            unchanged.append(source)
    removed = [source for source in stored_payloads if source not in live_payloads]

    return EntityDiff(
        added=tuple(added),
        updated=tuple(updated),
        removed=tuple(removed),
        unchanged=tuple(unchanged),
    )
