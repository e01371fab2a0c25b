"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import delete, func, insert, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite

from firmlink.adapters.sqlalchemy.mappings import (
    bulk_record_table,
    collection_log_table,
    entity_registry_table,
    entity_source_data_table,
    source_crosscheck_table,
)
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

    from sqlalchemy import Row, Table
    from sqlalchemy.engine import CursorResult
    from sqlalchemy.orm import Session


def _upsert(session: Session, table: Table) -> sqlite.Insert | postgresql.Insert:
    """Dialect-specific INSERT that supports ``ON CONFLICT DO UPDATE``."""

    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite.insert(table)
    if dialect == "postgresql":
        return postgresql.insert(table)
    msg = f"Upserts are not supported on {dialect}"
    raise NotImplementedError(msg)


def _rowcount(result: object) -> int:
    return cast("CursorResult[Any]", result).rowcount


def _registry_from_row(row: Row[Any]) -> RegistryEntry:
    return RegistryEntry(
        entity_id=row.entity_id,
        brno=row.brno,
        crno=row.crno,
        canonical_name=row.canonical_name,
        name_variants=row.name_variants,
        confidence=row.confidence,
        match_level=row.match_level,
        source_count=row.source_count,
        sources=row.sources,
        last_fetched_at=row.last_fetched_at,
        refresh_due_at=row.refresh_due_at,
        is_stale=row.is_stale,
        batch_id=row.batch_id,
    )


def _snapshot_from_row(row: Row[Any]) -> SourceSnapshot:
    return SourceSnapshot(
        entity_id=row.entity_id,
        source_name=row.source_name,
        brno=row.brno,
        crno=row.crno,
        company_name=row.company_name,
        address=row.address,
        representative=row.representative,
        industry_code=row.industry_code,
        raw_data=row.raw_data,
        fetched_at=row.fetched_at,
        is_current=row.is_current,
    )


def _crosscheck_from_row(row: Row[Any]) -> CrossCheck:
    return CrossCheck(
        entity_id=row.entity_id,
        source_a=row.source_a,
        source_b=row.source_b,
        field=row.field,
        value_a=row.value_a,
        value_b=row.value_b,
        similarity=row.similarity,
        is_conflict=row.is_conflict,
        checked_at=row.checked_at,
    )


class SqlAlchemyEntityRegistryRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: RegistryEntry) -> None:
        table = entity_registry_table
        stmt = _upsert(self.session, table).values(
            entity_id=entity.entity_id,
            brno=entity.brno,
            crno=entity.crno,
            canonical_name=entity.canonical_name,
            name_variants=entity.name_variants,
            confidence=entity.confidence,
            match_level=entity.match_level,
            source_count=entity.source_count,
            sources=entity.sources,
            last_fetched_at=entity.last_fetched_at,
            refresh_due_at=entity.refresh_due_at,
            is_stale=False,
            batch_id=entity.batch_id,
        )
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.entity_id],
            set_={
                "brno": func.coalesce(excluded.brno, table.c.brno),
                "crno": func.coalesce(excluded.crno, table.c.crno),
                "batch_id": func.coalesce(excluded.batch_id, table.c.batch_id),
                "canonical_name": excluded.canonical_name,
                "name_variants": excluded.name_variants,
                "confidence": excluded.confidence,
                "match_level": excluded.match_level,
                "source_count": excluded.source_count,
                "sources": excluded.sources,
                "last_fetched_at": excluded.last_fetched_at,
                "refresh_due_at": excluded.refresh_due_at,
                "is_stale": False,
            },
        )
        self.session.execute(stmt)

    def get(self, entity_id: str) -> RegistryEntry | None:
        stmt = select(entity_registry_table).where(entity_registry_table.c.entity_id == entity_id)
        row = self.session.execute(stmt).one_or_none()
        return None if row is None else _registry_from_row(row)

    def find_by_identifier(
        self,
        *,
        brno: str | None = None,
        crno: str | None = None,
        allow_stale: bool = False,
    ) -> RegistryEntry | None:
        table = entity_registry_table
        if brno is not None:
            stmt = select(table).where(table.c.brno == brno)
        elif crno is not None:
            stmt = select(table).where(table.c.crno == crno)
        else:
            return None
        if not allow_stale:
            stmt = stmt.where(table.c.is_stale.is_(False))
        stmt = stmt.order_by(table.c.last_fetched_at.desc()).limit(1)
        row = self.session.execute(stmt).one_or_none()
        return None if row is None else _registry_from_row(row)

    def list_due(self, *, now: datetime, limit: int) -> list[RegistryEntry]:
        table = entity_registry_table
        stmt = (
            select(table)
            .where(or_(table.c.is_stale.is_(True), table.c.refresh_due_at <= now))
            .order_by(table.c.refresh_due_at.asc())
            .limit(limit)
        )
        return [_registry_from_row(row) for row in self.session.execute(stmt)]

    def mark_stale(self, entity_id: str) -> None:
        table = entity_registry_table
        self.session.execute(
            update(table).where(table.c.entity_id == entity_id).values(is_stale=True)
        )


class SqlAlchemySourceSnapshotRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: SourceSnapshot) -> None:
        table = entity_source_data_table
        values = {
            "entity_id": entity.entity_id,
            "source_name": entity.source_name,
            "brno": entity.brno,
            "crno": entity.crno,
            "company_name": entity.company_name,
            "address": entity.address,
            "representative": entity.representative,
            "industry_code": entity.industry_code,
            "raw_data": entity.raw_data,
            "fetched_at": entity.fetched_at,
            "is_current": True,
        }
        stmt = _upsert(self.session, table).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.entity_id, table.c.source_name],
            set_={
                key: stmt.excluded[key]
                for key in values
                if key not in {"entity_id", "source_name"}
            },
        )
        self.session.execute(stmt)

    def retire_absent(self, entity_id: str, *, keep: Iterable[str]) -> int:
        table = entity_source_data_table
        stmt = (
            update(table)
            .where(table.c.entity_id == entity_id)
            .where(table.c.is_current.is_(True))
            .where(table.c.source_name.not_in(list(keep)))
            .values(is_current=False)
        )
        return _rowcount(self.session.execute(stmt))

    def list_current(self, entity_id: str) -> list[SourceSnapshot]:
        table = entity_source_data_table
        stmt = (
            select(table)
            .where(table.c.entity_id == entity_id)
            .where(table.c.is_current.is_(True))
            .order_by(table.c.id)
        )
        return [_snapshot_from_row(row) for row in self.session.execute(stmt)]


class SqlAlchemyCrossCheckRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def replace_for_entity(self, entity_id: str, checks: Sequence[CrossCheck]) -> None:
        table = source_crosscheck_table
        self.session.execute(delete(table).where(table.c.entity_id == entity_id))
        if not checks:
            return
        self.session.execute(
            insert(table),
            [
                {
                    "entity_id": check.entity_id,
                    "source_a": check.source_a,
                    "source_b": check.source_b,
                    "field": check.field,
                    "value_a": check.value_a,
                    "value_b": check.value_b,
                    "similarity": check.similarity,
                    "is_conflict": check.is_conflict,
                    "checked_at": check.checked_at,
                }
                for check in checks
            ],
        )

    def list_for_entity(self, entity_id: str) -> list[CrossCheck]:
        table = source_crosscheck_table
        stmt = select(table).where(table.c.entity_id == entity_id).order_by(table.c.id)
        return [_crosscheck_from_row(row) for row in self.session.execute(stmt)]

    def conflict_counts_since(self, since: datetime, *, limit: int) -> list[ConflictCount]:
        table = source_crosscheck_table
        conflict_count = func.count().label("conflict_count")
        stmt = (
            select(table.c.entity_id, conflict_count)
            .where(table.c.is_conflict.is_(True))
            .where(table.c.checked_at >= since)
            .group_by(table.c.entity_id)
            .order_by(conflict_count.desc(), table.c.entity_id)
            .limit(limit)
        )
        counts = [(row.entity_id, row.conflict_count) for row in self.session.execute(stmt)]
        if not counts:
            return []

        fields: dict[str, set[str]] = defaultdict(set)
        field_stmt = (
            select(table.c.entity_id, table.c.field)
            .where(table.c.is_conflict.is_(True))
            .where(table.c.checked_at >= since)
            .where(table.c.entity_id.in_([entity_id for entity_id, _ in counts]))
            .distinct()
        )
        for row in self.session.execute(field_stmt):
            fields[row.entity_id].add(str(row.field))

        return [
            ConflictCount(
                entity_id=entity_id,
                conflict_count=count,
                fields=tuple(sorted(fields[entity_id])),
            )
            for entity_id, count in counts
        ]


class SqlAlchemyCollectionLogRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: CollectionLogEntry) -> None:
        self.session.execute(
            insert(collection_log_table).values(
                log_type=entity.log_type,
                status=entity.status,
                message=entity.message,
                metadata=entity.metadata,
                created_at=entity.created_at,
            )
        )


class SqlAlchemyBulkRecordRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add_items(
        self,
        source_id: str,
        rows: Sequence[tuple[str, str | None, Mapping[str, object]]],
    ) -> int:
        if not rows:
            return 0
        self.session.execute(
            insert(bulk_record_table),
            [
                {
                    "source_id": source_id,
                    "brno": brno,
                    "company_name": company_name,
                    "raw_data": dict(raw_data),
                }
                for brno, company_name, raw_data in rows
            ],
        )
        return len(rows)

    def find_by_brno(
        self, source_id: str, brno: str, *, limit: int = 100
    ) -> list[Mapping[str, object]]:
        table = bulk_record_table
        stmt = (
            select(table.c.raw_data)
            .where(table.c.source_id == source_id)
            .where(table.c.brno == brno)
            .order_by(table.c.id)
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars())

    def count(self, source_id: str) -> int:
        table = bulk_record_table
        stmt = select(func.count()).select_from(table).where(table.c.source_id == source_id)
        return self.session.execute(stmt).scalar_one()

    def clear(self, source_id: str) -> int:
        table = bulk_record_table
        return _rowcount(self.session.execute(delete(table).where(table.c.source_id == source_id)))
