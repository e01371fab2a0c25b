"""SQLAlchemy table metadata for the entity store.

The domain model uses slotted dataclasses, so tables are kept as Core ``Table``
objects and repositories translate rows explicitly instead of mapping classes.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, cast

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    Index,
    Integer,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
    orm,
)

from firmlink.domain.model import CrossCheckField, MatchLevel

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class StringTuple(TypeDecorator[tuple[str, ...]]):
    """Ordered list of strings stored as a JSON array."""

    impl = JSON
    cache_ok = True

    def process_bind_param(self, value: tuple[str, ...] | None, dialect: Dialect) -> list[str]:
        _ = dialect
        return list(value or ())

    def process_result_value(self, value: object, dialect: Dialect) -> tuple[str, ...]:
        _ = dialect
        if not isinstance(value, list):
            return ()
        return tuple(str(item) for item in cast(list[Any], value))


def _enum_values(enum_cls: type[MatchLevel] | type[CrossCheckField]) -> list[str]:
    return [member.value for member in enum_cls]


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

entity_registry_table = Table(
    "entity_registry",
    mapper_registry.metadata,
    Column("entity_id", String(64), primary_key=True),
    Column("brno", String(10), nullable=True, index=True),
    Column("crno", String(13), nullable=True, index=True),
    Column("canonical_name", String, nullable=True),
    Column("name_variants", StringTuple, nullable=False),
    Column("confidence", Float, nullable=False),
    Column(
        "match_level",
        Enum(
            MatchLevel,
            native_enum=False,
            length=16,
            values_callable=_enum_values,
            validate_strings=True,
        ),
        nullable=False,
    ),
    Column("source_count", Integer, nullable=False),
    Column("sources", StringTuple, nullable=False),
    Column("last_fetched_at", UTCDateTime, nullable=False),
    Column("refresh_due_at", UTCDateTime, nullable=False, index=True),
    Column("is_stale", Boolean, nullable=False, default=False),
    Column("batch_id", String, nullable=True),
)

entity_source_data_table = Table(
    "entity_source_data",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("entity_id", String(64), nullable=False),
    Column("source_name", String, nullable=False),
    Column("brno", String(10), nullable=True),
    Column("crno", String(13), nullable=True),
    Column("company_name", String, nullable=True),
    Column("address", String, nullable=True),
    Column("representative", String, nullable=True),
    Column("industry_code", String, nullable=True),
    Column("raw_data", JSON, nullable=True),
    Column("fetched_at", UTCDateTime, nullable=False),
    Column("is_current", Boolean, nullable=False, default=True),
    UniqueConstraint("entity_id", "source_name"),
)

source_crosscheck_table = Table(
    "source_crosscheck",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("entity_id", String(64), nullable=False, index=True),
    Column("source_a", String, nullable=False),
    Column("source_b", String, nullable=False),
    Column(
        "field",
        Enum(
            CrossCheckField,
            native_enum=False,
            length=32,
            values_callable=_enum_values,
            validate_strings=True,
        ),
        nullable=False,
    ),
    Column("value_a", String, nullable=False),
    Column("value_b", String, nullable=False),
    Column("similarity", Float, nullable=False),
    Column("is_conflict", Boolean, nullable=False),
    Column("checked_at", UTCDateTime, nullable=False, index=True),
)

collection_log_table = Table(
    "collection_log",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("log_type", String, nullable=False),
    Column("status", String, nullable=False),
    Column("message", String, nullable=False),
    Column("metadata", JSON, nullable=False),
    Column("created_at", UTCDateTime, nullable=False),
)

bulk_record_table = Table(
    "bulk_record",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("source_id", String, nullable=False),
    Column("brno", String(10), nullable=False),
    Column("company_name", String, nullable=True),
    Column("raw_data", JSON, nullable=False),
    Index("ix_bulk_record_source_id_brno", "source_id", "brno"),
)

