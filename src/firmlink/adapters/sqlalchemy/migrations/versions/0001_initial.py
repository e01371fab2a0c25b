"""Entity registry, source snapshots, cross-checks, collection log and bulk rows.

Revision ID: 0001
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "entity_registry",
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("brno", sa.String(10), nullable=True),
        sa.Column("crno", sa.String(13), nullable=True),
        sa.Column("canonical_name", sa.String(), nullable=True),
        sa.Column("name_variants", sa.JSON(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("match_level", sa.String(16), nullable=False),
        sa.Column("source_count", sa.Integer(), nullable=False),
        sa.Column("sources", sa.JSON(), nullable=False),
        sa.Column("last_fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("refresh_due_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_stale", sa.Boolean(), nullable=False),
        sa.Column("batch_id", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("entity_id", name=op.f("pk_entity_registry")),
    )
    op.create_index(op.f("ix_entity_registry_brno"), "entity_registry", ["brno"])
    op.create_index(op.f("ix_entity_registry_crno"), "entity_registry", ["crno"])
    op.create_index(
        op.f("ix_entity_registry_refresh_due_at"), "entity_registry", ["refresh_due_at"]
    )

    op.create_table(
        "entity_source_data",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("source_name", sa.String(), nullable=False),
        sa.Column("brno", sa.String(10), nullable=True),
        sa.Column("crno", sa.String(13), nullable=True),
        sa.Column("company_name", sa.String(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("representative", sa.String(), nullable=True),
        sa.Column("industry_code", sa.String(), nullable=True),
        sa.Column("raw_data", sa.JSON(), nullable=True),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_current", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_entity_source_data")),
        sa.UniqueConstraint(
            "entity_id", "source_name", name=op.f("uq_entity_source_data_entity_id")
        ),
    )

    op.create_table(
        "source_crosscheck",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("source_a", sa.String(), nullable=False),
        sa.Column("source_b", sa.String(), nullable=False),
        sa.Column("field", sa.String(32), nullable=False),
        sa.Column("value_a", sa.String(), nullable=False),
        sa.Column("value_b", sa.String(), nullable=False),
        sa.Column("similarity", sa.Float(), nullable=False),
        sa.Column("is_conflict", sa.Boolean(), nullable=False),
        sa.Column("checked_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_source_crosscheck")),
    )
    op.create_index(op.f("ix_source_crosscheck_entity_id"), "source_crosscheck", ["entity_id"])
    op.create_index(
        op.f("ix_source_crosscheck_checked_at"), "source_crosscheck", ["checked_at"]
    )

    op.create_table(
        "collection_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("log_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_collection_log")),
    )

    op.create_table(
        "bulk_record",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("source_id", sa.String(), nullable=False),
        sa.Column("brno", sa.String(10), nullable=False),
        sa.Column("company_name", sa.String(), nullable=True),
        sa.Column("raw_data", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_bulk_record")),
    )
    op.create_index("ix_bulk_record_source_id_brno", "bulk_record", ["source_id", "brno"])


def downgrade() -> None:
    op.drop_index("ix_bulk_record_source_id_brno", table_name="bulk_record")
    op.drop_table("bulk_record")
    op.drop_table("collection_log")
    op.drop_index(op.f("ix_source_crosscheck_checked_at"), table_name="source_crosscheck")
    op.drop_index(op.f("ix_source_crosscheck_entity_id"), table_name="source_crosscheck")
    op.drop_table("source_crosscheck")
    op.drop_table("entity_source_data")
    op.drop_index(op.f("ix_entity_registry_refresh_due_at"), table_name="entity_registry")
    op.drop_index(op.f("ix_entity_registry_crno"), table_name="entity_registry")
    op.drop_index(op.f("ix_entity_registry_brno"), table_name="entity_registry")
    op.drop_table("entity_registry")
