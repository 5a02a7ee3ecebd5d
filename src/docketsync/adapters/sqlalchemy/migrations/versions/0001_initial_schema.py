"""Initial sync-state schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-09-28 10:12:41.318204

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from docketsync.adapters.sqlalchemy.mappings import UTCDateTime

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ERROR_KINDS = ("TRANSIENT", "PERMANENT", "VALIDATION", "ITEM_GONE")


def upgrade() -> None:
    op.create_table(
        "case_mapping",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("source_id", sa.Integer(), nullable=False),
        sa.Column("case_number", sa.String(length=64), nullable=False),
        sa.Column("item_id", sa.String(length=32), nullable=False),
        sa.Column("board_id", sa.Integer(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("case_created_at", sa.DateTime(timezone=False), nullable=True),
        sa.Column("item_name", sa.String(length=255), nullable=True),
        sa.Column("content_version", sa.String(length=64), nullable=True),
        sa.Column("hearing_checksum", sa.String(length=64), nullable=True),
        sa.Column("last_sync_from_source", UTCDateTime(), nullable=True),
        sa.Column("last_sync_to_board", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_case_mapping")),
        sa.UniqueConstraint("source_id", name=op.f("uq_case_mapping_case_mapping_source_id")),
    )
    op.create_index("ix_case_mapping_board_item", "case_mapping", ["board_id", "item_id"])

    op.create_table(
        "hearing_snapshot",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("source_id", sa.Integer(), nullable=False),
        sa.Column("board_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.String(length=32), nullable=False),
        sa.Column("start", sa.DateTime(timezone=False), nullable=True),
        sa.Column("status", sa.Integer(), nullable=True),
        sa.Column("judge", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("last_synced_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_hearing_snapshot")),
        sa.UniqueConstraint("source_id", "board_id", name="uq_hearing_snapshot_case_board"),
    )

    lock_table = op.create_table(
        "sync_run_lock",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("locked_by", sa.String(length=64), nullable=True),
        sa.Column("locked_at", UTCDateTime(), nullable=True),
        sa.Column("expires_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_sync_run_lock")),
    )
    op.bulk_insert(lock_table, [{"id": 1}])

    op.create_table(
        "sync_failure",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("run_id", sa.String(length=64), nullable=False),
        sa.Column("source_id", sa.Integer(), nullable=False),
        sa.Column("case_number", sa.String(length=64), nullable=True),
        sa.Column("board_id", sa.Integer(), nullable=True),
        sa.Column("operation", sa.String(length=64), nullable=False),
        sa.Column(
            "error_kind",
            sa.Enum(*ERROR_KINDS, name="errorkind", native_enum=False),
            nullable=False,
        ),
        sa.Column("error_type", sa.String(length=255), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=False),
        sa.Column("stack_trace", sa.Text(), nullable=True),
        sa.Column("retry_attempts", sa.Integer(), nullable=False),
        sa.Column("occurred_at", UTCDateTime(), nullable=False),
        sa.Column("resolved", sa.Boolean(), nullable=False),
        sa.Column("resolved_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_sync_failure")),
    )
    op.create_index("ix_sync_failure_source_resolved", "sync_failure", ["source_id", "resolved"])
    op.create_index("ix_sync_failure_occurred_at", "sync_failure", ["occurred_at"])

    op.create_table(
        "sync_run_metric",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("run_id", sa.String(length=64), nullable=False),
        sa.Column("started_at", UTCDateTime(), nullable=False),
        sa.Column("completed_at", UTCDateTime(), nullable=False),
        sa.Column("duration_ms", sa.Integer(), nullable=False),
        sa.Column("created", sa.Integer(), nullable=False),
        sa.Column("updated", sa.Integer(), nullable=False),
        sa.Column("skipped_unchanged", sa.Integer(), nullable=False),
        sa.Column("skipped_ineligible", sa.Integer(), nullable=False),
        sa.Column("skipped_duplicate", sa.Integer(), nullable=False),
        sa.Column("skipped_inactive", sa.Integer(), nullable=False),
        sa.Column("skipped_breaker", sa.Integer(), nullable=False),
        sa.Column("failed", sa.Integer(), nullable=False),
        sa.Column("hearing_updated", sa.Integer(), nullable=False),
        sa.Column("breaker_tripped", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_sync_run_metric")),
    )
    op.create_index("ix_sync_run_metric_started_at", "sync_run_metric", ["started_at"])

    op.create_table(
        "alert_dedup",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("fingerprint", sa.String(length=64), nullable=False),
        sa.Column("exception_type", sa.String(length=255), nullable=False),
        sa.Column("source", sa.String(length=255), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=True),
        sa.Column("first_seen", UTCDateTime(), nullable=False),
        sa.Column("last_seen", UTCDateTime(), nullable=False),
        sa.Column("occurrence_count", sa.Integer(), nullable=False),
        sa.Column("last_sent", UTCDateTime(), nullable=True),
        sa.Column("suppressed_count", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_alert_dedup")),
        sa.UniqueConstraint("fingerprint", name=op.f("uq_alert_dedup_alert_dedup_fingerprint")),
    )


def downgrade() -> None:
    op.drop_table("alert_dedup")
    op.drop_index("ix_sync_run_metric_started_at", table_name="sync_run_metric")
    op.drop_table("sync_run_metric")
    op.drop_index("ix_sync_failure_occurred_at", table_name="sync_failure")
    op.drop_index("ix_sync_failure_source_resolved", table_name="sync_failure")
    op.drop_table("sync_failure")
    op.drop_table("sync_run_lock")
    op.drop_table("hearing_snapshot")
    op.drop_index("ix_case_mapping_board_item", table_name="case_mapping")
    op.drop_table("case_mapping")
