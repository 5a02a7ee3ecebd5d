"""SQLAlchemy mapping metadata for the sync-state records."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    orm,
)

from docketsync.domain.model import (
    AlertDedupRecord,
    ErrorKind,
    FailureRecord,
    HearingSnapshot,
    MappingRecord,
    RunLock,
    RunMetrics,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

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


# Source timestamps are wall-clock values in the source's own zone; they are
# stored as given so cutoff and hearing comparisons see the same calendar day.
SourceDateTime = DateTime(timezone=False)

mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

case_mapping_table = Table(
    "case_mapping",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("source_id", Integer, nullable=False),
    Column("case_number", String(64), nullable=False),
    Column("item_id", String(32), nullable=False),
    Column("board_id", Integer, nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("case_created_at", SourceDateTime, nullable=True),
    Column("item_name", String(255), nullable=True),
    Column("content_version", String(64), nullable=True),
    Column("hearing_checksum", String(64), nullable=True),
    Column("last_sync_from_source", UTCDateTime(), nullable=True),
    Column("last_sync_to_board", UTCDateTime(), nullable=True),
    UniqueConstraint("source_id"),
    Index("ix_case_mapping_board_item", "board_id", "item_id"),
)

hearing_snapshot_table = Table(
    "hearing_snapshot",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("source_id", Integer, nullable=False),
    Column("board_id", Integer, nullable=False),
    Column("item_id", String(32), nullable=False),
    Column("start", SourceDateTime, nullable=True),
    Column("status", Integer, nullable=True),
    Column("judge", String(255), nullable=True),
    Column("city", String(128), nullable=True),
    Column("last_synced_at", UTCDateTime(), nullable=True),
    UniqueConstraint("source_id", "board_id", name="uq_hearing_snapshot_case_board"),
)

sync_run_lock_table = Table(
    "sync_run_lock",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("locked_by", String(64), nullable=True),
    Column("locked_at", UTCDateTime(), nullable=True),
    Column("expires_at", UTCDateTime(), nullable=True),
)

sync_failure_table = Table(
    "sync_failure",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("run_id", String(64), nullable=False),
    Column("source_id", Integer, nullable=False),
    Column("case_number", String(64), nullable=True),
    Column("board_id", Integer, nullable=True),
    Column("item_id", String(32), nullable=True),
    Column("operation", String(64), nullable=False),
    Column("error_kind", Enum(ErrorKind, native_enum=False), nullable=False),
    Column("error_type", String(255), nullable=False),
    Column("error_message", Text, nullable=False),
    Column("stack_trace", Text, nullable=True),
    Column("retry_attempts", Integer, nullable=False, default=0),
    Column("occurred_at", UTCDateTime(), nullable=False),
    Column("resolved", Boolean, nullable=False, default=False),
    Column("resolved_at", UTCDateTime(), nullable=True),
    Index("ix_sync_failure_source_resolved", "source_id", "resolved"),
    Index("ix_sync_failure_occurred_at", "occurred_at"),
)

sync_run_metric_table = Table(
    "sync_run_metric",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("run_id", String(64), nullable=False),
    Column("started_at", UTCDateTime(), nullable=False),
    Column("completed_at", UTCDateTime(), nullable=False),
    Column("duration_ms", Integer, nullable=False),
    Column("created", Integer, nullable=False, default=0),
    Column("updated", Integer, nullable=False, default=0),
    Column("skipped_unchanged", Integer, nullable=False, default=0),
    Column("skipped_ineligible", Integer, nullable=False, default=0),
    Column("skipped_duplicate", Integer, nullable=False, default=0),
    Column("skipped_inactive", Integer, nullable=False, default=0),
    Column("skipped_breaker", Integer, nullable=False, default=0),
    Column("failed", Integer, nullable=False, default=0),
    Column("hearing_updated", Integer, nullable=False, default=0),
    Column("breaker_tripped", Boolean, nullable=False, default=False),
    Index("ix_sync_run_metric_started_at", "started_at"),
)

alert_dedup_table = Table(
    "alert_dedup",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("fingerprint", String(64), nullable=False),
    Column("exception_type", String(255), nullable=False),
    Column("source", String(255), nullable=False),
    Column("subject", String(255), nullable=True),
    Column("first_seen", UTCDateTime(), nullable=False),
    Column("last_seen", UTCDateTime(), nullable=False),
    Column("occurrence_count", Integer, nullable=False, default=1),
    Column("last_sent", UTCDateTime(), nullable=True),
    Column("suppressed_count", Integer, nullable=False, default=0),
    UniqueConstraint("fingerprint"),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the sync-state records."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(MappingRecord, case_mapping_table)
    mapper_registry.map_imperatively(HearingSnapshot, hearing_snapshot_table)
    mapper_registry.map_imperatively(RunLock, sync_run_lock_table)
    mapper_registry.map_imperatively(FailureRecord, sync_failure_table)
    mapper_registry.map_imperatively(RunMetrics, sync_run_metric_table)
    mapper_registry.map_imperatively(AlertDedupRecord, alert_dedup_table)
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
