"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import insert, or_, select, update
from sqlalchemy.exc import IntegrityError

from docketsync.adapters.sqlalchemy.mappings import (
    alert_dedup_table,
    case_mapping_table,
    hearing_snapshot_table,
    sync_failure_table,
    sync_run_lock_table,
    sync_run_metric_table,
)
from docketsync.domain.model import (
    AlertDedupRecord,
    FailureRecord,
    HearingSnapshot,
    MappingRecord,
    RunLock,
    RunMetrics,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from datetime import datetime, timedelta

    from sqlalchemy.engine import CursorResult
    from sqlalchemy.orm import Session

log = getLogger(__name__)


class SqlAlchemyMappingRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: MappingRecord) -> None:
        self.session.add(entity)

    def get(self, source_id: int, board_id: int) -> MappingRecord | None:
        stmt = (
            select(MappingRecord)
            .where(case_mapping_table.c.source_id == source_id)
            .where(case_mapping_table.c.board_id == board_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def mapped_source_ids(self, board_id: int) -> set[int]:
        stmt = select(case_mapping_table.c.source_id).where(
            case_mapping_table.c.board_id == board_id
        )
        return set(self.session.execute(stmt).scalars())

    def for_sources(
        self, board_id: int, source_ids: Collection[int]
    ) -> dict[int, MappingRecord]:
        if not source_ids:
            return {}
        wanted = sorted(set(source_ids))
        found: dict[int, MappingRecord] = {}
        # stay below the bound-parameter limits of SQLite and SQL Server
        for start in range(0, len(wanted), 500):
            stmt = (
                select(MappingRecord)
                .where(case_mapping_table.c.board_id == board_id)
                .where(case_mapping_table.c.source_id.in_(wanted[start : start + 500]))
            )
            for mapping in self.session.execute(stmt).scalars():
                found[mapping.source_id] = mapping
        return found


class SqlAlchemyHearingSnapshotRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: HearingSnapshot) -> None:
        self.session.add(entity)

    def get(self, source_id: int, board_id: int) -> HearingSnapshot | None:
        stmt = (
            select(HearingSnapshot)
            .where(hearing_snapshot_table.c.source_id == source_id)
            .where(hearing_snapshot_table.c.board_id == board_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()


class SqlAlchemyRunLockRepository:
    """Singleton-row lock claimed with one conditional ``UPDATE``.

    The database serialises competing updates of the same row, so at most one
    claimant sees a row count of one.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def try_acquire(self, run_id: str, *, now: datetime, ttl: timedelta) -> bool:
        self._ensure_row()
        table = sync_run_lock_table
        stmt = (
            update(table)
            .where(table.c.id == RunLock.SINGLETON_ID)
            .where(or_(table.c.locked_by.is_(None), table.c.expires_at <= now))
            .values(locked_by=run_id, locked_at=now, expires_at=now + ttl)
            .execution_options(synchronize_session=False)
        )
        result = cast("CursorResult[Any]", self.session.execute(stmt))
        return result.rowcount == 1

    def release(self, run_id: str) -> bool:
        table = sync_run_lock_table
        stmt = (
            update(table)
            .where(table.c.id == RunLock.SINGLETON_ID)
            .where(table.c.locked_by == run_id)
            .values(locked_by=None, locked_at=None, expires_at=None)
            .execution_options(synchronize_session=False)
        )
        result = cast("CursorResult[Any]", self.session.execute(stmt))
        return result.rowcount == 1

    def current(self) -> RunLock | None:
        self.session.expire_all()
        return self.session.get(RunLock, RunLock.SINGLETON_ID)

    def _ensure_row(self) -> None:
        exists = self.session.execute(
            select(sync_run_lock_table.c.id).where(
                sync_run_lock_table.c.id == RunLock.SINGLETON_ID
            )
        ).scalar_one_or_none()
        if exists is not None:
            return
        try:
            with self.session.begin_nested():
                self.session.execute(
                    insert(sync_run_lock_table).values(id=RunLock.SINGLETON_ID)
                )
        except IntegrityError:
            log.debug("Run lock row was created concurrently")


class SqlAlchemyFailureRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: FailureRecord) -> None:
        self.session.add(entity)

    def resolve_for_source(
        self,
        source_id: int,
        *,
        at: datetime,
        operations: Collection[str] | None = None,
        exclude_run: str | None = None,
    ) -> int:
        """Mark open failures of ``source_id`` resolved, optionally limited to ``operations``.

        Rows written by ``exclude_run`` stay open.
        """

        table = sync_failure_table
        stmt = (
            select(FailureRecord)
            .where(table.c.source_id == source_id)
            .where(table.c.resolved.is_(False))
        )
        if operations is not None:
            stmt = stmt.where(table.c.operation.in_(sorted(operations)))
        if exclude_run is not None:
            stmt = stmt.where(table.c.run_id != exclude_run)
        failures = list(self.session.execute(stmt).scalars())
        for failure in failures:
            failure.resolve(at)
        return len(failures)

    def unresolved(self, *, limit: int | None = None) -> Sequence[FailureRecord]:
        stmt = (
            select(FailureRecord)
            .where(sync_failure_table.c.resolved.is_(False))
            .order_by(sync_failure_table.c.occurred_at.desc(), sync_failure_table.c.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())

    def since(self, since: datetime) -> Sequence[FailureRecord]:
        stmt = (
            select(FailureRecord)
            .where(sync_failure_table.c.occurred_at >= since)
            .order_by(sync_failure_table.c.occurred_at.desc(), sync_failure_table.c.id.desc())
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyRunMetricsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: RunMetrics) -> None:
        self.session.add(entity)

    def since(self, since: datetime) -> Sequence[RunMetrics]:
        stmt = (
            select(RunMetrics)
            .where(sync_run_metric_table.c.started_at >= since)
            .order_by(sync_run_metric_table.c.started_at)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyAlertDedupRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: AlertDedupRecord) -> None:
        self.session.add(entity)

    def get(self, fingerprint: str) -> AlertDedupRecord | None:
        stmt = select(AlertDedupRecord).where(alert_dedup_table.c.fingerprint == fingerprint)
        return self.session.execute(stmt).scalar_one_or_none()

    def all(self) -> Sequence[AlertDedupRecord]:
        stmt = select(AlertDedupRecord).order_by(alert_dedup_table.c.first_seen)
        return list(self.session.execute(stmt).scalars())
