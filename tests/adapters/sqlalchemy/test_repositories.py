from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError

from docketsync.adapters.sqlalchemy.mappings import sync_run_lock_table
from docketsync.domain.model import (
    AlertDedupRecord,
    ErrorKind,
    FailureRecord,
    HearingSnapshot,
    RunMetrics,
    SyncOperation,
)
from docketsync.domain.model.sync_state import MAX_ERROR_MESSAGE_LENGTH
from tests.helpers.cases import BOARD_ID, make_mapping

if TYPE_CHECKING:
    from collections.abc import Callable

    from docketsync.adapters.sqlalchemy import SqlAlchemySyncUnitOfWork

    type UowFactory = Callable[[], SqlAlchemySyncUnitOfWork]

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)
TTL = timedelta(minutes=30)


def _failure(
    source_id: int,
    *,
    at: datetime = NOW,
    message: str = "boom",
    run_id: str = "run-1",
    operation: str = SyncOperation.UPDATE_COLUMNS,
    item_id: str | None = None,
) -> FailureRecord:
    return FailureRecord(
        run_id=run_id,
        source_id=source_id,
        case_number=f"C-{source_id:04d}",
        board_id=BOARD_ID,
        item_id=item_id,
        operation=operation,
        error_kind=ErrorKind.TRANSIENT,
        error_type="TimeoutError",
        error_message=message,
        retry_attempts=3,
        occurred_at=at,
    )


def test_mapping_lookups(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        for source_id in (1, 2, 700):
            uow.repositories.mappings.add(
                make_mapping(source_id, item_id=f"item-{source_id}", created_at=NOW)
            )
        uow.commit()

    with sqlite_unit_of_work() as uow:
        mappings = uow.repositories.mappings
        assert mappings.mapped_source_ids(BOARD_ID) == {1, 2, 700}
        assert mappings.mapped_source_ids(BOARD_ID + 1) == set()
        found = mappings.for_sources(BOARD_ID, range(1, 1001))
        assert {source_id: m.item_id for source_id, m in found.items()} == {
            1: "item-1",
            2: "item-2",
            700: "item-700",
        }
        assert mappings.for_sources(BOARD_ID, []) == {}
        assert mappings.get(2, BOARD_ID + 1) is None


def test_case_is_mapped_at_most_once(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.mappings.add(make_mapping(1, item_id="a", created_at=NOW))
        uow.commit()

    with pytest.raises(IntegrityError), sqlite_unit_of_work() as uow:
        uow.repositories.mappings.add(make_mapping(1, item_id="b", created_at=NOW))
        uow.commit()


def test_source_timestamps_keep_wall_clock_time(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.mappings.add(
            make_mapping(created_at=NOW, case_created_at=datetime(2026, 3, 1, 23, 30))
        )
        uow.commit()

    with sqlite_unit_of_work() as uow:
        mapping = uow.repositories.mappings.get(1, BOARD_ID)
        assert mapping is not None
        assert mapping.case_created_at == datetime(2026, 3, 1, 23, 30)
        assert mapping.created_at == NOW


def test_engine_timestamps_are_stored_as_utc(sqlite_unit_of_work: UowFactory) -> None:
    local = datetime(2026, 3, 10, 11, 0, tzinfo=ZoneInfo("Asia/Jerusalem"))
    with sqlite_unit_of_work() as uow:
        uow.repositories.mappings.add(make_mapping(created_at=datetime(2026, 3, 10, 9, 0)))
        uow.repositories.mappings.add(make_mapping(2, item_id="b", created_at=local))
        uow.commit()

    with sqlite_unit_of_work() as uow:
        naive = uow.repositories.mappings.get(1, BOARD_ID)
        aware = uow.repositories.mappings.get(2, BOARD_ID)
        assert naive is not None
        assert aware is not None
        assert naive.created_at == NOW
        assert naive.created_at.tzinfo is not None
        assert aware.created_at == local


def test_hearing_snapshot_round_trip(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.snapshots.add(
            HearingSnapshot(
                source_id=1,
                board_id=BOARD_ID,
                item_id="9001",
                start=datetime(2026, 4, 2, 9, 30),
                status=2,
                judge="Judge Cohen",
                city="Haifa",
                last_synced_at=NOW,
            )
        )
        uow.commit()

    with sqlite_unit_of_work() as uow:
        snapshot = uow.repositories.snapshots.get(1, BOARD_ID)
        assert snapshot is not None
        assert snapshot.start == datetime(2026, 4, 2, 9, 30)
        assert snapshot.status == 2
        assert uow.repositories.snapshots.get(2, BOARD_ID) is None


def test_run_lock_admits_one_holder(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        locks = uow.repositories.run_lock
        assert locks.try_acquire("run-a", now=NOW, ttl=TTL)
        assert not locks.try_acquire("run-b", now=NOW + timedelta(minutes=1), ttl=TTL)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        current = uow.repositories.run_lock.current()
        assert current is not None
        assert current.locked_by == "run-a"
        assert current.is_held(NOW + timedelta(minutes=29))
        assert not current.is_held(NOW + TTL)


def test_expired_run_lock_can_be_taken_over(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        locks = uow.repositories.run_lock
        assert locks.try_acquire("run-a", now=NOW, ttl=TTL)
        assert locks.try_acquire("run-b", now=NOW + TTL, ttl=TTL)
        assert not locks.release("run-a")
        assert locks.release("run-b")
        uow.commit()

    with sqlite_unit_of_work() as uow:
        current = uow.repositories.run_lock.current()
        assert current is not None
        assert current.locked_by is None
        assert current.expires_at is None


def test_run_lock_row_is_recreated_when_missing(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        uow.session.execute(delete(sync_run_lock_table))
        uow.commit()

    with sqlite_unit_of_work() as uow:
        assert uow.repositories.run_lock.current() is None
        assert uow.repositories.run_lock.try_acquire("run-a", now=NOW, ttl=TTL)
        uow.commit()


def test_failures_resolve_per_case(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        failures = uow.repositories.failures
        failures.add(_failure(1, at=NOW - timedelta(minutes=10)))
        failures.add(_failure(1, at=NOW - timedelta(minutes=5)))
        failures.add(_failure(2, at=NOW))
        uow.commit()

    with sqlite_unit_of_work() as uow:
        assert uow.repositories.failures.resolve_for_source(1, at=NOW) == 2
        uow.commit()

    with sqlite_unit_of_work() as uow:
        failures = uow.repositories.failures
        [open_failure] = failures.unresolved()
        assert open_failure.source_id == 2
        assert open_failure.error_kind is ErrorKind.TRANSIENT
        assert open_failure.operation == "update_columns"

        history = failures.since(NOW - timedelta(hours=1))
        assert [failure.occurred_at for failure in history] == [
            NOW,
            NOW - timedelta(minutes=5),
            NOW - timedelta(minutes=10),
        ]
        assert all(failure.resolved for failure in history[1:])
        assert failures.since(NOW + timedelta(seconds=1)) == []


def test_failure_resolution_is_scoped_to_operations_and_earlier_runs(
    sqlite_unit_of_work: UowFactory,
) -> None:
    with sqlite_unit_of_work() as uow:
        failures = uow.repositories.failures
        failures.add(_failure(1, run_id="run-1", operation=SyncOperation.UPDATE_COLUMNS))
        failures.add(_failure(1, run_id="run-1", operation=SyncOperation.HEARING_DATE))
        failures.add(_failure(1, run_id="run-2", operation=SyncOperation.HEARING_DATE))
        uow.commit()

    with sqlite_unit_of_work() as uow:
        resolved = uow.repositories.failures.resolve_for_source(
            1, at=NOW, operations={SyncOperation.HEARING_DATE}, exclude_run="run-2"
        )
        uow.commit()
    assert resolved == 1

    with sqlite_unit_of_work() as uow:
        still_open = {
            (failure.run_id, failure.operation)
            for failure in uow.repositories.failures.unresolved()
        }
    assert still_open == {
        ("run-1", SyncOperation.UPDATE_COLUMNS),
        ("run-2", SyncOperation.HEARING_DATE),
    }


def test_failure_keeps_item_id(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.failures.add(
            _failure(3, operation=SyncOperation.RECORD_MAPPING, item_id="5150")
        )
        uow.commit()

    with sqlite_unit_of_work() as uow:
        [failure] = uow.repositories.failures.unresolved()
    assert failure.item_id == "5150"
    assert failure.operation == SyncOperation.RECORD_MAPPING


def test_unresolved_failures_newest_first_with_limit(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        for minutes in range(5):
            uow.repositories.failures.add(_failure(minutes, at=NOW + timedelta(minutes=minutes)))
        uow.commit()

    with sqlite_unit_of_work() as uow:
        newest = uow.repositories.failures.unresolved(limit=2)
        assert [failure.source_id for failure in newest] == [4, 3]


def test_failure_messages_are_truncated(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.failures.add(_failure(1, message="x" * 5000))
        uow.commit()

    with sqlite_unit_of_work() as uow:
        [failure] = uow.repositories.failures.unresolved()
        assert len(failure.error_message) == MAX_ERROR_MESSAGE_LENGTH
        assert failure.error_message.endswith("...")


def test_metrics_since(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        for hours in (30, 2, 1):
            started = NOW - timedelta(hours=hours)
            uow.repositories.metrics.add(
                RunMetrics(
                    run_id=f"run-{hours}",
                    started_at=started,
                    completed_at=started + timedelta(seconds=4),
                    duration_ms=4000,
                    created=hours,
                )
            )
        uow.commit()

    with sqlite_unit_of_work() as uow:
        recent = uow.repositories.metrics.since(NOW - timedelta(hours=24))
        assert [metrics.run_id for metrics in recent] == ["run-2", "run-1"]
        assert recent[0].breaker_tripped is False


def test_alert_dedup_entries(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.alert_dedup.add(
            AlertDedupRecord(
                fingerprint="f" * 64,
                exception_type="TimeoutError",
                source="sync_worker",
                first_seen=NOW,
                last_seen=NOW,
            )
        )
        uow.commit()

    with sqlite_unit_of_work() as uow:
        record = uow.repositories.alert_dedup.get("f" * 64)
        assert record is not None
        assert record.occurrence_count == 1
        assert record.suppressed_count == 0
        assert len(uow.repositories.alert_dedup.all()) == 1
        assert uow.repositories.alert_dedup.get("0" * 64) is None
