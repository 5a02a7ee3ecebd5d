from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from docketsync.adapters.notifications import LoggingAlertTransport, SqlAlchemyAlertStateStore
from docketsync.domain.alerts import Alert, AlertGate, AlertKind, fingerprint
from docketsync.domain.model import AlertDedupRecord

if TYPE_CHECKING:
    from collections.abc import Callable

    from docketsync.adapters.sqlalchemy import SqlAlchemySyncUnitOfWork

T0 = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)


def _record(**overrides: object) -> AlertDedupRecord:
    values: dict[str, object] = {
        "fingerprint": "a" * 64,
        "exception_type": "TimeoutError",
        "source": "sync_worker",
        "first_seen": T0,
        "last_seen": T0,
    }
    values.update(overrides)
    return AlertDedupRecord(**values)  # type: ignore[arg-type]


def test_logging_transport_logs_errors_at_error_level(caplog: pytest.LogCaptureFixture) -> None:
    transport = LoggingAlertTransport()

    with caplog.at_level(logging.INFO, logger="docketsync.alerts"):
        asyncio.run(transport.send(Alert(AlertKind.ERROR, "Sync crashed", "trace")))
        asyncio.run(transport.send(Alert(AlertKind.DIGEST, "2 suppressed", "rows")))

    assert transport.sent == 2
    assert [(r.levelno, r.getMessage()) for r in caplog.records] == [
        (logging.ERROR, "[ALERT] Sync crashed\ntrace"),
        (logging.INFO, "[DIGEST] 2 suppressed\nrows"),
    ]


def test_store_upserts_by_fingerprint(
    sqlite_unit_of_work: Callable[[], SqlAlchemySyncUnitOfWork],
) -> None:
    store = SqlAlchemyAlertStateStore(sqlite_unit_of_work)

    store.save(_record())
    store.save(_record(occurrence_count=3, suppressed_count=2, last_sent=T0))

    [loaded] = store.load()
    assert loaded.id is None
    assert loaded.occurrence_count == 3
    assert loaded.suppressed_count == 2
    assert loaded.last_sent == T0


def test_gate_state_survives_restart(
    sqlite_unit_of_work: Callable[[], SqlAlchemySyncUnitOfWork],
) -> None:
    key = fingerprint("TimeoutError", "board unreachable", "sync_worker")
    first = AlertGate(
        window=timedelta(minutes=60),
        max_per_hour=10,
        store=SqlAlchemyAlertStateStore(sqlite_unit_of_work),
    )
    first.is_duplicate(key, exception_type="TimeoutError", source="sync_worker", now=T0)
    first.record_sent(key, now=T0)

    restarted = AlertGate(
        window=timedelta(minutes=60),
        max_per_hour=10,
        store=SqlAlchemyAlertStateStore(sqlite_unit_of_work),
    )

    assert restarted.is_duplicate(
        key,
        exception_type="TimeoutError",
        source="sync_worker",
        now=T0 + timedelta(minutes=10),
    )
    record = restarted.get(key)
    assert record is not None
    assert record.occurrence_count == 2
