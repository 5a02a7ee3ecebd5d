"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from docketsync.adapters.board import CachedBoardMetadataProvider, HttpBoardClient
from docketsync.adapters.notifications import LoggingAlertTransport, SqlAlchemyAlertStateStore
from docketsync.adapters.source import SqlCaseSource
from docketsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemySyncUnitOfWork,
    is_started,
    startup,
)
from docketsync.config import (
    get_alert_config,
    get_board_config,
    get_source_config,
    get_sync_config,
)
from docketsync.domain.alerts import AlertGate
from docketsync.domain.hearings import StatusLabels
from docketsync.domain.sync import AllowList, HearingColumnIds, SyncRunner, SyncSettings
from docketsync.worker import AlertDispatcher, SyncWorker, run_service

if TYPE_CHECKING:
    from docketsync.config import AlertConfig, BoardConfig, SyncConfig
    from docketsync.domain.model import FailureRecord
    from docketsync.domain.ports import CaseSource
    from docketsync.domain.sync import RunReport, UnitOfWorkFactory

log = getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def build_settings(board: BoardConfig, sync: SyncConfig) -> SyncSettings:
    columns = board.hearing_columns
    labels = board.hearing_labels
    return SyncSettings(
        board_id=board.board_id,
        group_id=board.group_id,
        cutoff=sync.cutoff_date,
        columns=board.columns,
        hearing_columns=HearingColumnIds(
            status=columns.status,
            start=columns.start,
            judge=columns.judge,
            city=columns.city,
        ),
        labels=StatusLabels(
            active=labels.active,
            rescheduled=labels.rescheduled,
            cancelled=labels.cancelled,
        ),
        cooling_days=sync.cooling_business_days,
        max_items_per_run=sync.max_items_per_run,
        dry_run=sync.dry_run,
        max_attempts=sync.max_retry_attempts,
        breaker_threshold=sync.circuit_breaker_threshold,
        lock_ttl=timedelta(seconds=sync.lock_ttl_seconds),
        tz=sync.tzinfo,
        test_mode=board.test_mode,
        dropdown_columns=board.dropdown_columns,
        allowlist=(
            AllowList(
                source_ids=frozenset(sync.allowlist_ids),
                case_numbers=sync.allowlist_case_numbers,
            )
            if sync.allowlist_enabled
            else None
        ),
    )


@dataclass(slots=True)
class Application:
    """Wired collaborators of one process."""

    runner: SyncRunner
    board: HttpBoardClient
    metadata: CachedBoardMetadataProvider
    source: CaseSource
    uow_factory: UnitOfWorkFactory
    sync_config: SyncConfig

    async def aclose(self) -> None:
        await self.board.aclose()
        await self.metadata.aclose()
        if isinstance(self.source, SqlCaseSource):
            self.source.dispose()


def build_application(
    *,
    board_config: BoardConfig | None = None,
    sync_config: SyncConfig | None = None,
    source: CaseSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    dry_run: bool | None = None,
) -> Application:
    """Build the runner and its adapters from configuration."""

    if not is_started():
        startup()
    effective_board = board_config or get_board_config()
    effective_sync = sync_config or get_sync_config()
    if dry_run is not None:
        effective_sync = replace(effective_sync, dry_run=dry_run)
    effective_source = source or SqlCaseSource.from_config(get_source_config())
    effective_uow = unit_of_work_factory or SqlAlchemySyncUnitOfWork

    board = HttpBoardClient(effective_board)
    metadata = CachedBoardMetadataProvider(effective_board)
    runner = SyncRunner(
        settings=build_settings(effective_board, effective_sync),
        source=effective_source,
        board=board,
        metadata=metadata,
        uow_factory=effective_uow,
    )
    return Application(
        runner=runner,
        board=board,
        metadata=metadata,
        source=effective_source,
        uow_factory=effective_uow,
        sync_config=effective_sync,
    )


def build_dispatcher(
    application: Application, *, alert_config: AlertConfig | None = None
) -> AlertDispatcher:
    config = alert_config or get_alert_config()
    gate = AlertGate(
        window=timedelta(minutes=config.dedup_window_minutes),
        max_per_hour=config.max_per_hour,
        store=SqlAlchemyAlertStateStore(application.uow_factory) if config.enabled else None,
        write_through=False,
    )
    return AlertDispatcher(
        gate=gate,
        transport=LoggingAlertTransport(),
        queue_size=config.queue_size,
        digest_interval=timedelta(minutes=config.digest_interval_minutes),
        daily_summary_time=config.daily_summary_time,
        tz=application.sync_config.tzinfo,
        uow_factory=application.uow_factory,
        enabled=config.enabled,
    )


async def run_once(*, dry_run: bool | None = None) -> RunReport:
    """Run a single reconcile pass with the configured adapters."""

    application = build_application(dry_run=dry_run)
    try:
        return await application.runner.run()
    finally:
        await application.aclose()


async def run_worker(stop_event: asyncio.Event) -> None:
    """Run the periodic sync loop and alerting until ``stop_event`` is set."""

    application = build_application()
    dispatcher = build_dispatcher(application)
    worker = SyncWorker(
        runner=application.runner,
        interval_seconds=application.sync_config.interval_seconds,
        dispatcher=dispatcher,
    )
    log.info(
        f"Starting worker: board={application.runner.settings.board_id}, "
        f"interval={application.sync_config.interval_seconds:.0f}s, "
        f"dry_run={application.sync_config.dry_run}"
    )
    try:
        await run_service(worker, dispatcher, stop_event)
    finally:
        await application.aclose()


def list_failures(
    *,
    include_resolved: bool = False,
    limit: int | None = 50,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[FailureRecord]:
    """Return dead-letter rows, newest first."""

    if unit_of_work_factory is None and not is_started():
        startup()
    effective_uow = unit_of_work_factory or SqlAlchemySyncUnitOfWork
    with effective_uow() as uow:
        failures = uow.repositories.failures
        if include_resolved:
            records = list(failures.since(EPOCH))
            return records[:limit] if limit is not None else records
        return list(failures.unresolved(limit=limit))
