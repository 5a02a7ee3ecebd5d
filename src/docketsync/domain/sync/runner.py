"""One complete reconcile pass: lock, bootstrap, reconcile, hearings, metrics."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import fields
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from docketsync.domain.model import CaseRecord, SyncOperation
from docketsync.domain.resilience import CircuitBreaker
from docketsync.domain.sync.bootstrap import bootstrap_new_cases
from docketsync.domain.sync.context import RunContext, RunReport
from docketsync.domain.sync.hearing_pass import sync_hearings
from docketsync.domain.sync.reconcile import reconcile_mapped_cases

if TYPE_CHECKING:
    import random
    from collections.abc import Awaitable, Callable

    from docketsync.domain.ports import BoardClient, BoardMetadataProvider, CaseSource
    from docketsync.domain.sync.context import AllowList, SyncSettings, UnitOfWorkFactory

log = getLogger(__name__)

CASE_FIELDS = frozenset(item.name for item in fields(CaseRecord))


def _utcnow() -> datetime:
    return datetime.now(UTC)


def new_run_id() -> str:
    return str(uuid.uuid4())


class SyncRunner:
    """Runs reconcile passes against one board.

    A pass holds the cross-process run lock for its whole duration; when the
    lock is taken elsewhere the pass returns immediately with
    ``lock_acquired=False`` and touches nothing.
    """

    def __init__(
        self,
        *,
        settings: SyncSettings,
        source: CaseSource,
        board: BoardClient,
        metadata: BoardMetadataProvider,
        uow_factory: UnitOfWorkFactory,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        unknown = sorted(set(settings.columns) - CASE_FIELDS)
        if unknown:
            raise ValueError(f"Column map refers to unknown case fields: {', '.join(unknown)}")
        self.settings = settings
        self.source = source
        self.board = board
        self.metadata = metadata
        self.uow_factory = uow_factory
        self._clock = clock
        self._sleep = sleep
        self._rng = rng

    async def run(self, *, run_id: str | None = None, now: datetime | None = None) -> RunReport:
        settings = self.settings
        run_id = run_id or new_run_id()
        now = now or self._clock()
        report = RunReport(run_id=run_id, started_at=now)

        with self.uow_factory() as uow:
            acquired = uow.repositories.run_lock.try_acquire(
                run_id, now=now, ttl=settings.lock_ttl
            )
            uow.commit()
        if not acquired:
            report.lock_acquired = False
            report.completed_at = self._clock()
            log.warning("Run %s skipped: another run holds the sync lock", run_id)
            return report

        log.info(
            "Run %s started (board=%s cutoff=%s dry_run=%s)",
            run_id,
            settings.board_id,
            settings.cutoff,
            settings.dry_run,
        )
        try:
            await self._run_phases(run_id, now, report)
        finally:
            report.completed_at = self._clock()
            self._finish(run_id, report)

        log.info(f"Run {run_id} finished: {report.summary()}")
        return report

    async def _run_phases(self, run_id: str, now: datetime, report: RunReport) -> None:
        settings = self.settings
        unresolved: dict[int, set[str]] = {}
        orphaned: dict[int, str] = {}
        with self.uow_factory() as uow:
            for failure in uow.repositories.failures.unresolved():
                unresolved.setdefault(failure.source_id, set()).add(failure.operation)
                if failure.operation == SyncOperation.RECORD_MAPPING and failure.item_id:
                    orphaned.setdefault(failure.source_id, failure.item_id)

        ctx = RunContext(
            settings=settings,
            run_id=run_id,
            now=now,
            source=self.source,
            board=self.board,
            metadata=self.metadata,
            uow_factory=self.uow_factory,
            report=report,
            breaker=CircuitBreaker(threshold=settings.breaker_threshold),
            sleep=self._sleep,
            rng=self._rng,
            unresolved_operations=unresolved,
            orphaned_items=orphaned,
        )

        eligible_ids = await self.source.list_ids_created_since(settings.cutoff)
        log.info("Run %s: %s case(s) created since %s", run_id, len(eligible_ids), settings.cutoff)
        if settings.allowlist is not None:
            allowed = await self._resolve_allowlist(settings.allowlist)
            eligible_ids = eligible_ids & allowed
            log.info("Run %s: allow-list narrows the run to %s case(s)", run_id, len(eligible_ids))

        await bootstrap_new_cases(ctx, eligible_ids)
        await reconcile_mapped_cases(ctx, eligible_ids)
        await sync_hearings(ctx, eligible_ids)

    async def _resolve_allowlist(self, allowlist: AllowList) -> set[int]:
        """Source ids allowed in a controlled rollout; case numbers are looked up first."""

        allowed = set(allowlist.source_ids)
        for case_number in allowlist.case_numbers:
            source_id = await self.source.resolve_case_number(case_number)
            if source_id is None:
                log.warning("Allow-list case number %r not found in the source", case_number)
                continue
            allowed.add(source_id)
        if not allowed:
            log.error(
                "Allow-list is enabled but resolved to no cases "
                "(%s id(s), %s case number(s) configured); nothing will be processed",
                len(allowlist.source_ids),
                len(allowlist.case_numbers),
            )
        return allowed

    def _finish(self, run_id: str, report: RunReport) -> None:
        with self.uow_factory() as uow:
            if not self.settings.dry_run:
                uow.repositories.metrics.add(report.to_metrics())
            if not uow.repositories.run_lock.release(run_id):
                log.warning("Run %s no longer held the sync lock at release", run_id)
            uow.commit()
