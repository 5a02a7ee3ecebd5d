"""Per-run settings, counters and shared state of a reconcile pass."""

from __future__ import annotations

import asyncio
import traceback
from dataclasses import dataclass, field
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from docketsync.domain.hearings import StatusLabels
from docketsync.domain.model import ErrorKind, FailureRecord, RunMetrics, RunOutcome
from docketsync.domain.resilience import CircuitBreaker, Outcome, execute_with_retry, is_transient
from docketsync.domain.versioning import DEFAULT_CONTENT_FIELDS, ContentField

if TYPE_CHECKING:
    import random
    from collections.abc import Awaitable, Callable, Collection, Mapping
    from datetime import date, datetime, tzinfo

    from docketsync.domain.model import CaseRecord, MappingRecord
    from docketsync.domain.ports import (
        BoardClient,
        BoardMetadataProvider,
        CaseSource,
        SyncUnitOfWork,
    )
    from docketsync.domain.resilience import RetryPredicate

log = getLogger(__name__)

type UnitOfWorkFactory = Callable[[], SyncUnitOfWork]


@dataclass(frozen=True, slots=True)
class HearingColumnIds:
    status: str
    start: str
    judge: str
    city: str


@dataclass(frozen=True, slots=True)
class AllowList:
    """Controlled rollout: only these cases are processed."""

    source_ids: frozenset[int] = frozenset()
    case_numbers: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class SyncSettings:
    board_id: int
    group_id: str
    cutoff: date
    columns: Mapping[str, str]
    hearing_columns: HearingColumnIds
    labels: StatusLabels
    cooling_days: int = 3
    max_items_per_run: int = 0
    dry_run: bool = False
    max_attempts: int = 3
    breaker_threshold: int = 10
    lock_ttl: timedelta = timedelta(minutes=30)
    tz: tzinfo | None = None
    test_mode: bool = False
    content_fields: tuple[ContentField, ...] = DEFAULT_CONTENT_FIELDS
    dropdown_columns: Mapping[str, str | None] = field(
        default_factory=dict[str, str | None]
    )
    allowlist: AllowList | None = None


@dataclass(slots=True)
class RunReport:
    """Aggregate outcome counts of one run."""

    run_id: str
    started_at: datetime
    completed_at: datetime | None = None
    lock_acquired: bool = True
    created: int = 0
    updated: int = 0
    skipped_unchanged: int = 0
    skipped_ineligible: int = 0
    skipped_duplicate: int = 0
    skipped_inactive: int = 0
    skipped_breaker: int = 0
    failed: int = 0
    hearing_updated: int = 0
    breaker_tripped: bool = False

    def count(self, outcome: RunOutcome, amount: int = 1) -> None:
        name = outcome.value
        setattr(self, name, getattr(self, name) + amount)

    @property
    def duration_ms(self) -> int:
        if self.completed_at is None:
            return 0
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    def to_metrics(self) -> RunMetrics:
        return RunMetrics(
            run_id=self.run_id,
            started_at=self.started_at,
            completed_at=self.completed_at or self.started_at,
            duration_ms=self.duration_ms,
            created=self.created,
            updated=self.updated,
            skipped_unchanged=self.skipped_unchanged,
            skipped_ineligible=self.skipped_ineligible,
            skipped_duplicate=self.skipped_duplicate,
            skipped_inactive=self.skipped_inactive,
            skipped_breaker=self.skipped_breaker,
            failed=self.failed,
            hearing_updated=self.hearing_updated,
            breaker_tripped=self.breaker_tripped,
        )

    def summary(self) -> str:
        return (
            f"created={self.created} updated={self.updated} "
            f"unchanged={self.skipped_unchanged} ineligible={self.skipped_ineligible} "
            f"duplicate={self.skipped_duplicate} inactive={self.skipped_inactive} "
            f"breaker={self.skipped_breaker} failed={self.failed} "
            f"hearings={self.hearing_updated} tripped={self.breaker_tripped} "
            f"duration_ms={self.duration_ms}"
        )


@dataclass(slots=True)
class RunContext:
    """Mutable state shared by the phases of one run.

    Touched only by the task running the pass; nothing here outlives the run.
    """

    settings: SyncSettings
    run_id: str
    now: datetime
    source: CaseSource
    board: BoardClient
    metadata: BoardMetadataProvider
    uow_factory: UnitOfWorkFactory
    report: RunReport
    breaker: CircuitBreaker
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    rng: random.Random | None = None
    written_item_ids: set[str] = field(default_factory=set[str])
    created_source_ids: set[int] = field(default_factory=set[int])
    # open failure operations per case, as of the start of the run
    unresolved_operations: dict[int, set[str]] = field(default_factory=dict[int, set[str]])
    # items created by an earlier run whose mapping was never stored
    orphaned_items: dict[int, str] = field(default_factory=dict[int, str])

    @property
    def board_id(self) -> int:
        return self.settings.board_id

    def breaker_open(self) -> bool:
        if self.breaker.tripped:
            self.report.breaker_tripped = True
            self.report.count(RunOutcome.SKIPPED_BREAKER)
            return True
        return False

    async def call[T](
        self,
        operation: str,
        func: Callable[[], Awaitable[T]],
        *,
        retry_if: RetryPredicate = is_transient,
    ) -> Outcome[T]:
        outcome = await execute_with_retry(
            func,
            name=operation,
            max_attempts=self.settings.max_attempts,
            retry_if=retry_if,
            sleep=self.sleep,
            rng=self.rng,
        )
        if self.breaker.record(outcome):
            self.report.breaker_tripped = True
        return outcome

    def fail(
        self,
        case: CaseRecord | MappingRecord,
        operation: str,
        outcome: Outcome[object],
        *,
        item_id: str | None = None,
    ) -> None:
        """Count and dead-letter a failed per-case operation.

        ``item_id`` records a board item the failed step had already produced.
        """

        kind = outcome.kind or ErrorKind.PERMANENT
        error = outcome.error
        if kind is ErrorKind.ITEM_GONE:
            self.report.count(RunOutcome.SKIPPED_INACTIVE)
        else:
            self.report.count(RunOutcome.FAILED)
        if kind is ErrorKind.PERMANENT and error is not None:
            log.error(
                "Unexpected failure in %s for case %s",
                operation,
                case.source_id,
                exc_info=error,
            )
        else:
            log.error(
                f"{operation} failed for case {case.source_id} ({kind}, "
                f"attempts={outcome.attempts}): {error}"
            )
        if self.settings.dry_run:
            return
        record = FailureRecord(
            run_id=self.run_id,
            source_id=case.source_id,
            case_number=case.case_number,
            board_id=self.board_id,
            item_id=item_id,
            operation=operation,
            error_kind=kind,
            error_type=type(error).__name__ if error is not None else "Unknown",
            error_message=str(error) if error is not None else "",
            stack_trace=_format_trace(error),
            retry_attempts=outcome.attempts,
            occurred_at=self.now,
        )
        with self.uow_factory() as uow:
            uow.repositories.failures.add(record)
            uow.commit()

    def fail_validation(
        self, case: CaseRecord | MappingRecord, operation: str, error: Exception
    ) -> None:
        self.breaker.record_failure()
        if self.breaker.tripped:
            self.report.breaker_tripped = True
        self.fail(case, operation, Outcome.failure(error))

    def succeeded(self, source_id: int, operations: Collection[str]) -> None:
        """Resolve earlier dead-letter rows of ``operations`` once they complete cleanly.

        Only rows open at the start of the run are considered; failures recorded
        by this run stay open.
        """

        pending = self.unresolved_operations.get(source_id)
        if not pending or self.settings.dry_run:
            return
        scope = pending & set(operations)
        if not scope:
            return
        with self.uow_factory() as uow:
            resolved = uow.repositories.failures.resolve_for_source(
                source_id, at=self.now, operations=scope, exclude_run=self.run_id
            )
            uow.commit()
        pending -= scope
        if not pending:
            del self.unresolved_operations[source_id]
        if resolved:
            log.info(
                "Resolved %s earlier failure(s) for case %s (%s)",
                resolved,
                source_id,
                ", ".join(sorted(scope)),
            )


def _format_trace(error: BaseException | None) -> str | None:
    if error is None or error.__traceback__ is None:
        return None
    return "".join(traceback.format_exception(error))
