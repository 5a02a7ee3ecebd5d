"""Ordered propagation of each mapped case's nearest upcoming hearing."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from docketsync.domain.errors import CriticalFieldValidationError, ExternalCallError
from docketsync.domain.hearings import plan_hearing_steps, select_nearest_hearings, validate_labels
from docketsync.domain.model import (
    HEARING_OPERATIONS,
    HearingSnapshot,
    HearingStepKind,
    SyncOperation,
)
from docketsync.domain.versioning import hearing_checksum, normalize_text

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Collection

    from docketsync.domain.hearings import HearingPlan, HearingStep
    from docketsync.domain.model import HearingEvent, MappingRecord
    from docketsync.domain.sync.context import RunContext

log = getLogger(__name__)

_STEP_OPERATIONS = {
    HearingStepKind.STATUS: SyncOperation.HEARING_STATUS,
    HearingStepKind.JUDGE_CITY: SyncOperation.HEARING_JUDGE_CITY,
    HearingStepKind.DATE: SyncOperation.HEARING_DATE,
}


@dataclass(slots=True)
class HearingPassResult:
    with_upcoming: int = 0
    unchanged: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0


async def sync_hearings(ctx: RunContext, eligible_ids: Collection[int]) -> HearingPassResult:
    """Apply the nearest future hearing of every mapped, eligible case.

    Steps of one hearing run strictly in order and stop at the first failure;
    the snapshot only advances once every step succeeded, so the next run
    replays from the last fully applied state.
    """

    settings = ctx.settings
    result = HearingPassResult()

    with ctx.uow_factory() as uow:
        mappings = uow.repositories.mappings.for_sources(settings.board_id, eligible_ids)
    if not mappings:
        return result

    events = await ctx.source.fetch_hearing_events(sorted(mappings))
    # source hearing times are wall-clock values in the configured zone
    now = ctx.now.astimezone(settings.tz) if settings.tz is not None else ctx.now
    nearest = select_nearest_hearings(events, now)
    result.with_upcoming = len(nearest)
    if not nearest:
        log.info("Hearings: no upcoming hearings for %s mapped case(s)", len(mappings))
        return result

    allowed: frozenset[str] | None = None
    for source_id in sorted(nearest):
        mapping = mappings.get(source_id)
        if mapping is None:
            continue
        hearing = nearest[source_id]
        if hearing_checksum(hearing) == mapping.hearing_checksum:
            result.unchanged += 1
            continue
        if ctx.breaker_open():
            continue
        if allowed is None:
            try:
                allowed = await ctx.metadata.allowed_labels(
                    settings.board_id, settings.hearing_columns.status
                )
            except ExternalCallError as exc:
                log.error(f"Hearings: could not load board metadata, skipping pass: {exc}")
                return result
        await _sync_one(ctx, mapping, hearing, allowed, result)

    log.info(
        "Hearings summary: upcoming=%s updated=%s unchanged=%s skipped=%s failed=%s",
        result.with_upcoming,
        result.updated,
        result.unchanged,
        result.skipped,
        result.failed,
    )
    return result


async def _sync_one(
    ctx: RunContext,
    mapping: MappingRecord,
    hearing: HearingEvent,
    allowed: frozenset[str],
    result: HearingPassResult,
) -> None:
    settings = ctx.settings
    with ctx.uow_factory() as uow:
        snapshot = uow.repositories.snapshots.get(mapping.source_id, settings.board_id)

    plan = plan_hearing_steps(hearing, snapshot, settings.labels)
    if plan.skipped is not None:
        result.skipped += 1
        log.warning("Skipping hearing for case %s: %s", mapping.source_id, plan.skipped)
        return

    invalid = validate_labels(plan, allowed)
    if invalid is not None:
        result.failed += 1
        ctx.fail_validation(
            mapping,
            SyncOperation.HEARING_STATUS,
            CriticalFieldValidationError(
                source_id=mapping.source_id,
                column_id=settings.hearing_columns.status,
                value=invalid,
                reason=f"label {invalid!r} is not offered by the board",
            ),
        )
        return

    if plan.is_noop:
        if not settings.dry_run:
            _record_snapshot(ctx, mapping, hearing)
        result.unchanged += 1
        ctx.succeeded(mapping.source_id, HEARING_OPERATIONS)
        return

    if settings.dry_run:
        result.updated += 1
        ctx.report.hearing_updated += 1
        log.info(
            "Dry run: would apply hearing steps %s to item %s",
            [step.kind.value for step in plan.steps],
            mapping.item_id,
        )
        return

    for step in plan.steps:
        operation = _STEP_OPERATIONS[step.kind]
        outcome = await ctx.call(operation, _step_call(ctx, mapping, plan, step))
        if not outcome.ok:
            result.failed += 1
            ctx.fail(mapping, operation, outcome)
            return

    _record_snapshot(ctx, mapping, hearing)
    result.updated += 1
    ctx.report.hearing_updated += 1
    ctx.succeeded(mapping.source_id, HEARING_OPERATIONS)
    log.info(
        "Applied hearing steps %s to item %s for case %s",
        [step.kind.value for step in plan.steps],
        mapping.item_id,
        mapping.source_id,
    )


def _step_call(
    ctx: RunContext,
    mapping: MappingRecord,
    plan: HearingPlan,
    step: HearingStep,
) -> Callable[[], Awaitable[None]]:
    board = ctx.board
    columns = ctx.settings.hearing_columns
    hearing = plan.hearing
    board_id = ctx.board_id
    item_id = mapping.item_id

    match step.kind:
        case HearingStepKind.STATUS:
            label = step.label or ""
            return lambda: board.update_hearing_status(
                board_id=board_id, item_id=item_id, column_id=columns.status, label=label
            )
        case HearingStepKind.JUDGE_CITY:
            return lambda: board.update_hearing_details(
                board_id=board_id,
                item_id=item_id,
                judge_column=columns.judge,
                judge=normalize_text(hearing.judge),
                city_column=columns.city,
                city=normalize_text(hearing.city),
            )
        case HearingStepKind.DATE:
            start = hearing.start
            if start is None:
                raise ValueError(f"Hearing for case {mapping.source_id} has no start")
            return lambda: board.update_hearing_date(
                board_id=board_id, item_id=item_id, column_id=columns.start, start=start
            )


def _record_snapshot(ctx: RunContext, mapping: MappingRecord, hearing: HearingEvent) -> None:
    board_id = ctx.board_id
    with ctx.uow_factory() as uow:
        repositories = uow.repositories
        snapshot = repositories.snapshots.get(mapping.source_id, board_id)
        if snapshot is None:
            snapshot = HearingSnapshot(
                source_id=mapping.source_id, board_id=board_id, item_id=mapping.item_id
            )
            repositories.snapshots.add(snapshot)
        snapshot.item_id = mapping.item_id
        snapshot.start = hearing.start
        snapshot.status = hearing.status
        snapshot.judge = hearing.judge
        snapshot.city = hearing.city
        snapshot.last_synced_at = ctx.now

        stored = repositories.mappings.get(mapping.source_id, board_id)
        if stored is not None:
            stored.hearing_checksum = hearing_checksum(hearing)
        uow.commit()
