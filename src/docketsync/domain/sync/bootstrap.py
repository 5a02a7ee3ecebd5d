"""Onboarding of newly eligible cases onto the board."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from docketsync.domain.eligibility import is_on_or_after_cutoff, local_date, select_for_bootstrap
from docketsync.domain.errors import CriticalFieldValidationError
from docketsync.domain.model import (
    ONBOARDING_OPERATIONS,
    MappingRecord,
    RunOutcome,
    SyncOperation,
)
from docketsync.domain.resilience import Outcome, is_safe_to_repeat_create
from docketsync.domain.sync.columns import (
    apply_dropdown_labels,
    build_column_values,
    build_item_name,
)
from docketsync.domain.versioning import content_version

if TYPE_CHECKING:
    from docketsync.domain.model import CaseRecord
    from docketsync.domain.sync.context import RunContext

log = getLogger(__name__)


@dataclass(slots=True)
class BootstrapResult:
    total_from_source: int = 0
    already_mapped: int = 0
    cooling_filtered_out: int = 0
    newly_onboarded: int = 0
    skipped_guardrail: int = 0
    failed: int = 0


async def bootstrap_new_cases(ctx: RunContext, eligible_ids: set[int]) -> BootstrapResult:
    """Create one board item and one mapping for every newly eligible case.

    Discovery is a direct scan of ``eligible_ids`` (every case created on or
    after the cutoff), so a backlog built up during downtime is still found.
    """

    settings = ctx.settings
    result = BootstrapResult(total_from_source=len(eligible_ids))

    with ctx.uow_factory() as uow:
        mapped_ids = uow.repositories.mappings.mapped_source_ids(settings.board_id)

    candidate_ids = eligible_ids - mapped_ids
    result.already_mapped = len(eligible_ids) - len(candidate_ids)
    if not candidate_ids:
        log.info("Bootstrap: nothing new (%s eligible, all mapped)", len(eligible_ids))
        return result

    cases = await ctx.source.fetch_cases(sorted(candidate_ids))
    today = local_date(ctx.now, settings.tz)
    selection = select_for_bootstrap(
        cases,
        mapped_ids,
        cutoff=settings.cutoff,
        cooling_days=settings.cooling_days,
        today=today,
        tz=settings.tz,
    )
    result.cooling_filtered_out = selection.cooling + selection.missing_created_at
    result.skipped_guardrail = selection.before_cutoff
    ctx.report.count(RunOutcome.SKIPPED_INELIGIBLE, selection.filtered_out)

    batch = selection.eligible
    if settings.max_items_per_run > 0:
        batch = batch[: settings.max_items_per_run]

    for case in batch:
        if ctx.breaker_open():
            continue
        await _onboard(ctx, case, result)

    log.info(
        "Bootstrap summary: cutoff=%s cooling_days=%s total=%s already_mapped=%s "
        "cooling_filtered=%s onboarded=%s guardrail=%s failed=%s",
        settings.cutoff,
        settings.cooling_days,
        result.total_from_source,
        result.already_mapped,
        result.cooling_filtered_out,
        result.newly_onboarded,
        result.skipped_guardrail,
        result.failed,
    )
    return result


async def _onboard(ctx: RunContext, case: CaseRecord, result: BootstrapResult) -> None:
    settings = ctx.settings

    if not is_on_or_after_cutoff(case.created_at, settings.cutoff, tz=settings.tz):
        result.skipped_guardrail += 1
        ctx.report.count(RunOutcome.SKIPPED_INELIGIBLE)
        log.warning(
            "Bootstrap guardrail blocked pre-cutoff case %s (created %s, cutoff %s)",
            case.source_id,
            case.created_at,
            settings.cutoff,
        )
        return

    with ctx.uow_factory() as uow:
        existing = uow.repositories.mappings.get(case.source_id, settings.board_id)
    if existing is not None:
        result.already_mapped += 1
        log.debug("Case %s was mapped concurrently; skipping", case.source_id)
        return

    item_name = build_item_name(case, test_mode=settings.test_mode)
    try:
        column_values = build_column_values(case, settings.columns)
    except CriticalFieldValidationError as exc:
        result.failed += 1
        ctx.fail_validation(case, SyncOperation.BOOTSTRAP_CREATE, exc)
        return
    column_values = await apply_dropdown_labels(
        column_values,
        settings.dropdown_columns,
        metadata=ctx.metadata,
        board_id=settings.board_id,
    )

    version = content_version(case, settings.content_fields)
    if settings.dry_run:
        result.newly_onboarded += 1
        ctx.report.count(RunOutcome.CREATED)
        log.info("Dry run: would create item %r for case %s", item_name, case.source_id)
        return

    item_id = ctx.orphaned_items.pop(case.source_id, None)
    if item_id is not None:
        log.warning(
            "Adopting item %s created for case %s by an earlier run", item_id, case.source_id
        )
    else:
        lookup = await _find_existing_item(ctx, case)
        if lookup is not None and not lookup.ok:
            result.failed += 1
            ctx.fail(case, SyncOperation.FIND_ITEM, lookup)
            return
        item_id = lookup.value if lookup is not None else None
    if item_id is None:
        outcome: Outcome[str] = await ctx.call(
            SyncOperation.BOOTSTRAP_CREATE,
            lambda: ctx.board.create_item(
                board_id=settings.board_id,
                group_id=settings.group_id,
                item_name=item_name,
                column_values=column_values,
            ),
            retry_if=is_safe_to_repeat_create,
        )
        if not outcome.ok or outcome.value is None:
            result.failed += 1
            ctx.fail(case, SyncOperation.BOOTSTRAP_CREATE, outcome)
            return
        item_id = outcome.value

    mapping = MappingRecord(
        source_id=case.source_id,
        case_number=case.case_number,
        item_id=item_id,
        board_id=settings.board_id,
        created_at=ctx.now,
        case_created_at=case.created_at,
    )
    mapping.record_sync(content_version=version, item_name=item_name, at=ctx.now)
    try:
        with ctx.uow_factory() as uow:
            uow.repositories.mappings.add(mapping)
            uow.commit()
    except Exception as exc:
        result.failed += 1
        ctx.fail(case, SyncOperation.RECORD_MAPPING, Outcome.failure(exc), item_id=item_id)
        return

    ctx.written_item_ids.add(item_id)
    ctx.created_source_ids.add(case.source_id)
    result.newly_onboarded += 1
    ctx.report.count(RunOutcome.CREATED)
    ctx.succeeded(case.source_id, ONBOARDING_OPERATIONS)
    log.info("Created item %s (%r) for case %s", item_id, item_name, case.source_id)


async def _find_existing_item(ctx: RunContext, case: CaseRecord) -> Outcome[str | None] | None:
    """Look for an item left behind by an earlier create whose result was lost.

    Only cases with unresolved failures are looked up; ``None`` means no lookup ran.
    """

    if case.source_id not in ctx.unresolved_operations:
        return None
    column_id = ctx.settings.columns.get("case_number")
    if column_id is None:
        return None
    outcome: Outcome[str | None] = await ctx.call(
        SyncOperation.FIND_ITEM,
        lambda: ctx.board.find_item_by_column(
            board_id=ctx.board_id, column_id=column_id, value=case.case_number
        ),
    )
    if outcome.ok and outcome.value is not None:
        log.warning(
            "Adopting existing item %s for case %s instead of creating a new one",
            outcome.value,
            case.source_id,
        )
    return outcome
