"""Content reconciliation of already-mapped cases."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from docketsync.domain.eligibility import is_on_or_after_cutoff
from docketsync.domain.errors import CriticalFieldValidationError
from docketsync.domain.model import CONTENT_OPERATIONS, RunOutcome, SyncOperation
from docketsync.domain.sync.columns import (
    apply_dropdown_labels,
    build_column_values,
    build_item_name,
)
from docketsync.domain.versioning import content_version

if TYPE_CHECKING:
    from collections.abc import Collection

    from docketsync.domain.model import CaseRecord, MappingRecord
    from docketsync.domain.sync.context import RunContext

log = getLogger(__name__)


@dataclass(slots=True)
class ReconcileResult:
    considered: int = 0
    updated: int = 0
    renamed: int = 0
    unchanged: int = 0
    duplicates: int = 0
    pre_cutoff: int = 0
    missing_from_source: int = 0
    failed: int = 0


async def reconcile_mapped_cases(
    ctx: RunContext, eligible_ids: Collection[int]
) -> ReconcileResult:
    """Push changed content of every mapped, eligible case to its board item.

    Change detection is a full reload compared by content hash; the source's
    modification timestamps are never consulted. Cases onboarded earlier in
    the same run are left alone, and an item already written this run is
    counted as a duplicate.
    """

    settings = ctx.settings
    result = ReconcileResult()

    with ctx.uow_factory() as uow:
        mappings = uow.repositories.mappings.for_sources(settings.board_id, eligible_ids)
    if not mappings:
        log.info("Reconcile: no mapped cases among %s eligible", len(eligible_ids))
        return result

    active: dict[int, MappingRecord] = {}
    for source_id, mapping in mappings.items():
        if source_id in ctx.created_source_ids:
            continue
        if mapping.case_created_at is not None and not is_on_or_after_cutoff(
            mapping.case_created_at, settings.cutoff, tz=settings.tz
        ):
            result.pre_cutoff += 1
            ctx.report.count(RunOutcome.SKIPPED_INELIGIBLE)
            continue
        active[source_id] = mapping

    cases = await ctx.source.fetch_cases(sorted(active))
    by_id = {case.source_id: case for case in cases}
    result.missing_from_source = len(set(active) - set(by_id))
    if result.missing_from_source:
        log.warning(
            "Reconcile: %s mapped case(s) no longer returned by the source",
            result.missing_from_source,
        )

    for source_id in sorted(by_id):
        if ctx.breaker_open():
            continue
        result.considered += 1
        await _reconcile_one(ctx, by_id[source_id], active[source_id], result)

    log.info(
        "Reconcile summary: considered=%s updated=%s renamed=%s unchanged=%s "
        "duplicates=%s pre_cutoff=%s missing=%s failed=%s",
        result.considered,
        result.updated,
        result.renamed,
        result.unchanged,
        result.duplicates,
        result.pre_cutoff,
        result.missing_from_source,
        result.failed,
    )
    return result


async def _reconcile_one(
    ctx: RunContext,
    case: CaseRecord,
    mapping: MappingRecord,
    result: ReconcileResult,
) -> None:
    settings = ctx.settings

    if mapping.item_id in ctx.written_item_ids:
        result.duplicates += 1
        ctx.report.count(RunOutcome.SKIPPED_DUPLICATE)
        log.debug("Item %s already written this run; skipping", mapping.item_id)
        return

    version = content_version(case, settings.content_fields)
    item_name = build_item_name(case, test_mode=settings.test_mode)
    content_changed = version != mapping.content_version
    name_changed = item_name != mapping.item_name

    if not content_changed and not name_changed:
        result.unchanged += 1
        ctx.report.count(RunOutcome.SKIPPED_UNCHANGED)
        ctx.succeeded(case.source_id, CONTENT_OPERATIONS)
        return

    try:
        column_values = build_column_values(case, settings.columns, clear_empty=True)
    except CriticalFieldValidationError as exc:
        result.failed += 1
        ctx.fail_validation(case, SyncOperation.UPDATE_COLUMNS, exc)
        return
    column_values = await apply_dropdown_labels(
        column_values,
        settings.dropdown_columns,
        metadata=ctx.metadata,
        board_id=settings.board_id,
    )

    if settings.dry_run:
        result.updated += 1
        ctx.report.count(RunOutcome.UPDATED)
        log.info(
            "Dry run: would update item %s for case %s (content=%s name=%s)",
            mapping.item_id,
            case.source_id,
            content_changed,
            name_changed,
        )
        return

    if name_changed:
        renamed = await ctx.call(
            SyncOperation.RENAME_ITEM,
            lambda: ctx.board.rename_item(
                board_id=settings.board_id, item_id=mapping.item_id, item_name=item_name
            ),
        )
        if not renamed.ok:
            result.failed += 1
            ctx.fail(case, SyncOperation.RENAME_ITEM, renamed)
            return
        result.renamed += 1

    if content_changed:
        updated = await ctx.call(
            SyncOperation.UPDATE_COLUMNS,
            lambda: ctx.board.update_item(
                board_id=settings.board_id,
                item_id=mapping.item_id,
                column_values=column_values,
            ),
        )
        if not updated.ok:
            result.failed += 1
            ctx.fail(case, SyncOperation.UPDATE_COLUMNS, updated)
            return

    with ctx.uow_factory() as uow:
        stored = uow.repositories.mappings.get(case.source_id, settings.board_id)
        if stored is not None:
            stored.case_number = case.case_number
            stored.record_sync(content_version=version, item_name=item_name, at=ctx.now)
        uow.commit()

    ctx.written_item_ids.add(mapping.item_id)
    result.updated += 1
    ctx.report.count(RunOutcome.UPDATED)
    ctx.succeeded(case.source_id, CONTENT_OPERATIONS)
    log.info("Updated item %s for case %s", mapping.item_id, case.source_id)
