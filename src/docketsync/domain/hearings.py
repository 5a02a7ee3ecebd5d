"""Nearest-hearing selection and ordered board update planning.

Hearing fields are never written as one multi-column change. A reschedule
shows "rescheduled" before the new date appears; a new hearing gets its judge,
city and date before it is flipped to "active"; a cancellation only touches
the status.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from docketsync.domain.model import HearingStatus, HearingStepKind
from docketsync.domain.versioning import normalize_datetime, normalize_text

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable
    from datetime import datetime

    from docketsync.domain.model import HearingEvent, HearingSnapshot


@dataclass(frozen=True, slots=True)
class StatusLabels:
    active: str
    rescheduled: str
    cancelled: str

    def for_status(self, status: HearingStatus) -> str:
        match status:
            case HearingStatus.ACTIVE:
                return self.active
            case HearingStatus.CANCELLED:
                return self.cancelled
            case HearingStatus.TRANSFERRED:
                return self.rescheduled


@dataclass(frozen=True, slots=True)
class HearingStep:
    kind: HearingStepKind
    label: str | None = None


@dataclass(frozen=True, slots=True)
class HearingPlan:
    hearing: HearingEvent
    steps: tuple[HearingStep, ...] = ()
    skipped: str | None = None

    @property
    def is_noop(self) -> bool:
        return not self.steps


def _align(value: datetime, reference: datetime) -> datetime:
    if (value.tzinfo is None) == (reference.tzinfo is None):
        return value
    if value.tzinfo is None:
        return value.replace(tzinfo=reference.tzinfo)
    return value.replace(tzinfo=None)


def select_nearest_hearings(
    events: Iterable[HearingEvent] | None,
    now: datetime,
) -> dict[int, HearingEvent]:
    """Return, per case, the single earliest hearing starting strictly after ``now``."""

    if events is None:
        return {}

    nearest: dict[int, tuple[datetime, HearingEvent]] = {}
    for event in events:
        if event.source_id is None or event.start is None:
            continue
        start = _align(event.start, now)
        if start <= now:
            continue
        current = nearest.get(event.source_id)
        if current is None or start < current[0]:
            nearest[event.source_id] = (start, event)
    return {source_id: event for source_id, (_, event) in nearest.items()}


def _parse_status(value: int | None) -> HearingStatus | None:
    if value is None:
        return None
    try:
        return HearingStatus(value)
    except ValueError:
        return None


def plan_hearing_steps(
    hearing: HearingEvent,
    snapshot: HearingSnapshot | None,
    labels: StatusLabels,
) -> HearingPlan:
    """Compute the ordered board writes needed to move ``snapshot`` to ``hearing``.

    Only changed fields produce a step, so a hearing identical to its snapshot
    plans nothing. ``skipped`` explains plans that cannot be executed.
    """

    status = _parse_status(hearing.status)
    if status is None:
        return HearingPlan(hearing=hearing, skipped=f"unknown status {hearing.status!r}")

    if hearing.start is None:
        return HearingPlan(hearing=hearing, skipped="missing start")

    status_changed = snapshot is None or snapshot.status != int(status)
    if status is HearingStatus.CANCELLED:
        steps = (
            (HearingStep(HearingStepKind.STATUS, labels.cancelled),) if status_changed else ()
        )
        return HearingPlan(hearing=hearing, steps=steps)

    missing = [
        name
        for name, value in (("judge", hearing.judge), ("city", hearing.city))
        if not normalize_text(value)
    ]
    if missing:
        return HearingPlan(hearing=hearing, skipped=f"missing {', '.join(missing)}")

    start_changed = snapshot is None or (
        normalize_datetime(snapshot.start) != normalize_datetime(hearing.start)
    )
    details_changed = (
        snapshot is None
        or normalize_text(snapshot.judge) != normalize_text(hearing.judge)
        or normalize_text(snapshot.city) != normalize_text(hearing.city)
    )

    status_step = HearingStep(HearingStepKind.STATUS, labels.for_status(status))
    details_step = HearingStep(HearingStepKind.JUDGE_CITY)
    date_step = HearingStep(HearingStepKind.DATE)

    if status is HearingStatus.TRANSFERRED:
        ordered = (
            (status_changed, status_step),
            (details_changed, details_step),
            (start_changed, date_step),
        )
    else:
        ordered = (
            (details_changed, details_step),
            (start_changed, date_step),
            (status_changed, status_step),
        )
    steps = tuple(step for changed, step in ordered if changed)
    return HearingPlan(hearing=hearing, steps=steps)


def validate_labels(plan: HearingPlan, allowed: Collection[str]) -> str | None:
    """Return the first planned status label the board does not offer, if any."""

    for step in plan.steps:
        if step.kind is HearingStepKind.STATUS and step.label not in allowed:
            return step.label
    return None
