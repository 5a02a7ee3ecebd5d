"""Onboarding eligibility: cutoff date, business-day cooling and idempotence."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable
    from datetime import tzinfo

    from docketsync.domain.model import CaseRecord

log = getLogger(__name__)

# datetime.weekday(): Monday=0 ... Sunday=6; the working week runs Sunday-Thursday
BUSINESS_WEEKDAYS: Final[frozenset[int]] = frozenset({6, 0, 1, 2, 3})


def is_business_day(day: date) -> bool:
    return day.weekday() in BUSINESS_WEEKDAYS


def add_business_days(start: date, days: int) -> date:
    """Return the first calendar day on which ``days`` business days have elapsed.

    ``start`` itself counts as business day #1 when it is a business day, so a
    Thursday plus three business days (Thu, Sun, Mon) lands on Tuesday. Zero
    days returns ``start`` unchanged.
    """

    if days < 0:
        raise ValueError(f"Business day count must be non-negative, got {days}")
    if days == 0:
        return start

    counted = 0
    current = start
    while True:
        if is_business_day(current):
            counted += 1
            if counted == days:
                return current + timedelta(days=1)
        current += timedelta(days=1)


def local_date(value: datetime, tz: tzinfo | None = None) -> date:
    """Calendar date of ``value``; aware values are converted to ``tz`` first."""

    if tz is not None and value.tzinfo is not None:
        return value.astimezone(tz).date()
    return value.date()


def is_on_or_after_cutoff(
    created_at: datetime | None,
    cutoff: date,
    *,
    tz: tzinfo | None = None,
) -> bool:
    """Date-only cutoff gate; a missing creation timestamp is never eligible."""

    if created_at is None:
        return False
    return local_date(created_at, tz) >= cutoff


def has_cooled(
    created_at: datetime | None,
    cooling_days: int,
    today: date,
    *,
    tz: tzinfo | None = None,
) -> bool:
    if created_at is None:
        return False
    return today >= add_business_days(local_date(created_at, tz), cooling_days)


def is_bootstrap_eligible(
    created_at: datetime | None,
    *,
    cutoff: date,
    cooling_days: int,
    today: date,
    tz: tzinfo | None = None,
) -> bool:
    return is_on_or_after_cutoff(created_at, cutoff, tz=tz) and has_cooled(
        created_at, cooling_days, today, tz=tz
    )


@dataclass(slots=True)
class BootstrapSelection:
    eligible: list[CaseRecord] = field(default_factory=list["CaseRecord"])
    already_mapped: int = 0
    before_cutoff: int = 0
    cooling: int = 0
    missing_created_at: int = 0

    @property
    def filtered_out(self) -> int:
        return self.before_cutoff + self.cooling + self.missing_created_at


def select_for_bootstrap(
    cases: Iterable[CaseRecord],
    mapped_ids: Collection[int],
    *,
    cutoff: date,
    cooling_days: int,
    today: date,
    tz: tzinfo | None = None,
) -> BootstrapSelection:
    """Split ``cases`` into those to onboard now and the reasons the rest are not."""

    selection = BootstrapSelection()
    for case in cases:
        if case.source_id in mapped_ids:
            selection.already_mapped += 1
            continue
        if case.created_at is None:
            selection.missing_created_at += 1
            log.warning("Case %s has no creation timestamp; not onboarding", case.source_id)
            continue
        if not is_on_or_after_cutoff(case.created_at, cutoff, tz=tz):
            selection.before_cutoff += 1
            continue
        if not has_cooled(case.created_at, cooling_days, today, tz=tz):
            selection.cooling += 1
            log.debug(
                "Case %s still cooling (created %s, %s business days)",
                case.source_id,
                case.created_at,
                cooling_days,
            )
            continue
        selection.eligible.append(case)
    return selection
