"""Canonical case records read from the source of record.

Every source schema variant is translated into these types by an adapter
function; nothing downstream knows which variant a record came from.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import date, datetime
    from decimal import Decimal


@dataclass(slots=True, frozen=True)
class NearestHearing:
    """The nearest upcoming hearing of a case, as last selected."""

    start: datetime | None = None
    status: int | None = None
    judge: str | None = None
    city: str | None = None


@dataclass(slots=True, frozen=True)
class HearingEvent:
    """One candidate hearing from the source diary."""

    source_id: int | None
    start: datetime | None
    status: int | None = None
    judge: str | None = None
    city: str | None = None
    event_id: int | None = None

    def as_nearest(self) -> NearestHearing:
        return NearestHearing(
            start=self.start, status=self.status, judge=self.judge, city=self.city
        )


@dataclass(slots=True, frozen=True)
class CaseRecord:
    source_id: int
    case_number: str
    case_name: str | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None
    closed_at: datetime | None = None

    client_name: str | None = None
    client_number: str | None = None
    client_phone: str | None = None
    status_name: str | None = None
    document_type: str | None = None
    claim_number: str | None = None

    plaintiff_name: str | None = None
    defendant_name: str | None = None
    defendant_side_raw: str | None = None
    policy_holder_name: str | None = None
    policy_holder_phone: str | None = None

    direct_damage_amount: Decimal | None = None
    requested_claim_amount: Decimal | None = None
    event_date: date | None = None

    court_name: str | None = None
    court_case_number: str | None = None
    hearing_date: date | None = None
    hearing_judge_name: str | None = None
    hearing_city: str | None = None

    notes: str | None = None
    nearest_hearing: NearestHearing | None = None
