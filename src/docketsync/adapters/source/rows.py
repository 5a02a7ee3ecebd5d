"""Row adapters mapping source schema variants onto ``CaseRecord``.

Both variants describe the same cases; they differ in column naming and in
how a few values are stored (the legacy layout splits hearing date and time
and keeps amounts as text).
"""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from logging import getLogger
from typing import TYPE_CHECKING, Any

from docketsync.domain.model import CaseRecord, HearingEvent

if TYPE_CHECKING:
    from collections.abc import Mapping

log = getLogger(__name__)


def _text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _decimal(value: object) -> Decimal | None:
    if value is None or isinstance(value, Decimal):
        return value
    if isinstance(value, int | float):
        return Decimal(str(value))
    text = str(value).strip().replace(",", "")
    if not text:
        return None
    try:
        return Decimal(text)
    except InvalidOperation:
        log.warning("Ignoring non-numeric amount %r", value)
        return None


def _date(value: object) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    return date.fromisoformat(text[:10])


def _datetime(value: object) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    text = str(value).strip()
    if not text:
        return None
    return datetime.fromisoformat(text)


def _int(value: object) -> int | None:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    return int(text) if text else None


def _combine(day: object, clock: object) -> datetime | None:
    start = _datetime(day)
    if start is None:
        return None
    if isinstance(clock, time):
        at = clock
    else:
        parsed = _datetime(clock)
        if parsed is None:
            return start
        at = parsed.time()
    return datetime.combine(start.date(), at, tzinfo=start.tzinfo)


def case_from_export_row(row: Mapping[str, Any]) -> CaseRecord:
    return CaseRecord(
        source_id=int(row["case_id"]),
        case_number=_text(row["case_number"]) or "",
        case_name=_text(row.get("case_name")),
        created_at=_datetime(row.get("created_at")),
        modified_at=_datetime(row.get("modified_at")),
        closed_at=_datetime(row.get("closed_at")),
        client_name=_text(row.get("client_name")),
        client_number=_text(row.get("client_number")),
        client_phone=_text(row.get("client_phone")),
        status_name=_text(row.get("status_name")),
        document_type=_text(row.get("document_type")),
        claim_number=_text(row.get("claim_number")),
        plaintiff_name=_text(row.get("plaintiff_name")),
        defendant_name=_text(row.get("defendant_name")),
        defendant_side_raw=_text(row.get("defendant_side")),
        policy_holder_name=_text(row.get("policy_holder_name")),
        policy_holder_phone=_text(row.get("policy_holder_phone")),
        direct_damage_amount=_decimal(row.get("direct_damage_amount")),
        requested_claim_amount=_decimal(row.get("requested_claim_amount")),
        event_date=_date(row.get("event_date")),
        court_name=_text(row.get("court_name")),
        court_case_number=_text(row.get("court_case_number")),
        hearing_date=_date(row.get("hearing_date")),
        hearing_judge_name=_text(row.get("hearing_judge")),
        hearing_city=_text(row.get("hearing_city")),
        notes=_text(row.get("notes")),
    )


def case_from_legacy_row(row: Mapping[str, Any]) -> CaseRecord:
    return CaseRecord(
        source_id=int(row["CaseCounter"]),
        case_number=_text(row["CaseNumber"]) or "",
        case_name=_text(row.get("CaseName")),
        created_at=_datetime(row.get("CreateDate")),
        modified_at=_datetime(row.get("ModifyDate")),
        closed_at=_datetime(row.get("CloseDate")),
        client_name=_text(row.get("ClientName")),
        client_number=_text(row.get("ClientNumber")),
        client_phone=_text(row.get("ClientPhone")),
        status_name=_text(row.get("StatusName")),
        document_type=_text(row.get("DocumentType")),
        claim_number=_text(row.get("ClaimNumber")),
        plaintiff_name=_text(row.get("PlaintiffName")),
        defendant_name=_text(row.get("DefendantName")),
        defendant_side_raw=_text(row.get("DefendantSide")),
        policy_holder_name=_text(row.get("PolicyHolderName")),
        policy_holder_phone=_text(row.get("PolicyHolderPhone")),
        direct_damage_amount=_decimal(row.get("DirectDamage")),
        requested_claim_amount=_decimal(row.get("RequestedClaim")),
        event_date=_date(row.get("EventDate")),
        court_name=_text(row.get("CourtName")),
        court_case_number=_text(row.get("CourtCaseNumber")),
        hearing_date=_date(row.get("HearingDate")),
        hearing_judge_name=_text(row.get("JudgeName")),
        hearing_city=_text(row.get("HearingCity")),
        notes=_text(row.get("Notes")),
    )


def hearing_from_export_row(row: Mapping[str, Any]) -> HearingEvent:
    return HearingEvent(
        source_id=_int(row.get("case_id")),
        start=_datetime(row.get("start_at")),
        status=_int(row.get("status")),
        judge=_text(row.get("judge_name")),
        city=_text(row.get("city")),
        event_id=_int(row.get("event_id")),
    )


def hearing_from_legacy_row(row: Mapping[str, Any]) -> HearingEvent:
    return HearingEvent(
        source_id=_int(row.get("CaseCounter")),
        start=_combine(row.get("StartDate"), row.get("FromTime")),
        status=_int(row.get("MeetStatus")),
        judge=_text(row.get("JudgeName")),
        city=_text(row.get("City")),
        event_id=_int(row.get("EventCounter")),
    )
