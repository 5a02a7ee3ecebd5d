"""Deterministic content versions for change detection.

A content version is a SHA-256 digest over an ordered list of normalised case
fields. Two records with the same business content always hash identically,
whatever their "last modified" timestamps say, and any change to a tracked
field changes the hash.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Sequence

    from docketsync.domain.model import CaseRecord, HearingEvent, NearestHearing

_NON_DIGITS = re.compile(r"\D+")
INTERNATIONAL_PREFIX: Final[str] = "972"
DATE_FORMAT: Final[str] = "%Y-%m-%d"
DATETIME_FORMAT: Final[str] = "%Y-%m-%dT%H:%M:%S"


class FieldKind(StrEnum):
    TEXT = "text"
    PHONE = "phone"
    DECIMAL = "decimal"
    DATE = "date"
    DATETIME = "datetime"


@dataclass(frozen=True, slots=True)
class ContentField:
    name: str
    kind: FieldKind = FieldKind.TEXT


DEFAULT_CONTENT_FIELDS: Final[tuple[ContentField, ...]] = (
    ContentField("case_number"),
    ContentField("case_name"),
    ContentField("client_name"),
    ContentField("client_number"),
    ContentField("client_phone", FieldKind.PHONE),
    ContentField("status_name"),
    ContentField("document_type"),
    ContentField("claim_number"),
    ContentField("plaintiff_name"),
    ContentField("defendant_name"),
    ContentField("defendant_side_raw"),
    ContentField("policy_holder_name"),
    ContentField("policy_holder_phone", FieldKind.PHONE),
    ContentField("direct_damage_amount", FieldKind.DECIMAL),
    ContentField("requested_claim_amount", FieldKind.DECIMAL),
    ContentField("event_date", FieldKind.DATE),
    ContentField("court_name"),
    ContentField("court_case_number"),
    ContentField("hearing_date", FieldKind.DATE),
    ContentField("hearing_judge_name"),
    ContentField("hearing_city"),
    ContentField("closed_at", FieldKind.DATETIME),
)


def normalize_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_phone(value: object) -> str:
    """Reduce a phone number to local digits (``+972 54-123`` -> ``054123``)."""

    digits = _NON_DIGITS.sub("", normalize_text(value))
    if digits.startswith(INTERNATIONAL_PREFIX) and len(digits) > len(INTERNATIONAL_PREFIX):
        digits = "0" + digits[len(INTERNATIONAL_PREFIX) :]
    return digits


def normalize_decimal(value: object) -> str:
    """``None`` -> ``""``; numbers render without exponent or trailing zeros."""

    if value is None:
        return ""
    if isinstance(value, str) and not value.strip():
        return ""
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        return normalize_text(value)
    if number == 0:
        return "0"
    return format(number.normalize(), "f")


def normalize_date(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().strftime(DATE_FORMAT)
    if isinstance(value, date):
        return value.strftime(DATE_FORMAT)
    return normalize_text(value)


def normalize_datetime(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime(DATETIME_FORMAT)
    if isinstance(value, date):
        return value.strftime(DATE_FORMAT)
    return normalize_text(value)


_NORMALIZERS = {
    FieldKind.TEXT: normalize_text,
    FieldKind.PHONE: normalize_phone,
    FieldKind.DECIMAL: normalize_decimal,
    FieldKind.DATE: normalize_date,
    FieldKind.DATETIME: normalize_datetime,
}


def _digest(values: Sequence[str]) -> str:
    # JSON keeps field boundaries unambiguous whatever the values contain
    payload = json.dumps(list(values), ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def normalized_fields(
    case: CaseRecord,
    fields: Sequence[ContentField] = DEFAULT_CONTENT_FIELDS,
) -> list[str]:
    return [_NORMALIZERS[field.kind](getattr(case, field.name)) for field in fields]


def content_version(
    case: CaseRecord,
    fields: Sequence[ContentField] = DEFAULT_CONTENT_FIELDS,
) -> str:
    """Return the 64-character lowercase hex content version of ``case``."""

    return _digest(normalized_fields(case, fields))


def hearing_checksum(hearing: NearestHearing | HearingEvent | None) -> str | None:
    if hearing is None:
        return None
    return _digest(
        [
            normalize_datetime(hearing.start),
            "" if hearing.status is None else str(hearing.status),
            normalize_text(hearing.judge),
            normalize_text(hearing.city),
        ]
    )

