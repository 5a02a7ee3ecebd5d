"""Board item names and column values rendered from case records."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Final

from docketsync.domain.errors import CriticalFieldValidationError
from docketsync.domain.versioning import normalize_decimal, normalize_phone, normalize_text

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping

    from docketsync.domain.model import CaseRecord
    from docketsync.domain.ports import BoardMetadataProvider

log = getLogger(__name__)

TEST_PREFIX: Final[str] = "[TEST] "
PHONE_COUNTRY: Final[str] = "IL"
MIN_PHONE_DIGITS: Final[int] = 9
MAX_PHONE_DIGITS: Final[int] = 10
EARLIEST_PLAUSIBLE_YEAR: Final[int] = 1900
CRITICAL_FIELDS: Final[frozenset[str]] = frozenset({"case_number"})


def build_item_name(case: CaseRecord, *, test_mode: bool = False) -> str:
    name = normalize_text(case.case_number)
    if test_mode and not name.startswith(TEST_PREFIX):
        return f"{TEST_PREFIX}{name}"
    return name


def _render(field_name: str, value: object) -> object | None:
    if isinstance(value, str) and not value.strip():
        return None
    if value is None:
        return None
    if field_name.endswith("_phone"):
        return {"phone": normalize_phone(value), "countryShortName": PHONE_COUNTRY}
    if isinstance(value, datetime):
        return {"date": value.date().isoformat()}
    if isinstance(value, date):
        return {"date": value.isoformat()}
    if isinstance(value, Decimal | int | float):
        return normalize_decimal(value)
    return normalize_text(value)


def _validate(case: CaseRecord, field_name: str, column_id: str, value: object) -> None:
    def fail(reason: str) -> None:
        raise CriticalFieldValidationError(
            source_id=case.source_id, column_id=column_id, value=value, reason=reason
        )

    if field_name in CRITICAL_FIELDS and not normalize_text(value):
        fail("required value is empty")
    if value is None:
        return
    if isinstance(value, Decimal | int | float) and value < 0:
        fail("amount must not be negative")
    if field_name.endswith("_phone") and normalize_text(value):
        digits = normalize_phone(value)
        if not MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS:
            fail(f"phone number has {len(digits)} digits")
    if isinstance(value, date) and value.year < EARLIEST_PLAUSIBLE_YEAR:
        fail(f"implausible date {value.isoformat()}")


def build_column_values(
    case: CaseRecord,
    columns: Mapping[str, str],
    *,
    clear_empty: bool = False,
) -> dict[str, object]:
    """Render the mapped case attributes as a board ``column_values`` payload.

    Raises :class:`CriticalFieldValidationError` before anything is written
    when a value fails its sanity check. Empty values are omitted unless
    ``clear_empty`` is set, in which case they clear the column.
    """

    values: dict[str, object] = {}
    for field_name, column_id in columns.items():
        value = getattr(case, field_name)
        _validate(case, field_name, column_id, value)
        rendered = _render(field_name, value)
        if rendered is None:
            if clear_empty:
                values[column_id] = ""
            continue
        values[column_id] = rendered
    return values


class DropdownAction(StrEnum):
    INCLUDE = "include"
    FALLBACK = "fallback"
    OMIT = "omit"


def resolve_dropdown_action(
    label: str | None, allowed: Collection[str], *, fallback_column: str | None
) -> DropdownAction:
    if label is None or not label.strip():
        return DropdownAction.OMIT
    if label.strip() in allowed:
        return DropdownAction.INCLUDE
    return DropdownAction.FALLBACK if fallback_column else DropdownAction.OMIT


async def apply_dropdown_labels(
    values: Mapping[str, object],
    dropdowns: Mapping[str, str | None],
    *,
    metadata: BoardMetadataProvider,
    board_id: int,
) -> dict[str, object]:
    """Rewrite dropdown column values into label payloads the board accepts.

    A label the column does not offer goes to the column's fallback text
    column, or is left out when it has none. Unvalidated labels are never sent.
    """

    result = dict(values)
    for column_id, fallback in dropdowns.items():
        if column_id not in result:
            continue
        raw = result.pop(column_id)
        label = raw.strip() if isinstance(raw, str) else None
        allowed: frozenset[str] = frozenset()
        if label:
            try:
                allowed = await metadata.allowed_labels(board_id, column_id)
            except Exception:
                log.warning(
                    "Labels of dropdown %s on board %s unavailable",
                    column_id,
                    board_id,
                    exc_info=True,
                )
        action = resolve_dropdown_action(label, allowed, fallback_column=fallback)
        if action is DropdownAction.INCLUDE:
            result[column_id] = {"labels": [label]}
        elif action is DropdownAction.FALLBACK and fallback is not None:
            result[fallback] = label
        elif label:
            log.warning("Dropdown %s does not offer %r; value left out", column_id, label)
    return result
