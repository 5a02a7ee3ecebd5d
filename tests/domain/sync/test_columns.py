from __future__ import annotations

import asyncio
from datetime import date, datetime
from decimal import Decimal

import pytest

from docketsync.domain.errors import CriticalFieldValidationError, ExternalCallError
from docketsync.domain.sync import (
    DropdownAction,
    apply_dropdown_labels,
    build_column_values,
    build_item_name,
    resolve_dropdown_action,
)
from tests.helpers.cases import BOARD_ID, COLUMNS, make_case
from tests.helpers.fakes import FakeMetadata

OFFERED = frozenset({"100", "101", "102"})


def test_item_name_is_the_case_number() -> None:
    assert build_item_name(make_case(case_number=" C-0042 ")) == "C-0042"


def test_test_mode_prefix_is_not_doubled() -> None:
    assert build_item_name(make_case(), test_mode=True) == "[TEST] C-0001"
    assert build_item_name(make_case(case_number="[TEST] C-0001"), test_mode=True) == (
        "[TEST] C-0001"
    )


def test_values_render_per_column_type() -> None:
    case = make_case(
        client_phone="+972 54 123 4567",
        requested_claim_amount=Decimal("2500.50"),
        event_date=date(2026, 2, 14),
    )

    values = build_column_values(case, COLUMNS)

    assert values == {
        "text_case_number": "C-0001",
        "text_client_name": "Dana Levi",
        "phone_client": {"phone": "0541234567", "countryShortName": "IL"},
        "numeric_requested_claim": "2500.5",
        "date_event": {"date": "2026-02-14"},
    }


def test_datetime_values_render_as_dates() -> None:
    case = make_case(closed_at=datetime(2026, 5, 1, 17, 45))

    assert build_column_values(case, {"closed_at": "date_closed"}) == {
        "date_closed": {"date": "2026-05-01"}
    }


def test_empty_values_are_omitted_unless_clearing() -> None:
    case = make_case(client_name="  ", event_date=None)

    created = build_column_values(case, COLUMNS)
    updated = build_column_values(case, COLUMNS, clear_empty=True)

    assert "text_client_name" not in created
    assert "date_event" not in created
    assert updated["text_client_name"] == ""
    assert updated["date_event"] == ""


def test_zero_amount_is_written() -> None:
    values = build_column_values(make_case(requested_claim_amount=Decimal("0.00")), COLUMNS)

    assert values["numeric_requested_claim"] == "0"


@pytest.mark.parametrize(
    ("overrides", "column"),
    [
        ({"case_number": "  "}, "text_case_number"),
        ({"requested_claim_amount": Decimal("-1")}, "numeric_requested_claim"),
        ({"client_phone": "054-12"}, "phone_client"),
        ({"client_phone": "054-123-4567-89"}, "phone_client"),
        ({"event_date": date(1850, 1, 1)}, "date_event"),
    ],
)
def test_implausible_values_fail_before_any_write(
    overrides: dict[str, object], column: str
) -> None:
    case = make_case(7, **overrides)

    with pytest.raises(CriticalFieldValidationError) as excinfo:
        build_column_values(case, COLUMNS)

    assert excinfo.value.source_id == 7
    assert excinfo.value.column_id == column


def test_blank_optional_phone_is_not_validated() -> None:
    values = build_column_values(make_case(client_phone=""), COLUMNS)

    assert "phone_client" not in values


@pytest.mark.parametrize(
    ("label", "fallback", "action"),
    [
        ("101", None, DropdownAction.INCLUDE),
        ("101", "text_client_fallback", DropdownAction.INCLUDE),
        ("104", "text_client_fallback", DropdownAction.FALLBACK),
        ("104", None, DropdownAction.OMIT),
        ("", "text_client_fallback", DropdownAction.OMIT),
        (None, "text_client_fallback", DropdownAction.OMIT),
    ],
)
def test_dropdown_action(label: str | None, fallback: str | None, action: DropdownAction) -> None:
    assert resolve_dropdown_action(label, OFFERED, fallback_column=fallback) is action


def test_dropdown_labels_are_validated_against_board() -> None:
    metadata = FakeMetadata(dropdowns={"dropdown_client": OFFERED})
    values = {"text_case_number": "C-0001", "dropdown_client": "101"}

    applied = asyncio.run(
        apply_dropdown_labels(
            values,
            {"dropdown_client": "text_client_fallback"},
            metadata=metadata,
            board_id=BOARD_ID,
        )
    )

    assert applied == {"text_case_number": "C-0001", "dropdown_client": {"labels": ["101"]}}
    assert values["dropdown_client"] == "101"


def test_unknown_dropdown_label_is_never_sent() -> None:
    metadata = FakeMetadata(dropdowns={"dropdown_client": OFFERED})

    applied = asyncio.run(
        apply_dropdown_labels(
            {"dropdown_client": "104"},
            {"dropdown_client": None},
            metadata=metadata,
            board_id=BOARD_ID,
        )
    )

    assert applied == {}


def test_unavailable_dropdown_metadata_uses_fallback_column() -> None:
    metadata = FakeMetadata(error=ExternalCallError("board unreachable", network=True))

    applied = asyncio.run(
        apply_dropdown_labels(
            {"dropdown_client": "101"},
            {"dropdown_client": "text_client_fallback"},
            metadata=metadata,
            board_id=BOARD_ID,
        )
    )

    assert applied == {"text_client_fallback": "101"}


def test_cleared_dropdown_is_left_out_without_metadata_lookup() -> None:
    metadata = FakeMetadata(dropdowns={"dropdown_client": OFFERED})

    applied = asyncio.run(
        apply_dropdown_labels(
            {"dropdown_client": ""},
            {"dropdown_client": "text_client_fallback"},
            metadata=metadata,
            board_id=BOARD_ID,
        )
    )

    assert applied == {}
    assert metadata.lookups == 0
