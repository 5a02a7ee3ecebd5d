from __future__ import annotations

from datetime import UTC, datetime

from docketsync.domain.hearings import (
    HearingStep,
    plan_hearing_steps,
    select_nearest_hearings,
    validate_labels,
)
from docketsync.domain.model import HearingSnapshot, HearingStatus, HearingStepKind
from tests.helpers.cases import BOARD_ID, LABELS, make_hearing

NOW = datetime(2026, 3, 10, 9, 0)


def _snapshot(**overrides: object) -> HearingSnapshot:
    values: dict[str, object] = {
        "start": datetime(2026, 4, 2, 9, 30),
        "status": int(HearingStatus.ACTIVE),
        "judge": "Judge Cohen",
        "city": "Haifa",
    }
    values.update(overrides)
    return HearingSnapshot(
        source_id=1, board_id=BOARD_ID, item_id="9001", **values  # type: ignore[arg-type]
    )


def _kinds(steps: tuple[HearingStep, ...]) -> list[HearingStepKind]:
    return [step.kind for step in steps]


def test_nearest_hearing_is_earliest_future_event_per_case() -> None:
    events = [
        make_hearing(1, datetime(2026, 5, 1, 9, 0), event_id=1),
        make_hearing(1, datetime(2026, 4, 1, 9, 0), event_id=2),
        make_hearing(1, datetime(2026, 3, 1, 9, 0), event_id=3),
        make_hearing(2, datetime(2026, 3, 11, 8, 0), event_id=4),
    ]

    nearest = select_nearest_hearings(events, NOW)

    assert {source_id: event.event_id for source_id, event in nearest.items()} == {1: 2, 2: 4}


def test_hearing_starting_now_is_not_upcoming() -> None:
    assert select_nearest_hearings([make_hearing(1, NOW)], NOW) == {}


def test_events_without_start_are_ignored() -> None:
    assert select_nearest_hearings([make_hearing(1, None)], NOW) == {}
    assert select_nearest_hearings(None, NOW) == {}


def test_naive_hearing_times_compare_against_aware_now() -> None:
    aware_now = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)
    events = [
        make_hearing(1, datetime(2026, 3, 10, 8, 0)),
        make_hearing(2, datetime(2026, 3, 10, 10, 0)),
    ]

    assert set(select_nearest_hearings(events, aware_now)) == {2}


def test_new_active_hearing_sets_details_then_date_then_status() -> None:
    plan = plan_hearing_steps(make_hearing(), None, LABELS)

    assert plan.skipped is None
    assert _kinds(plan.steps) == [
        HearingStepKind.JUDGE_CITY,
        HearingStepKind.DATE,
        HearingStepKind.STATUS,
    ]
    assert plan.steps[-1].label == "Active"


def test_reschedule_flags_status_before_new_date() -> None:
    hearing = make_hearing(start=datetime(2026, 4, 9, 9, 30), status=HearingStatus.TRANSFERRED)

    plan = plan_hearing_steps(hearing, _snapshot(), LABELS)

    assert _kinds(plan.steps) == [HearingStepKind.STATUS, HearingStepKind.DATE]
    assert plan.steps[0].label == "Rescheduled"


def test_cancellation_only_touches_status() -> None:
    hearing = make_hearing(status=HearingStatus.CANCELLED, judge=None, city=None)

    plan = plan_hearing_steps(hearing, _snapshot(), LABELS)

    assert plan.steps == (HearingStep(HearingStepKind.STATUS, "Cancelled"),)


def test_already_cancelled_hearing_plans_nothing() -> None:
    hearing = make_hearing(status=HearingStatus.CANCELLED)

    plan = plan_hearing_steps(hearing, _snapshot(status=int(HearingStatus.CANCELLED)), LABELS)

    assert plan.is_noop
    assert plan.skipped is None


def test_unchanged_hearing_plans_nothing() -> None:
    assert plan_hearing_steps(make_hearing(), _snapshot(), LABELS).is_noop


def test_only_changed_fields_are_written() -> None:
    plan = plan_hearing_steps(make_hearing(city="Tel Aviv"), _snapshot(), LABELS)

    assert _kinds(plan.steps) == [HearingStepKind.JUDGE_CITY]


def test_unknown_status_is_skipped() -> None:
    plan = plan_hearing_steps(make_hearing(status=7), None, LABELS)

    assert plan.is_noop
    assert plan.skipped == "unknown status 7"


def test_missing_judge_or_city_skips_non_cancelled_hearing() -> None:
    plan = plan_hearing_steps(make_hearing(judge="  ", city=None), None, LABELS)

    assert plan.is_noop
    assert plan.skipped == "missing judge, city"


def test_validate_labels_reports_label_missing_on_board() -> None:
    plan = plan_hearing_steps(make_hearing(), None, LABELS)

    assert validate_labels(plan, {"Active", "Cancelled"}) is None
    assert validate_labels(plan, {"Cancelled"}) == "Active"
