from __future__ import annotations

import asyncio
import random

import pytest

from docketsync.domain.errors import CriticalFieldValidationError, ExternalCallError
from docketsync.domain.model import ErrorKind
from docketsync.domain.resilience import (
    CircuitBreaker,
    Outcome,
    classify_error,
    compute_retry_delay,
    execute_with_retry,
    is_safe_to_repeat_create,
)


class _Flaky:
    def __init__(self, *errors: BaseException, value: str = "done") -> None:
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


class _Sleeps:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def test_retry_delay_applies_jitter_to_base_schedule() -> None:
    rng = random.Random(7)
    for attempt, base in enumerate((1.0, 4.0, 12.0, 12.0)):
        delay = compute_retry_delay(attempt, rng=rng)
        assert base * 0.75 <= delay <= base * 1.25


@pytest.mark.parametrize(
    ("attempt", "low", "high"),
    [(0, 0.5, 1.5), (1, 2.5, 5.5), (2, 8.0, 16.0), (5, 8.0, 16.0)],
)
def test_retry_delay_stays_within_its_band(attempt: int, low: float, high: float) -> None:
    rng = random.Random(attempt)
    for _ in range(50):
        assert low <= compute_retry_delay(attempt, rng=rng) <= high


def test_retry_delay_is_jittered() -> None:
    delays = {compute_retry_delay(1) for _ in range(20)}

    assert len(delays) >= 2


def test_retry_after_hint_wins_but_is_capped() -> None:
    assert compute_retry_delay(0, retry_after=5) == 5
    assert compute_retry_delay(2, retry_after=600) == 60
    assert compute_retry_delay(0, retry_after=120) == 60


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (ExternalCallError("boom", network=True), ErrorKind.TRANSIENT),
        (ExternalCallError("slow down", status_code=429), ErrorKind.TRANSIENT),
        (ExternalCallError("budget", code="COMPLEXITY_BUDGET_EXHAUSTED"), ErrorKind.TRANSIENT),
        (ExternalCallError("bad gateway", status_code=502), ErrorKind.TRANSIENT),
        (ExternalCallError("item is inactive", status_code=200), ErrorKind.ITEM_GONE),
        (ExternalCallError("invalid column", status_code=400), ErrorKind.PERMANENT),
        (
            CriticalFieldValidationError(
                source_id=1, column_id="text_case_number", value="", reason="required"
            ),
            ErrorKind.VALIDATION,
        ),
        (TimeoutError("timed out"), ErrorKind.TRANSIENT),
        (ConnectionResetError("reset"), ErrorKind.TRANSIENT),
        (ValueError("bad value"), ErrorKind.VALIDATION),
        (KeyError("missing"), ErrorKind.PERMANENT),
    ],
)
def test_classify_error(error: BaseException, kind: ErrorKind) -> None:
    assert classify_error(error) is kind


def test_create_is_repeated_only_when_remote_cannot_have_acted() -> None:
    refused = ExternalCallError("refused", network=True, request_sent=False)
    dropped = ExternalCallError("read timeout", network=True)
    throttled = ExternalCallError("slow down", status_code=429)

    assert is_safe_to_repeat_create(refused, classify_error(refused))
    assert not is_safe_to_repeat_create(dropped, classify_error(dropped))
    assert is_safe_to_repeat_create(throttled, classify_error(throttled))
    assert is_safe_to_repeat_create(ConnectionRefusedError(), ErrorKind.TRANSIENT)
    assert not is_safe_to_repeat_create(TimeoutError(), ErrorKind.TRANSIENT)


def test_transient_failures_are_retried_until_success() -> None:
    operation = _Flaky(TimeoutError("1"), TimeoutError("2"))
    sleeps = _Sleeps()

    outcome = asyncio.run(
        execute_with_retry(operation, name="op", max_attempts=3, sleep=sleeps, rng=random.Random(1))
    )

    assert outcome.ok
    assert outcome.value == "done"
    assert outcome.attempts == 3
    assert len(sleeps.delays) == 2


def test_permanent_failure_is_not_retried() -> None:
    operation = _Flaky(ExternalCallError("invalid", status_code=400))
    sleeps = _Sleeps()

    outcome = asyncio.run(execute_with_retry(operation, name="op", max_attempts=3, sleep=sleeps))

    assert not outcome.ok
    assert outcome.kind is ErrorKind.PERMANENT
    assert outcome.attempts == 1
    assert operation.calls == 1
    assert sleeps.delays == []


def test_retries_stop_at_max_attempts() -> None:
    operation = _Flaky(*(TimeoutError(str(n)) for n in range(5)))
    sleeps = _Sleeps()

    outcome = asyncio.run(execute_with_retry(operation, name="op", max_attempts=3, sleep=sleeps))

    assert outcome.kind is ErrorKind.TRANSIENT
    assert outcome.attempts == 3
    assert operation.calls == 3
    assert len(sleeps.delays) == 2


def test_retry_after_hint_is_used_as_delay() -> None:
    operation = _Flaky(ExternalCallError("slow down", status_code=429, retry_after=7))
    sleeps = _Sleeps()

    asyncio.run(execute_with_retry(operation, name="op", max_attempts=2, sleep=sleeps))

    assert sleeps.delays == [7]


def test_cancellation_propagates() -> None:
    operation = _Flaky(asyncio.CancelledError())

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(execute_with_retry(operation, name="op", max_attempts=3, sleep=_Sleeps()))


def test_breaker_trips_after_consecutive_failures() -> None:
    breaker = CircuitBreaker(threshold=3)

    assert not breaker.record_failure()
    assert not breaker.record_failure()
    breaker.record_success()
    assert not breaker.record_failure()
    assert not breaker.record_failure()
    assert breaker.record(Outcome.failure(TimeoutError()))
    assert breaker.record(Outcome.success("late"))


def test_zero_threshold_disables_breaker() -> None:
    breaker = CircuitBreaker(threshold=0)

    for _ in range(50):
        assert not breaker.record_failure()
