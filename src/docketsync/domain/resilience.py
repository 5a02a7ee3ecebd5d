"""Retry, classification and circuit breaking for external writes.

Exceptions are classified exactly once, at the point they are caught, and
turned into an :class:`Outcome` carrying an :class:`ErrorKind`. Everything
downstream (retry decisions, breaker accounting, dead-letter rows) works on
that value instead of re-catching exception types.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from docketsync.domain.errors import CriticalFieldValidationError, ExternalCallError
from docketsync.domain.model import ErrorKind

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

log = getLogger(__name__)

BASE_RETRY_DELAYS: Final[tuple[float, ...]] = (1.0, 4.0, 12.0)
JITTER_RATIO: Final[float] = 0.25
MAX_RETRY_AFTER_SECONDS: Final[float] = 60.0

type RetryPredicate = Callable[[BaseException, ErrorKind], bool]


def compute_retry_delay(
    attempt: int,
    *,
    retry_after: float | None = None,
    rng: random.Random | None = None,
) -> float:
    """Seconds to wait before retry number ``attempt`` (0-based).

    An upstream retry-after hint wins over the computed backoff, capped at 60s.
    """

    if retry_after is not None and retry_after >= 0:
        return min(retry_after, MAX_RETRY_AFTER_SECONDS)
    base = BASE_RETRY_DELAYS[min(max(attempt, 0), len(BASE_RETRY_DELAYS) - 1)]
    source = rng or random
    return base * (1.0 + source.uniform(-JITTER_RATIO, JITTER_RATIO))


def classify_error(exc: BaseException) -> ErrorKind:
    if isinstance(exc, CriticalFieldValidationError):
        return ErrorKind.VALIDATION
    if isinstance(exc, ExternalCallError):
        if exc.network or exc.is_rate_limited or exc.is_complexity_exhausted:
            return ErrorKind.TRANSIENT
        if exc.is_inactive_item:
            return ErrorKind.ITEM_GONE
        if exc.is_server_error:
            return ErrorKind.TRANSIENT
        return ErrorKind.PERMANENT
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return ErrorKind.TRANSIENT
    if isinstance(exc, ValueError):
        return ErrorKind.VALIDATION
    return ErrorKind.PERMANENT


def is_transient(exc: BaseException, kind: ErrorKind) -> bool:
    _ = exc
    return kind is ErrorKind.TRANSIENT


def is_safe_to_repeat_create(exc: BaseException, kind: ErrorKind) -> bool:
    """Creation is only repeated when the remote side cannot have acted on it."""

    if kind is not ErrorKind.TRANSIENT:
        return False
    if isinstance(exc, ExternalCallError):
        return not exc.request_sent or exc.is_rate_limited or exc.is_complexity_exhausted
    return isinstance(exc, ConnectionRefusedError)


@dataclass(frozen=True, slots=True)
class Outcome[T]:
    value: T | None = None
    error: BaseException | None = None
    kind: ErrorKind | None = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T, *, attempts: int = 1) -> Outcome[T]:
        return cls(value=value, attempts=attempts)

    @classmethod
    def failure(cls, error: BaseException, *, attempts: int = 1) -> Outcome[T]:
        return cls(error=error, kind=classify_error(error), attempts=attempts)


@dataclass(slots=True)
class CircuitBreaker:
    """Consecutive-failure breaker scoped to a single run.

    Once tripped it stays open until a new breaker is created for the next run.
    A threshold of zero disables it.
    """

    threshold: int
    consecutive_failures: int = 0
    tripped: bool = False

    def record_success(self) -> None:
        self.consecutive_failures = 0

    def record_failure(self) -> bool:
        self.consecutive_failures += 1
        if (
            not self.tripped
            and self.threshold > 0
            and self.consecutive_failures >= self.threshold
        ):
            self.tripped = True
            log.warning(
                "Circuit breaker tripped after %s consecutive failures",
                self.consecutive_failures,
            )
        return self.tripped

    def record(self, outcome: Outcome[object]) -> bool:
        if outcome.ok:
            self.record_success()
            return self.tripped
        return self.record_failure()


async def execute_with_retry[T](
    operation: Callable[[], Awaitable[T]],
    *,
    name: str,
    max_attempts: int,
    retry_if: RetryPredicate = is_transient,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: random.Random | None = None,
) -> Outcome[T]:
    """Run ``operation`` until it succeeds, fails permanently or runs out of attempts.

    Cancellation is never absorbed: ``asyncio.CancelledError`` propagates
    from the operation and from the backoff sleep.
    """

    attempt = 0
    while True:
        attempt += 1
        try:
            value = await operation()
        except Exception as exc:  # noqa: BLE001 - classified into the returned Outcome
            outcome: Outcome[T] = Outcome.failure(exc, attempts=attempt)
            kind = outcome.kind or ErrorKind.PERMANENT
            if attempt >= max_attempts or not retry_if(exc, kind):
                log.debug(
                    "%s failed after %s attempt(s): %s (%s)", name, attempt, exc, kind
                )
                return outcome
            delay = compute_retry_delay(
                attempt - 1,
                retry_after=getattr(exc, "retry_after", None),
                rng=rng,
            )
            log.warning(
                f"{name} failed ({kind}, attempt {attempt}/{max_attempts}); "
                f"retrying in {delay:.1f}s: {exc}"
            )
            await sleep(delay)
            continue
        return Outcome.success(value, attempts=attempt)
