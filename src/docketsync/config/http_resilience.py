"""Configuration types for the outbound HTTP clients."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from collections.abc import Mapping

ResponseHook = Callable[[httpx.Response], Awaitable[None] | None]

# The board API answers every call with POST, including read-only queries.
RETRYABLE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "POST"})
TRANSIENT_STATUSES = frozenset({429, 500, 502, 503, 504})
TRANSIENT_ERRORS: tuple[type[httpx.HTTPError], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Transport-level retry settings, handed to ``httpx_retries.Retry``."""

    total: int = 3
    backoff_factor: float = 0.5
    backoff_jitter: float = 1.0
    max_wait_seconds: float = 60.0
    honor_retry_after: bool = True
    methods: frozenset[str] = RETRYABLE_METHODS
    statuses: frozenset[int] = TRANSIENT_STATUSES
    errors: tuple[type[httpx.HTTPError], ...] = TRANSIENT_ERRORS


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float

    def __str__(self) -> str:
        return f"{self.max_calls}/{self.per_seconds:g}s"


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    """Settings for one named HTTP client.

    ``retry`` is ``None`` for clients whose callers own the retry decision;
    board mutations are never retried below the sync engine.
    """

    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    retry: RetryPolicy | None = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    response_hooks: tuple[ResponseHook, ...] = ()
    default_headers: Mapping[str, str] | None = None
