"""Rate-limited httpx client with optional transport-level retries."""

from __future__ import annotations

from contextlib import nullcontext
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from aiolimiter import AsyncLimiter
from httpx_retries import Retry, RetryTransport

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from docketsync.config.http_resilience import ResilienceConfig, RetryPolicy

log = getLogger(__name__)


def build_retry(policy: RetryPolicy) -> Retry:
    return Retry(
        total=policy.total,
        backoff_factor=policy.backoff_factor,
        backoff_jitter=policy.backoff_jitter,
        max_backoff_wait=policy.max_wait_seconds,
        respect_retry_after_header=policy.honor_retry_after,
        allowed_methods=sorted(policy.methods),
        status_forcelist=sorted(policy.statuses),
        retry_on_exceptions=policy.errors,
    )


def _build_transport(
    config: ResilienceConfig, transport: httpx.AsyncBaseTransport | None
) -> httpx.AsyncBaseTransport | None:
    if config.retry is None:
        return transport
    return RetryTransport(transport=transport, retry=build_retry(config.retry))


class ResilientClient:
    """``httpx.AsyncClient`` wrapper used by every outbound API adapter.

    Requests pass through an ``AsyncLimiter`` when ``config.ratelimit`` is
    set. With ``config.retry`` set, an ``httpx_retries.RetryTransport`` wraps
    the transport; clients whose callers own the retry decision leave it
    unset. ``transport`` replaces the network transport (tests pass an
    ``httpx.MockTransport``).
    """

    def __init__(
        self,
        config: ResilienceConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        limit = config.ratelimit
        self._limiter = AsyncLimiter(limit.max_calls, limit.per_seconds) if limit else None
        self._client = httpx.AsyncClient(
            base_url=config.base_url or "",
            timeout=config.timeout_seconds,
            headers=dict(config.default_headers or {}),
            event_hooks={"response": list(config.response_hooks)},
            transport=_build_transport(config, transport),
        )
        log.debug(
            f"HTTP client {config.name!r}: retry={'on' if config.retry else 'off'}, "
            f"ratelimit={limit}"
        )

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        async with self._limiter or nullcontext():
            return await self._client.request(
                method, url, json=json, params=params, headers=headers
            )

    async def post(
        self,
        url: str,
        *,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        return await self.request("POST", url, json=json, headers=headers)
