"""Exceptions raised across the reconciliation engine."""

from __future__ import annotations

import json
from typing import Final

RATE_LIMIT_CODES: Final[frozenset[str]] = frozenset(
    {"RATE_LIMIT_EXCEEDED", "RATELIMITEXCEEDED", "RATE_LIMIT", "MAX_CONCURRENCY_EXCEEDED"}
)
COMPLEXITY_CODES: Final[frozenset[str]] = frozenset(
    {"COMPLEXITY_BUDGET_EXHAUSTED", "COMPLEXITYEXCEPTION"}
)
MAX_SNIPPET_LENGTH: Final[int] = 500


class SyncError(RuntimeError):
    """Base class for errors raised by the sync engine."""


class ExternalCallError(SyncError):
    """Failure reported by an external collaborator.

    ``raw`` keeps the upstream error body verbatim so the dead-letter log can
    show exactly what the remote side said. ``network`` marks failures below
    the HTTP layer; ``request_sent`` is false when the remote side cannot have
    acted on the request (connection refused, rate limited before processing).
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        retry_after: float | None = None,
        raw: str | None = None,
        operation: str | None = None,
        network: bool = False,
        request_sent: bool = True,
    ) -> None:
        super().__init__(message)
        self.network = network
        self.request_sent = request_sent
        self.status_code = status_code
        self.code = code
        self.retry_after = retry_after
        self.raw = raw
        self.operation = operation

    @property
    def _haystack(self) -> str:
        return f"{self} {self.raw or ''}".lower()

    @property
    def is_rate_limited(self) -> bool:
        if self.status_code == 429:
            return True
        normalized = (self.code or "").upper()
        return normalized in RATE_LIMIT_CODES or "ratelimitexceeded" in self._haystack

    @property
    def is_complexity_exhausted(self) -> bool:
        normalized = (self.code or "").upper()
        return normalized in COMPLEXITY_CODES or "complexity_budget_exhausted" in self._haystack

    @property
    def is_inactive_item(self) -> bool:
        # covers the "inactiveItems" error code as well as plain messages
        return "inactive" in self._haystack

    @property
    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500


class CriticalFieldValidationError(SyncError):
    """A business-critical field failed a sanity check before any external write."""

    def __init__(
        self,
        *,
        source_id: int,
        column_id: str,
        value: object,
        reason: str,
    ) -> None:
        super().__init__(
            f"Critical field {column_id} failed validation for case {source_id}: {reason}"
        )
        self.source_id = source_id
        self.column_id = column_id
        self.value = value
        self.reason = reason


def snippet(payload: object) -> str:
    """Render ``payload`` as compact JSON, truncated for logging."""

    text = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    if len(text) <= MAX_SNIPPET_LENGTH:
        return text
    return text[:MAX_SNIPPET_LENGTH] + "..."
