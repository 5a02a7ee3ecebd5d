"""Durable sync state owned by the reconciliation engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar, Final

if TYPE_CHECKING:
    from datetime import datetime

    from docketsync.domain.model.enums import ErrorKind

MAX_ERROR_MESSAGE_LENGTH: Final[int] = 2000
MAX_STACK_TRACE_LENGTH: Final[int] = 8000


def truncate(value: str | None, limit: int) -> str | None:
    if value is None or len(value) <= limit:
        return value
    return value[: limit - 3] + "..."


@dataclass(eq=False, kw_only=True)
class MappingRecord:
    """Durable link between one source case and one board item."""

    source_id: int
    case_number: str
    item_id: str
    board_id: int
    created_at: datetime
    case_created_at: datetime | None = None
    item_name: str | None = None
    content_version: str | None = None
    hearing_checksum: str | None = None
    last_sync_from_source: datetime | None = None
    last_sync_to_board: datetime | None = None
    id: int | None = None

    def record_sync(self, *, content_version: str, item_name: str, at: datetime) -> None:
        self.content_version = content_version
        self.item_name = item_name
        self.last_sync_from_source = at
        self.last_sync_to_board = at


@dataclass(eq=False, kw_only=True)
class HearingSnapshot:
    """Last hearing state written to a board item."""

    source_id: int
    board_id: int
    item_id: str
    start: datetime | None = None
    status: int | None = None
    judge: str | None = None
    city: str | None = None
    last_synced_at: datetime | None = None
    id: int | None = None


@dataclass(eq=False, kw_only=True)
class RunLock:
    SINGLETON_ID: ClassVar[int] = 1

    id: int = 1
    locked_by: str | None = None
    locked_at: datetime | None = None
    expires_at: datetime | None = None

    def is_held(self, now: datetime) -> bool:
        return self.locked_by is not None and self.expires_at is not None and self.expires_at > now


@dataclass(eq=False, kw_only=True)
class FailureRecord:
    """Dead-letter entry for one failed per-case operation."""

    run_id: str
    source_id: int
    operation: str
    error_kind: ErrorKind
    error_type: str
    error_message: str
    occurred_at: datetime
    case_number: str | None = None
    board_id: int | None = None
    item_id: str | None = None
    stack_trace: str | None = None
    retry_attempts: int = 0
    resolved: bool = False
    resolved_at: datetime | None = None
    id: int | None = None

    def __post_init__(self) -> None:
        self.error_message = truncate(self.error_message, MAX_ERROR_MESSAGE_LENGTH) or ""
        self.stack_trace = truncate(self.stack_trace, MAX_STACK_TRACE_LENGTH)

    def resolve(self, at: datetime) -> None:
        self.resolved = True
        self.resolved_at = at


@dataclass(eq=False, kw_only=True)
class RunMetrics:
    run_id: str
    started_at: datetime
    completed_at: datetime
    duration_ms: int
    created: int = 0
    updated: int = 0
    skipped_unchanged: int = 0
    skipped_ineligible: int = 0
    skipped_duplicate: int = 0
    skipped_inactive: int = 0
    skipped_breaker: int = 0
    failed: int = 0
    hearing_updated: int = 0
    breaker_tripped: bool = False
    id: int | None = None


@dataclass(eq=False, kw_only=True)
class AlertDedupRecord:
    fingerprint: str
    exception_type: str
    source: str
    first_seen: datetime
    last_seen: datetime
    subject: str | None = None
    occurrence_count: int = 1
    last_sent: datetime | None = None
    suppressed_count: int = 0
    id: int | None = None
