"""Fingerprinting and the dedup/rate-limit gate in front of outbound alerts."""

from __future__ import annotations

import hashlib
import re
import threading
from collections import deque
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Final

from docketsync.domain.model import AlertDedupRecord

if TYPE_CHECKING:
    from collections.abc import Callable

    from docketsync.domain.ports.notifications import AlertStateStore

log = getLogger(__name__)

_RUN_ID = re.compile(r"runid=[a-f0-9-]+")
_LINE_NUMBER = re.compile(r":line \d+")
_LONG_NUMBER = re.compile(r"(?<!\d)\d{3,}(?!\d)")
UNKNOWN: Final[str] = "Unknown"
RATE_WINDOW: Final[timedelta] = timedelta(hours=1)


class AlertKind(StrEnum):
    ERROR = "error"
    DIGEST = "digest"
    DAILY_SUMMARY = "daily_summary"


SUBJECT_PREFIXES: Final[dict[AlertKind, str]] = {
    AlertKind.ERROR: "[ALERT]",
    AlertKind.DIGEST: "[DIGEST]",
    AlertKind.DAILY_SUMMARY: "[DAILY SUMMARY]",
}


@dataclass(frozen=True, slots=True)
class Alert:
    kind: AlertKind
    subject: str
    body: str
    fingerprint: str | None = None

    @property
    def full_subject(self) -> str:
        return f"{SUBJECT_PREFIXES[self.kind]} {self.subject}"


def normalize_message(message: str | None) -> str:
    """Strip run ids, line numbers and 3+ digit identifiers from ``message``."""

    if message is None or not message.strip():
        return ""
    text = message.strip().lower()
    text = _RUN_ID.sub("runid=<id>", text)
    text = _LINE_NUMBER.sub(":line <n>", text)
    return _LONG_NUMBER.sub("<n>", text)


def fingerprint(exception_type: str | None, message: str | None, source: str | None) -> str:
    raw = f"{exception_type or UNKNOWN}|{normalize_message(message)}|{source or UNKNOWN}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AlertGate:
    """Per-process dedup state shared by the sync loop and the alert sender.

    Every read-modify-write happens under one lock; records handed out are
    copies, never the live entries. Changed entries are queued and written to
    the store by ``flush()`` after the lock is released. With ``write_through``
    every mutation flushes immediately; otherwise the owner calls ``flush()``
    (the dispatcher does so off the event loop).
    """

    def __init__(
        self,
        *,
        window: timedelta,
        max_per_hour: int,
        store: AlertStateStore | None = None,
        write_through: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.window = window
        self.max_per_hour = max_per_hour
        self._store = store
        self.write_through = write_through
        self._clock = clock
        self._lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._entries: dict[str, AlertDedupRecord] = {}
        self._sent: deque[datetime] = deque()
        self._dirty: dict[str, AlertDedupRecord] = {}
        if store is not None:
            for record in store.load():
                self._entries[record.fingerprint] = _copy(record)

    def is_duplicate(
        self,
        key: str,
        *,
        exception_type: str,
        source: str,
        subject: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Register an occurrence; true only if an alert was sent within the window."""

        at = now or self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = AlertDedupRecord(
                    fingerprint=key,
                    exception_type=exception_type,
                    source=source,
                    subject=subject,
                    first_seen=at,
                    last_seen=at,
                )
                self._entries[key] = entry
                self._mark_dirty(entry)
                duplicate = False
            else:
                entry.occurrence_count += 1
                entry.last_seen = at
                duplicate = entry.last_sent is not None and at - entry.last_sent < self.window
                if duplicate:
                    entry.suppressed_count += 1
                self._mark_dirty(entry)
        self._after_mutation()
        return duplicate

    def record_sent(self, key: str, *, now: datetime | None = None) -> None:
        at = now or self._clock()
        with self._lock:
            self._sent.append(at)
            entry = self._entries.get(key)
            if entry is not None:
                entry.last_sent = at
                entry.suppressed_count = 0
                self._mark_dirty(entry)
        self._after_mutation()

    def record_delivery(self, *, now: datetime | None = None) -> None:
        """Count a non-fingerprinted send (digests, summaries) against the hourly cap."""

        with self._lock:
            self._sent.append(now or self._clock())

    def is_rate_limited(self, *, now: datetime | None = None) -> bool:
        if self.max_per_hour <= 0:
            return False
        at = now or self._clock()
        with self._lock:
            while self._sent and at - self._sent[0] >= RATE_WINDOW:
                self._sent.popleft()
            return len(self._sent) >= self.max_per_hour

    def increment_suppressed(self, key: str) -> None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                entry.suppressed_count += 1
                self._mark_dirty(entry)
        self._after_mutation()

    def suppressed_alerts(self) -> list[AlertDedupRecord]:
        with self._lock:
            return [_copy(entry) for entry in self._entries.values() if entry.suppressed_count > 0]

    def clear_suppressed(self) -> None:
        with self._lock:
            for entry in self._entries.values():
                if entry.suppressed_count:
                    entry.suppressed_count = 0
                    self._mark_dirty(entry)
        self._after_mutation()

    def get(self, key: str) -> AlertDedupRecord | None:
        with self._lock:
            entry = self._entries.get(key)
            return _copy(entry) if entry is not None else None

    @property
    def pending_writes(self) -> int:
        with self._lock:
            return len(self._dirty)

    def flush(self) -> int:
        """Write queued entries to the store outside the lock; returns the number saved."""

        if self._store is None:
            return 0
        saved = 0
        with self._flush_lock:
            with self._lock:
                batch, self._dirty = self._dirty, {}
            for key, record in batch.items():
                try:
                    self._store.save(record)
                except Exception:
                    log.exception("Could not persist alert dedup state for %s", key)
                    with self._lock:
                        # a newer copy queued meanwhile wins
                        self._dirty.setdefault(key, record)
                    continue
                saved += 1
        return saved

    def _mark_dirty(self, entry: AlertDedupRecord) -> None:
        if self._store is not None:
            self._dirty[entry.fingerprint] = _copy(entry)

    def _after_mutation(self) -> None:
        if self.write_through:
            self.flush()


def _copy(record: AlertDedupRecord) -> AlertDedupRecord:
    return replace(record, id=None)
