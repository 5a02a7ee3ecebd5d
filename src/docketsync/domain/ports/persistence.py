"""Ports for persisting sync state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from docketsync.domain.model import (
    AlertDedupRecord,
    FailureRecord,
    HearingSnapshot,
    MappingRecord,
    RunMetrics,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from datetime import datetime, timedelta

    from docketsync.domain.model import RunLock


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class MappingRepository(Repository[MappingRecord], Protocol):
    def get(self, source_id: int, board_id: int) -> MappingRecord | None: ...

    def mapped_source_ids(self, board_id: int) -> set[int]: ...

    def for_sources(
        self, board_id: int, source_ids: Collection[int]
    ) -> dict[int, MappingRecord]: ...


@runtime_checkable
class HearingSnapshotRepository(Repository[HearingSnapshot], Protocol):
    def get(self, source_id: int, board_id: int) -> HearingSnapshot | None: ...


@runtime_checkable
class RunLockRepository(Protocol):
    """Cross-process mutual exclusion for reconcile passes."""

    def try_acquire(self, run_id: str, *, now: datetime, ttl: timedelta) -> bool: ...

    def release(self, run_id: str) -> bool: ...

    def current(self) -> RunLock | None: ...


@runtime_checkable
class FailureRepository(Repository[FailureRecord], Protocol):
    def resolve_for_source(
        self,
        source_id: int,
        *,
        at: datetime,
        operations: Collection[str] | None = None,
        exclude_run: str | None = None,
    ) -> int: ...

    def unresolved(self, *, limit: int | None = None) -> Sequence[FailureRecord]: ...

    def since(self, since: datetime) -> Sequence[FailureRecord]: ...


@runtime_checkable
class RunMetricsRepository(Repository[RunMetrics], Protocol):
    def since(self, since: datetime) -> Sequence[RunMetrics]: ...


@runtime_checkable
class AlertDedupRepository(Repository[AlertDedupRecord], Protocol):
    def get(self, fingerprint: str) -> AlertDedupRecord | None: ...

    def all(self) -> Sequence[AlertDedupRecord]: ...
