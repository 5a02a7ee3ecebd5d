"""Unit-of-work boundary around the sync-state repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from docketsync.domain.ports.persistence import (
        AlertDedupRepository,
        FailureRepository,
        HearingSnapshotRepository,
        MappingRepository,
        RunLockRepository,
        RunMetricsRepository,
    )


@dataclass(slots=True)
class SyncRepositories:
    """Repositories holding the engine's durable state."""

    mappings: MappingRepository
    snapshots: HearingSnapshotRepository
    run_lock: RunLockRepository
    failures: FailureRepository
    metrics: RunMetricsRepository
    alert_dedup: AlertDedupRepository


@runtime_checkable
class SyncUnitOfWork(Protocol):
    """Changes made through ``repositories`` become durable only on ``commit()``."""

    @property
    def repositories(self) -> SyncRepositories: ...

    def __enter__(self) -> SyncUnitOfWork: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
