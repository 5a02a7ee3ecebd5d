"""Domain port definitions for adapters."""

from __future__ import annotations

from .board import BoardClient, BoardMetadata, BoardMetadataProvider, ColumnInfo, ItemState
from .notifications import AlertStateStore, AlertTransport
from .persistence import (
    AlertDedupRepository,
    FailureRepository,
    HearingSnapshotRepository,
    MappingRepository,
    Repository,
    RunLockRepository,
    RunMetricsRepository,
)
from .source import CaseSource
from .unit_of_work import SyncRepositories, SyncUnitOfWork

__all__ = [
    "AlertDedupRepository",
    "AlertStateStore",
    "AlertTransport",
    "BoardClient",
    "BoardMetadata",
    "BoardMetadataProvider",
    "CaseSource",
    "ColumnInfo",
    "FailureRepository",
    "HearingSnapshotRepository",
    "ItemState",
    "MappingRepository",
    "Repository",
    "RunLockRepository",
    "RunMetricsRepository",
    "SyncRepositories",
    "SyncUnitOfWork",
]
