"""Public domain model surface."""

from __future__ import annotations

from docketsync.domain.model.cases import CaseRecord, HearingEvent, NearestHearing
from docketsync.domain.model.enums import (
    CONTENT_OPERATIONS,
    HEARING_OPERATIONS,
    ONBOARDING_OPERATIONS,
    ErrorKind,
    HearingStatus,
    HearingStepKind,
    RunOutcome,
    SyncOperation,
)
from docketsync.domain.model.sync_state import (
    AlertDedupRecord,
    FailureRecord,
    HearingSnapshot,
    MappingRecord,
    RunLock,
    RunMetrics,
    truncate,
)

__all__ = [
    "CONTENT_OPERATIONS",
    "HEARING_OPERATIONS",
    "ONBOARDING_OPERATIONS",
    "AlertDedupRecord",
    "CaseRecord",
    "ErrorKind",
    "FailureRecord",
    "HearingEvent",
    "HearingSnapshot",
    "HearingStatus",
    "HearingStepKind",
    "MappingRecord",
    "NearestHearing",
    "RunLock",
    "RunMetrics",
    "RunOutcome",
    "SyncOperation",
    "truncate",
]
