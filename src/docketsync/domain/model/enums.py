"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import IntEnum, StrEnum


class HearingStatus(IntEnum):
    """Status codes carried by source hearing events."""

    ACTIVE = 0
    CANCELLED = 1
    TRANSFERRED = 2


class HearingStepKind(StrEnum):
    STATUS = "status"
    JUDGE_CITY = "judge_city"
    DATE = "date"


class ErrorKind(StrEnum):
    """Classification tag attached to every failed external call."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    VALIDATION = "validation"
    ITEM_GONE = "item_gone"


class SyncOperation(StrEnum):
    BOOTSTRAP_CREATE = "bootstrap_create"
    UPDATE_COLUMNS = "update_columns"
    RENAME_ITEM = "rename_item"
    FIND_ITEM = "find_item"
    RECORD_MAPPING = "record_mapping"
    HEARING_STATUS = "hearing_status"
    HEARING_JUDGE_CITY = "hearing_judge_city"
    HEARING_DATE = "hearing_date"


# Groups of operations a later success can settle; a success never resolves
# failures outside its own group.
ONBOARDING_OPERATIONS: frozenset[str] = frozenset(
    {SyncOperation.BOOTSTRAP_CREATE, SyncOperation.FIND_ITEM, SyncOperation.RECORD_MAPPING}
)
CONTENT_OPERATIONS: frozenset[str] = ONBOARDING_OPERATIONS | {
    SyncOperation.UPDATE_COLUMNS,
    SyncOperation.RENAME_ITEM,
}
HEARING_OPERATIONS: frozenset[str] = frozenset(
    {SyncOperation.HEARING_STATUS, SyncOperation.HEARING_JUDGE_CITY, SyncOperation.HEARING_DATE}
)


class RunOutcome(StrEnum):
    """Per-case result categories counted in run metrics."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED_UNCHANGED = "skipped_unchanged"
    SKIPPED_INELIGIBLE = "skipped_ineligible"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    SKIPPED_INACTIVE = "skipped_inactive"
    SKIPPED_BREAKER = "skipped_breaker"
    FAILED = "failed"
