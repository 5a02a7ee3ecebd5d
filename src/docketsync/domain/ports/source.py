"""Read-only port onto the source-of-record database."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from datetime import date, datetime

    from docketsync.domain.model import CaseRecord, HearingEvent


@runtime_checkable
class CaseSource(Protocol):
    """Queries the engine needs from the source of record. No side effects."""

    async def fetch_cases_created_on(self, day: date) -> Sequence[CaseRecord]: ...

    async def fetch_cases(self, source_ids: Collection[int]) -> Sequence[CaseRecord]: ...

    async def fetch_hearing_events(
        self, source_ids: Collection[int]
    ) -> Sequence[HearingEvent]: ...

    async def resolve_case_number(self, case_number: str) -> int | None: ...

    async def list_ids_created_since(self, cutoff: date) -> set[int]: ...

    async def list_ids_modified_since(self, since: datetime) -> set[int]:
        """Legacy change signal; never the sole input of a reconcile pass."""
        ...
