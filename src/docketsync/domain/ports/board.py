"""Ports for the external task board."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime


class ItemState(StrEnum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class ColumnInfo:
    id: str
    title: str
    type: str
    labels: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True, slots=True)
class BoardMetadata:
    board_id: int
    columns: tuple[ColumnInfo, ...]

    def by_id(self, column_id: str) -> ColumnInfo | None:
        return next((column for column in self.columns if column.id == column_id), None)

    def by_title(self, title: str) -> ColumnInfo | None:
        wanted = title.strip().casefold()
        return next(
            (column for column in self.columns if column.title.strip().casefold() == wanted),
            None,
        )


@runtime_checkable
class BoardClient(Protocol):
    """Item-level operations on the task board.

    All calls are safe to repeat except ``create_item``, which callers must
    de-duplicate through the mapping table.
    """

    async def create_item(
        self,
        *,
        board_id: int,
        group_id: str,
        item_name: str,
        column_values: Mapping[str, object],
    ) -> str: ...

    async def update_item(
        self, *, board_id: int, item_id: str, column_values: Mapping[str, object]
    ) -> None: ...

    async def rename_item(self, *, board_id: int, item_id: str, item_name: str) -> None: ...

    async def find_item_by_column(
        self, *, board_id: int, column_id: str, value: str
    ) -> str | None: ...

    async def get_item_state(self, item_id: str) -> ItemState | None: ...

    async def update_hearing_status(
        self, *, board_id: int, item_id: str, column_id: str, label: str
    ) -> None: ...

    async def update_hearing_details(
        self,
        *,
        board_id: int,
        item_id: str,
        judge_column: str,
        judge: str,
        city_column: str,
        city: str,
    ) -> None: ...

    async def update_hearing_date(
        self, *, board_id: int, item_id: str, column_id: str, start: datetime
    ) -> None: ...


@runtime_checkable
class BoardMetadataProvider(Protocol):
    async def get_or_refresh(self, board_id: int) -> BoardMetadata: ...

    async def column_id_by_title(self, board_id: int, title: str) -> str | None: ...

    async def allowed_labels(self, board_id: int, column_id: str) -> frozenset[str]: ...

    async def column_type(self, board_id: int, column_id: str) -> str | None: ...
