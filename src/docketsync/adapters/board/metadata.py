"""Cached board column metadata."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, replace
from logging import getLogger
from typing import TYPE_CHECKING

from docketsync.config.http_resilience import RetryPolicy
from docketsync.domain.ports import BoardMetadata, BoardMetadataProvider, ColumnInfo

from .client import HttpBoardClient, parse_payload
from .errors import BoardApiError
from .schema import BoardPayload

if TYPE_CHECKING:
    from collections.abc import Callable

    from docketsync.adapters.http_resilience import ResilientClient
    from docketsync.config.board import BoardConfig
    from docketsync.config.http_resilience import ResilienceConfig

log = getLogger(__name__)

BOARD_COLUMNS = """
query ($boardIds: [ID!]) {
  boards (ids: $boardIds) {
    id
    columns {
      id
      title
      type
      settings_str
    }
  }
}
"""


@dataclass(frozen=True, slots=True)
class _CacheEntry:
    loaded_at: float
    metadata: BoardMetadata


class CachedBoardMetadataProvider:
    """Column metadata per board, cached for ``ttl_seconds``.

    Concurrent lookups of a stale board share a single refresh. A failed
    refresh raises and leaves the previous state untouched, so the next call
    tries again.
    """

    def __init__(
        self,
        config: BoardConfig,
        *,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        metadata_config = replace(
            config,
            resilience=replace(
                config.resilience, name="board-metadata", retry=RetryPolicy()
            ),
        )
        if client_factory is None:
            self._api = HttpBoardClient(metadata_config)
        else:
            self._api = HttpBoardClient(metadata_config, client_factory=client_factory)
        self.ttl_seconds = config.metadata_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._cache: dict[int, _CacheEntry] = {}
        self._locks: dict[int, asyncio.Lock] = {}
        self.refresh_count = 0

    async def aclose(self) -> None:
        await self._api.aclose()

    def invalidate(self, board_id: int | None = None) -> None:
        if board_id is None:
            self._cache.clear()
        else:
            self._cache.pop(board_id, None)

    async def get_or_refresh(self, board_id: int) -> BoardMetadata:
        cached = self._fresh(board_id)
        if cached is not None:
            return cached

        lock = self._locks.setdefault(board_id, asyncio.Lock())
        async with lock:
            cached = self._fresh(board_id)
            if cached is not None:
                return cached
            metadata = await self._fetch(board_id)
            self._cache[board_id] = _CacheEntry(loaded_at=self._clock(), metadata=metadata)
            return metadata

    async def column_id_by_title(self, board_id: int, title: str) -> str | None:
        metadata = await self.get_or_refresh(board_id)
        column = metadata.by_title(title)
        return column.id if column is not None else None

    async def allowed_labels(self, board_id: int, column_id: str) -> frozenset[str]:
        metadata = await self.get_or_refresh(board_id)
        column = metadata.by_id(column_id)
        if column is None:
            log.warning("Column %s not found on board %s; no labels allowed", column_id, board_id)
            return frozenset()
        return column.labels

    async def column_type(self, board_id: int, column_id: str) -> str | None:
        metadata = await self.get_or_refresh(board_id)
        column = metadata.by_id(column_id)
        return column.type if column is not None else None

    def _fresh(self, board_id: int) -> BoardMetadata | None:
        entry = self._cache.get(board_id)
        if entry is None:
            return None
        if self._clock() - entry.loaded_at >= self.ttl_seconds:
            return None
        return entry.metadata

    async def _fetch(self, board_id: int) -> BoardMetadata:
        self.refresh_count += 1
        data = await self._api.execute(
            BOARD_COLUMNS, {"boardIds": [str(board_id)]}, operation="boards"
        )
        boards = data.get("boards") or []
        if not boards:
            msg = f"Board {board_id} not found or not accessible"
            raise BoardApiError(msg, operation="boards")
        board = parse_payload(BoardPayload, boards[0], operation="boards")
        columns = tuple(
            ColumnInfo(
                id=column.id,
                title=column.title,
                type=column.type,
                labels=column.label_names(),
            )
            for column in board.columns
        )
        log.info(f"Loaded {len(columns)} column(s) for board {board_id}")
        return BoardMetadata(board_id=board_id, columns=columns)


if TYPE_CHECKING:

    def _provider_check(config: BoardConfig) -> BoardMetadataProvider:
        return CachedBoardMetadataProvider(config)
