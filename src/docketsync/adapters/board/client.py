"""GraphQL client for the task board."""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import UTC
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from docketsync.adapters.http_resilience import ResilientClient
from docketsync.config.board import DEFAULT_BOARD_API_URL
from docketsync.domain.errors import snippet
from docketsync.domain.ports import BoardClient, ItemState

from .errors import BoardApiError, from_graphql, from_http_status, from_transport
from .schema import BoardBaseModel, GraphQLResponse, ItemRef, ItemsPage, ItemStatePayload

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from datetime import datetime
    from types import TracebackType

    from docketsync.config.board import BoardConfig
    from docketsync.config.http_resilience import ResilienceConfig

log = getLogger(__name__)

NAME_COLUMN = "name"

CREATE_ITEM = """
mutation ($boardId: ID!, $groupId: String!, $itemName: String!, $columnVals: JSON!) {
  create_item (board_id: $boardId, group_id: $groupId, item_name: $itemName,
               column_values: $columnVals, create_labels_if_missing: false) {
    id
  }
}
"""

CHANGE_COLUMNS = """
mutation ($itemId: ID!, $boardId: ID!, $columnVals: JSON!) {
  change_multiple_column_values (item_id: $itemId, board_id: $boardId,
                                 column_values: $columnVals) {
    id
  }
}
"""

CHANGE_SIMPLE_VALUE = """
mutation ($itemId: ID!, $boardId: ID!, $columnId: String!, $value: String!) {
  change_simple_column_value (item_id: $itemId, board_id: $boardId,
                              column_id: $columnId, value: $value) {
    id
  }
}
"""

FIND_BY_COLUMN = """
query ($boardId: ID!, $columnId: String!, $value: String!) {
  items_page_by_column_values (limit: 1, board_id: $boardId,
                               columns: [{column_id: $columnId, column_values: [$value]}]) {
    items { id }
  }
}
"""

ITEM_STATE = """
query ($itemIds: [ID!]) {
  items (ids: $itemIds) {
    id
    state
  }
}
"""


def parse_payload[TModel: BoardBaseModel](
    model: type[TModel], payload: object, *, operation: str
) -> TModel:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        msg = f"Board API {operation} returned an unexpected payload: {snippet(payload)}"
        raise BoardApiError(msg, operation=operation, raw=str(exc)) from exc


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def auth_headers(config: BoardConfig) -> dict[str, str]:
    return {
        "Authorization": config.api_token,
        "API-Version": config.api_version,
        "Content-Type": "application/json",
    }


def _render_hearing_start(start: datetime) -> dict[str, str]:
    if start.tzinfo is not None:
        start = start.astimezone(UTC)
    return {"date": start.date().isoformat(), "time": start.strftime("%H:%M:%S")}


class HttpBoardClient:
    """Board mutations and item lookups over one shared HTTP client.

    No request is retried here; the sync engine decides what is safe to repeat.
    """

    def __init__(
        self,
        config: BoardConfig,
        *,
        client_factory: Callable[[ResilienceConfig], ResilientClient] = _default_client_factory,
    ) -> None:
        self.config = config
        self.resilience = replace(config.resilience, default_headers=auth_headers(config))
        self.url = config.resilience.base_url or DEFAULT_BOARD_API_URL
        self._client_factory = client_factory
        self._client: ResilientClient | None = None

    async def __aenter__(self) -> HttpBoardClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def create_item(
        self,
        *,
        board_id: int,
        group_id: str,
        item_name: str,
        column_values: Mapping[str, object],
    ) -> str:
        data = await self.execute(
            CREATE_ITEM,
            {
                "boardId": str(board_id),
                "groupId": group_id,
                "itemName": item_name,
                "columnVals": json.dumps(column_values, ensure_ascii=False),
            },
            operation="create_item",
            column_values=column_values,
        )
        item = parse_payload(ItemRef, data.get("create_item"), operation="create_item")
        log.debug(f"Created board item {item.id} on board {board_id}")
        return item.id

    async def update_item(
        self, *, board_id: int, item_id: str, column_values: Mapping[str, object]
    ) -> None:
        if not column_values:
            return
        await self._change_columns(
            board_id=board_id,
            item_id=item_id,
            column_values=column_values,
            operation="change_multiple_column_values",
        )

    async def rename_item(self, *, board_id: int, item_id: str, item_name: str) -> None:
        await self.execute(
            CHANGE_SIMPLE_VALUE,
            {
                "itemId": item_id,
                "boardId": str(board_id),
                "columnId": NAME_COLUMN,
                "value": item_name,
            },
            operation="change_simple_column_value",
            item_id=item_id,
        )

    async def find_item_by_column(
        self, *, board_id: int, column_id: str, value: str
    ) -> str | None:
        data = await self.execute(
            FIND_BY_COLUMN,
            {"boardId": str(board_id), "columnId": column_id, "value": value},
            operation="items_page_by_column_values",
        )
        raw = data.get("items_page_by_column_values")
        if raw is None:
            return None
        page = parse_payload(ItemsPage, raw, operation="items_page_by_column_values")
        return page.items[0].id if page.items else None

    async def get_item_state(self, item_id: str) -> ItemState | None:
        data = await self.execute(ITEM_STATE, {"itemIds": [item_id]}, operation="items")
        items = data.get("items") or []
        if not items:
            return None
        payload = parse_payload(ItemStatePayload, items[0], operation="items")
        try:
            return ItemState(payload.state) if payload.state else None
        except ValueError:
            log.warning(f"Unknown state {payload.state!r} for board item {item_id}")
            return None

    async def update_hearing_status(
        self, *, board_id: int, item_id: str, column_id: str, label: str
    ) -> None:
        await self._change_columns(
            board_id=board_id,
            item_id=item_id,
            column_values={column_id: {"label": label}},
            operation="hearing_status",
        )

    async def update_hearing_details(
        self,
        *,
        board_id: int,
        item_id: str,
        judge_column: str,
        judge: str,
        city_column: str,
        city: str,
    ) -> None:
        await self._change_columns(
            board_id=board_id,
            item_id=item_id,
            column_values={judge_column: judge, city_column: city},
            operation="hearing_details",
        )

    async def update_hearing_date(
        self, *, board_id: int, item_id: str, column_id: str, start: datetime
    ) -> None:
        await self._change_columns(
            board_id=board_id,
            item_id=item_id,
            column_values={column_id: _render_hearing_start(start)},
            operation="hearing_date",
        )

    async def _change_columns(
        self,
        *,
        board_id: int,
        item_id: str,
        column_values: Mapping[str, object],
        operation: str,
    ) -> None:
        await self.execute(
            CHANGE_COLUMNS,
            {
                "itemId": item_id,
                "boardId": str(board_id),
                "columnVals": json.dumps(column_values, ensure_ascii=False),
            },
            operation=operation,
            item_id=item_id,
            column_values=column_values,
        )

    def _get_client(self) -> ResilientClient:
        if self._client is None:
            self._client = self._client_factory(self.resilience)
        return self._client

    async def execute(
        self,
        query: str,
        variables: Mapping[str, object],
        *,
        operation: str,
        item_id: str | None = None,
        column_values: object = None,
    ) -> dict[str, Any]:
        client = self._get_client()
        try:
            response = await client.post(self.url, json={"query": query, "variables": variables})
        except httpx.TransportError as exc:
            raise from_transport(exc, operation=operation) from exc

        try:
            body = response.json()
        except ValueError:
            if response.is_error:
                raise from_http_status(response, operation=operation) from None
            msg = f"Board API {operation} returned a non-JSON body: {snippet(response.text)}"
            raise BoardApiError(
                msg, status_code=response.status_code, operation=operation
            ) from None

        payload = parse_payload(GraphQLResponse, body, operation=operation)
        if payload.has_errors:
            error = from_graphql(
                payload,
                response,
                operation=operation,
                item_id=item_id,
                column_values=column_values,
            )
            log.debug(f"{error} (raw={error.raw})")
            raise error
        if response.is_error:
            raise from_http_status(response, operation=operation)
        if payload.data is None:
            msg = f"Board API {operation} returned no data: {snippet(body)}"
            raise BoardApiError(msg, status_code=response.status_code, operation=operation)
        return payload.data


if TYPE_CHECKING:

    def _client_check(config: BoardConfig) -> BoardClient:
        return HttpBoardClient(config)
