"""Translation of board API failures into ``ExternalCallError``."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import httpx

from docketsync.domain.errors import ExternalCallError, snippet

if TYPE_CHECKING:
    from .schema import GraphQLResponse


class BoardApiError(ExternalCallError):
    """Raised when the board API rejects or fails a request."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        retry_after: float | None = None,
        raw: str | None = None,
        operation: str | None = None,
        network: bool = False,
        request_sent: bool = True,
        item_id: str | None = None,
        column_values_snippet: str | None = None,
    ) -> None:
        super().__init__(
            message,
            status_code=status_code,
            code=code,
            retry_after=retry_after,
            raw=raw,
            operation=operation,
            network=network,
            request_sent=request_sent,
        )
        self.item_id = item_id
        self.column_values_snippet = column_values_snippet


def _retry_after_header(response: httpx.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def from_http_status(response: httpx.Response, *, operation: str) -> BoardApiError:
    return BoardApiError(
        f"Board API {operation} returned HTTP {response.status_code}",
        status_code=response.status_code,
        retry_after=_retry_after_header(response),
        raw=snippet(response.text),
        operation=operation,
    )


def from_graphql(
    payload: GraphQLResponse,
    response: httpx.Response,
    *,
    operation: str,
    item_id: str | None = None,
    column_values: object = None,
) -> BoardApiError:
    """Build the error for a response whose body reports a failure."""

    first = payload.errors[0] if payload.errors else None
    code = payload.error_code or (first.code if first else None)
    message = payload.error_message or (first.message if first else "") or "unknown error"
    retry_after = (first.retry_in_seconds if first else None) or _retry_after_header(response)
    raw = json.dumps(
        {
            "errors": [error.model_dump() for error in payload.errors],
            "error_code": payload.error_code,
            "error_message": payload.error_message,
        },
        ensure_ascii=False,
    )
    status_code = payload.status_code or response.status_code
    return BoardApiError(
        f"Board API {operation} failed: {message}",
        status_code=status_code if status_code != httpx.codes.OK else None,
        code=code,
        retry_after=retry_after,
        raw=snippet(raw),
        operation=operation,
        item_id=item_id,
        column_values_snippet=snippet(column_values) if column_values is not None else None,
    )


def from_transport(exc: httpx.TransportError, *, operation: str) -> BoardApiError:
    """Map a transport failure; refused connections never reached the server."""

    return BoardApiError(
        f"Board API {operation} transport error: {exc}",
        operation=operation,
        network=True,
        request_sent=not isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout)),
    )
