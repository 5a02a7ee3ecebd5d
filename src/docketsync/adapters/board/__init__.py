"""Public interface for the task-board adapter."""

from __future__ import annotations

from .client import HttpBoardClient
from .errors import BoardApiError
from .metadata import CachedBoardMetadataProvider
from .schema import ColumnPayload, GraphQLResponse

__all__ = [
    "BoardApiError",
    "CachedBoardMetadataProvider",
    "ColumnPayload",
    "GraphQLResponse",
    "HttpBoardClient",
]
