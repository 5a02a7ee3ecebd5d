"""Pydantic models describing the board's GraphQL payloads."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BoardBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class GraphQLErrorPayload(BoardBaseModel):
    message: str = ""
    extensions: dict[str, Any] = Field(default_factory=dict)

    @property
    def code(self) -> str | None:
        code = self.extensions.get("code")
        return str(code) if code is not None else None

    @property
    def retry_in_seconds(self) -> float | None:
        value = self.extensions.get("retry_in_seconds")
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None


class GraphQLResponse(BoardBaseModel):
    """Envelope of every API response.

    The API reports failures either as a GraphQL ``errors`` list or, for
    older error types, through top-level ``error_code``/``error_message``.
    """

    data: dict[str, Any] | None = None
    errors: list[GraphQLErrorPayload] = Field(default_factory=list)
    error_code: str | None = None
    error_message: str | None = None
    status_code: int | None = None

    @property
    def has_errors(self) -> bool:
        return bool(self.errors) or self.error_code is not None or self.error_message is not None


class ItemRef(BoardBaseModel):
    id: str

    @field_validator("id", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return value


class ItemStatePayload(ItemRef):
    state: str | None = None


class ItemsPage(BoardBaseModel):
    items: list[ItemRef] = Field(default_factory=list)


class ColumnPayload(BoardBaseModel):
    id: str
    title: str = ""
    type: str = ""
    settings_str: str | None = None

    def label_names(self) -> frozenset[str]:
        """Label texts of a status/dropdown column.

        Status columns keep ``labels`` as an index->text object, dropdown
        columns as a list of ``{"id", "name"}`` objects.
        """

        if not self.settings_str:
            return frozenset()
        try:
            settings = json.loads(self.settings_str)
        except json.JSONDecodeError:
            return frozenset()
        if not isinstance(settings, dict):
            return frozenset()
        labels = settings.get("labels")
        names: set[str] = set()
        if isinstance(labels, dict):
            names.update(str(value).strip() for value in labels.values() if value)
        elif isinstance(labels, list):
            for label in labels:
                if isinstance(label, dict):
                    name = label.get("name")
                    if name:
                        names.add(str(name).strip())
                elif isinstance(label, str) and label.strip():
                    names.add(label.strip())
        names.discard("")
        return frozenset(names)


class BoardPayload(BoardBaseModel):
    id: str | None = None
    columns: list[ColumnPayload] = Field(default_factory=list)
