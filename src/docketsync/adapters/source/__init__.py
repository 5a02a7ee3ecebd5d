"""Public interface for the source-of-record adapter."""

from __future__ import annotations

from .reader import SqlCaseSource
from .rows import (
    case_from_export_row,
    case_from_legacy_row,
    hearing_from_export_row,
    hearing_from_legacy_row,
)
from .tables import SchemaVariant, SourceLayout, build_layout

__all__ = [
    "SchemaVariant",
    "SourceLayout",
    "SqlCaseSource",
    "build_layout",
    "case_from_export_row",
    "case_from_legacy_row",
    "hearing_from_export_row",
    "hearing_from_legacy_row",
]
