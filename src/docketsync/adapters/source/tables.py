"""SQLAlchemy Core layouts of the supported source schema variants."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from sqlalchemy import Column, Date, DateTime, Integer, MetaData, Numeric, String, Table, Text, Time

from docketsync.config.errors import ConfigurationError

from .rows import (
    case_from_export_row,
    case_from_legacy_row,
    hearing_from_export_row,
    hearing_from_legacy_row,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from docketsync.domain.model import CaseRecord, HearingEvent


class SchemaVariant(StrEnum):
    EXPORT = "export"
    LEGACY = "legacy"


@dataclass(frozen=True, slots=True)
class SourceLayout:
    """Tables of one variant plus the columns the reader filters on."""

    variant: SchemaVariant
    cases: Table
    hearings: Table
    case_id: str
    case_number: str
    created_at: str
    modified_at: str
    hearing_case_id: str
    case_from_row: Callable[[Mapping[str, Any]], CaseRecord]
    hearing_from_row: Callable[[Mapping[str, Any]], HearingEvent]


def _export_layout(metadata: MetaData, cases_table: str, hearings_table: str) -> SourceLayout:
    cases = Table(
        cases_table,
        metadata,
        Column("case_id", Integer, primary_key=True),
        Column("case_number", String(64), nullable=False),
        Column("case_name", String(255)),
        Column("created_at", DateTime),
        Column("modified_at", DateTime),
        Column("closed_at", DateTime),
        Column("client_name", String(255)),
        Column("client_number", String(64)),
        Column("client_phone", String(32)),
        Column("status_name", String(128)),
        Column("document_type", String(128)),
        Column("claim_number", String(64)),
        Column("plaintiff_name", String(255)),
        Column("defendant_name", String(255)),
        Column("defendant_side", String(128)),
        Column("policy_holder_name", String(255)),
        Column("policy_holder_phone", String(32)),
        Column("direct_damage_amount", Numeric(14, 2)),
        Column("requested_claim_amount", Numeric(14, 2)),
        Column("event_date", Date),
        Column("court_name", String(255)),
        Column("court_case_number", String(64)),
        Column("hearing_date", Date),
        Column("hearing_judge", String(255)),
        Column("hearing_city", String(128)),
        Column("notes", Text),
    )
    hearings = Table(
        hearings_table,
        metadata,
        Column("event_id", Integer, primary_key=True),
        Column("case_id", Integer, nullable=False),
        Column("start_at", DateTime),
        Column("status", Integer),
        Column("judge_name", String(255)),
        Column("city", String(128)),
    )
    return SourceLayout(
        variant=SchemaVariant.EXPORT,
        cases=cases,
        hearings=hearings,
        case_id="case_id",
        case_number="case_number",
        created_at="created_at",
        modified_at="modified_at",
        hearing_case_id="case_id",
        case_from_row=case_from_export_row,
        hearing_from_row=hearing_from_export_row,
    )


def _legacy_layout(metadata: MetaData, cases_table: str, hearings_table: str) -> SourceLayout:
    cases = Table(
        cases_table,
        metadata,
        Column("CaseCounter", Integer, primary_key=True),
        Column("CaseNumber", String(64), nullable=False),
        Column("CaseName", String(255)),
        Column("CreateDate", DateTime),
        Column("ModifyDate", DateTime),
        Column("CloseDate", DateTime),
        Column("ClientName", String(255)),
        Column("ClientNumber", String(64)),
        Column("ClientPhone", String(32)),
        Column("StatusName", String(128)),
        Column("DocumentType", String(128)),
        Column("ClaimNumber", String(64)),
        Column("PlaintiffName", String(255)),
        Column("DefendantName", String(255)),
        Column("DefendantSide", String(128)),
        Column("PolicyHolderName", String(255)),
        Column("PolicyHolderPhone", String(32)),
        Column("DirectDamage", String(32)),
        Column("RequestedClaim", String(32)),
        Column("EventDate", DateTime),
        Column("CourtName", String(255)),
        Column("CourtCaseNumber", String(64)),
        Column("HearingDate", DateTime),
        Column("JudgeName", String(255)),
        Column("HearingCity", String(128)),
        Column("Notes", Text),
    )
    hearings = Table(
        hearings_table,
        metadata,
        Column("EventCounter", Integer, primary_key=True),
        Column("CaseCounter", Integer, nullable=False),
        Column("StartDate", DateTime),
        Column("FromTime", Time),
        Column("MeetStatus", Integer),
        Column("JudgeName", String(255)),
        Column("City", String(128)),
    )
    return SourceLayout(
        variant=SchemaVariant.LEGACY,
        cases=cases,
        hearings=hearings,
        case_id="CaseCounter",
        case_number="CaseNumber",
        created_at="CreateDate",
        modified_at="ModifyDate",
        hearing_case_id="CaseCounter",
        case_from_row=case_from_legacy_row,
        hearing_from_row=hearing_from_legacy_row,
    )


def build_layout(
    variant: str,
    *,
    metadata: MetaData | None = None,
    cases_table: str = "cases",
    hearings_table: str = "hearing_events",
) -> SourceLayout:
    try:
        resolved = SchemaVariant(variant.strip().lower())
    except ValueError:
        choices = ", ".join(item.value for item in SchemaVariant)
        msg = f"SOURCE_SCHEMA_VARIANT must be one of {choices}, got {variant!r}"
        raise ConfigurationError(msg) from None

    target = metadata if metadata is not None else MetaData()
    if resolved is SchemaVariant.LEGACY:
        return _legacy_layout(target, cases_table, hearings_table)
    return _export_layout(target, cases_table, hearings_table)
