"""Task-board configuration values."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from .env import env_bool, env_float, env_optional_str, env_str, parse_int, require_env_vars
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_BOARD_API_URL = "https://api.monday.com/v2"
DEFAULT_BOARD_API_VERSION = "2024-10"
DEFAULT_METADATA_TTL_SECONDS = 600.0
BOARD_TIMEOUT_SECONDS = 30.0

# CaseRecord attribute -> board column id
DEFAULT_COLUMN_MAP: Mapping[str, str] = MappingProxyType(
    {
        "case_number": "text_case_number",
        "client_number": "text_client_number",
        "claim_number": "text_claim_number",
        "client_name": "text_client_name",
        "client_phone": "phone_client",
        "status_name": "text_case_status",
        "document_type": "text_document_type",
        "defendant_name": "text_defendant",
        "defendant_side_raw": "text_defendant_side",
        "plaintiff_name": "text_plaintiff",
        "policy_holder_name": "text_policy_holder",
        "policy_holder_phone": "phone_policy_holder",
        "court_name": "text_court",
        "court_case_number": "text_court_case_number",
        "direct_damage_amount": "numeric_direct_damage",
        "requested_claim_amount": "numeric_requested_claim",
        "event_date": "date_event",
        "created_at": "date_opened",
        "closed_at": "date_closed",
    }
)


@dataclass(frozen=True, slots=True)
class HearingColumns:
    status: str = "status_hearing"
    start: str = "date_hearing"
    judge: str = "text_hearing_judge"
    city: str = "text_hearing_city"


@dataclass(frozen=True, slots=True)
class HearingLabels:
    active: str = "Active"
    rescheduled: str = "Rescheduled"
    cancelled: str = "Cancelled"


@dataclass(frozen=True)
class BoardConfig:
    """Holds task-board API configuration values."""

    api_token: str
    board_id: int
    group_id: str
    resilience: ResilienceConfig
    api_version: str = DEFAULT_BOARD_API_VERSION
    columns: Mapping[str, str] = field(default_factory=lambda: DEFAULT_COLUMN_MAP)
    hearing_columns: HearingColumns = field(default_factory=HearingColumns)
    hearing_labels: HearingLabels = field(default_factory=HearingLabels)
    metadata_ttl_seconds: float = DEFAULT_METADATA_TTL_SECONDS
    test_mode: bool = False
    # dropdown column id -> text column used when the label is not offered
    dropdown_columns: Mapping[str, str | None] = field(
        default_factory=lambda: MappingProxyType({})
    )


def parse_column_map(
    raw: str | None,
    *,
    base: Mapping[str, str] = DEFAULT_COLUMN_MAP,
) -> Mapping[str, str]:
    """Overlay ``field=column_id`` pairs (comma separated) onto ``base``.

    An empty column id removes the field from the map.
    """

    merged = dict(base)
    if not raw:
        return MappingProxyType(merged)
    for chunk in raw.split(","):
        if not chunk.strip():
            continue
        name, sep, column_id = chunk.partition("=")
        if not sep or not name.strip():
            msg = f"BOARD_COLUMN_MAP entry must look like field=column, got {chunk!r}"
            raise ConfigurationError(msg)
        if column_id.strip():
            merged[name.strip()] = column_id.strip()
        else:
            merged.pop(name.strip(), None)
    return MappingProxyType(merged)


def parse_dropdown_columns(raw: str | None) -> Mapping[str, str | None]:
    """Parse ``column_id`` or ``column_id=fallback_column_id`` entries (comma separated)."""

    columns: dict[str, str | None] = {}
    for chunk in (raw or "").split(","):
        column_id, _, fallback = (part.strip() for part in chunk.partition("="))
        if not column_id:
            if chunk.strip():
                msg = f"BOARD_DROPDOWN_COLUMNS entry needs a column id, got {chunk!r}"
                raise ConfigurationError(msg)
            continue
        columns[column_id] = fallback or None
    return MappingProxyType(columns)


def get_board_config(*, resilience: ResilienceConfig | None = None) -> BoardConfig:
    values = require_env_vars(("BOARD_API_TOKEN", "BOARD_ID", "BOARD_GROUP_ID"))
    api_url = env_str("BOARD_API_URL", DEFAULT_BOARD_API_URL)
    column_defaults = HearingColumns()
    label_defaults = HearingLabels()
    hearing_columns = HearingColumns(
        status=env_str("BOARD_HEARING_STATUS_COLUMN", column_defaults.status),
        start=env_str("BOARD_HEARING_DATE_COLUMN", column_defaults.start),
        judge=env_str("BOARD_JUDGE_COLUMN", column_defaults.judge),
        city=env_str("BOARD_CITY_COLUMN", column_defaults.city),
    )
    hearing_labels = HearingLabels(
        active=env_str("BOARD_LABEL_ACTIVE", label_defaults.active),
        rescheduled=env_str("BOARD_LABEL_RESCHEDULED", label_defaults.rescheduled),
        cancelled=env_str("BOARD_LABEL_CANCELLED", label_defaults.cancelled),
    )
    return BoardConfig(
        api_token=values["BOARD_API_TOKEN"],
        board_id=parse_int("BOARD_ID", values["BOARD_ID"], minimum=1),
        group_id=values["BOARD_GROUP_ID"],
        api_version=env_str("BOARD_API_VERSION", DEFAULT_BOARD_API_VERSION),
        columns=parse_column_map(env_optional_str("BOARD_COLUMN_MAP")),
        hearing_columns=hearing_columns,
        hearing_labels=hearing_labels,
        metadata_ttl_seconds=env_float(
            "BOARD_METADATA_TTL_SECONDS", DEFAULT_METADATA_TTL_SECONDS
        ),
        test_mode=env_bool("BOARD_TEST_MODE", default=False),
        dropdown_columns=parse_dropdown_columns(env_optional_str("BOARD_DROPDOWN_COLUMNS")),
        resilience=resilience
        or ResilienceConfig(
            name="board",
            base_url=api_url,
            timeout_seconds=BOARD_TIMEOUT_SECONDS,
            retry=None,
            ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
        ),
    )
