from __future__ import annotations

import pytest

from docketsync.config import (
    DEFAULT_COLUMN_MAP,
    ConfigurationError,
    MissingConfigurationError,
    RateLimit,
    ResilienceConfig,
    get_board_config,
    parse_column_map,
    parse_dropdown_columns,
)
from docketsync.config.board import DEFAULT_BOARD_API_URL

_OPTIONAL_VARS = (
    "BOARD_API_URL",
    "BOARD_API_VERSION",
    "BOARD_COLUMN_MAP",
    "BOARD_HEARING_STATUS_COLUMN",
    "BOARD_HEARING_DATE_COLUMN",
    "BOARD_JUDGE_COLUMN",
    "BOARD_CITY_COLUMN",
    "BOARD_LABEL_ACTIVE",
    "BOARD_LABEL_RESCHEDULED",
    "BOARD_LABEL_CANCELLED",
    "BOARD_METADATA_TTL_SECONDS",
    "BOARD_TEST_MODE",
    "BOARD_DROPDOWN_COLUMNS",
)


@pytest.fixture
def board_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _OPTIONAL_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("BOARD_API_TOKEN", "token")
    monkeypatch.setenv("BOARD_ID", "42")
    monkeypatch.setenv("BOARD_GROUP_ID", "topics")
    return monkeypatch


def test_column_map_overlays_defaults() -> None:
    columns = parse_column_map(
        "client_name=text_client, notes=long_text_notes,,closed_at=",
    )

    assert columns["client_name"] == "text_client"
    assert columns["notes"] == "long_text_notes"
    assert "closed_at" not in columns
    assert columns["case_number"] == DEFAULT_COLUMN_MAP["case_number"]


def test_column_map_without_overrides_is_the_base() -> None:
    assert dict(parse_column_map(None, base={"a": "b"})) == {"a": "b"}


@pytest.mark.parametrize("raw", ["client_name", "=text_client"])
def test_column_map_rejects_malformed_entries(raw: str) -> None:
    with pytest.raises(ConfigurationError, match="field=column"):
        parse_column_map(raw)


def test_dropdown_columns_name_optional_fallbacks() -> None:
    columns = parse_dropdown_columns("dropdown_client=text_client, dropdown_court,,")

    assert dict(columns) == {"dropdown_client": "text_client", "dropdown_court": None}


def test_dropdown_columns_reject_missing_column_id() -> None:
    with pytest.raises(ConfigurationError, match="needs a column id"):
        parse_dropdown_columns("=text_client")

def test_board_config_defaults(board_env: pytest.MonkeyPatch) -> None:
    config = get_board_config()

    assert config.api_token == "token"
    assert config.board_id == 42
    assert config.group_id == "topics"
    assert config.columns == DEFAULT_COLUMN_MAP
    assert config.hearing_columns.status == "status_hearing"
    assert config.hearing_labels.cancelled == "Cancelled"
    assert config.test_mode is False
    assert dict(config.dropdown_columns) == {}
    assert config.resilience.base_url == DEFAULT_BOARD_API_URL
    assert config.resilience.retry is None
    assert config.resilience.ratelimit == RateLimit(max_calls=5, per_seconds=1.0)


def test_board_config_overrides(board_env: pytest.MonkeyPatch) -> None:
    board_env.setenv("BOARD_API_URL", "http://board.test/v2")
    board_env.setenv("BOARD_HEARING_STATUS_COLUMN", "status_7")
    board_env.setenv("BOARD_JUDGE_COLUMN", "text_judge")
    board_env.setenv("BOARD_LABEL_RESCHEDULED", "Moved")
    board_env.setenv("BOARD_COLUMN_MAP", "notes=long_text")
    board_env.setenv("BOARD_METADATA_TTL_SECONDS", "60")
    board_env.setenv("BOARD_TEST_MODE", "true")
    board_env.setenv("BOARD_DROPDOWN_COLUMNS", "dropdown_client=text_client")

    config = get_board_config()

    assert config.resilience.base_url == "http://board.test/v2"
    assert config.hearing_columns.status == "status_7"
    assert config.hearing_columns.judge == "text_judge"
    assert config.hearing_labels.rescheduled == "Moved"
    assert config.columns["notes"] == "long_text"
    assert config.metadata_ttl_seconds == 60.0
    assert config.test_mode is True
    assert dict(config.dropdown_columns) == {"dropdown_client": "text_client"}


def test_board_config_keeps_explicit_resilience(board_env: pytest.MonkeyPatch) -> None:
    resilience = ResilienceConfig(name="custom", base_url="http://other.test")

    assert get_board_config(resilience=resilience).resilience is resilience


def test_board_config_requires_credentials(board_env: pytest.MonkeyPatch) -> None:
    board_env.delenv("BOARD_API_TOKEN")

    with pytest.raises(MissingConfigurationError, match="BOARD_API_TOKEN"):
        get_board_config()


def test_board_id_must_be_a_positive_integer(board_env: pytest.MonkeyPatch) -> None:
    board_env.setenv("BOARD_ID", "board-42")

    with pytest.raises(ConfigurationError, match="BOARD_ID"):
        get_board_config()
