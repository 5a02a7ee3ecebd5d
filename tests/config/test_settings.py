from __future__ import annotations

from datetime import date, time
from pathlib import Path  # noqa: TC003
from zoneinfo import ZoneInfo

import pytest

from docketsync.config import (
    ConfigurationError,
    MissingConfigurationError,
    get_alert_config,
    get_database_uri,
    get_source_config,
    get_sync_config,
)
from docketsync.config.storage import DEFAULT_DB_FILENAME

_SYNC_VARS = (
    "SYNC_TIMEZONE",
    "SYNC_COOLING_BUSINESS_DAYS",
    "SYNC_INTERVAL_SECONDS",
    "SYNC_MAX_ITEMS_PER_RUN",
    "SYNC_DRY_RUN",
    "SYNC_MAX_RETRY_ATTEMPTS",
    "SYNC_CIRCUIT_BREAKER_THRESHOLD",
    "SYNC_LOCK_TTL_SECONDS",
    "SYNC_ALLOWLIST_ENABLED",
    "SYNC_ALLOWLIST_IDS",
    "SYNC_ALLOWLIST_CASE_NUMBERS",
)
_ALERT_VARS = (
    "ALERTS_ENABLED",
    "ALERTS_DEDUP_WINDOW_MINUTES",
    "ALERTS_MAX_PER_HOUR",
    "ALERTS_QUEUE_SIZE",
    "ALERTS_DIGEST_INTERVAL_MINUTES",
    "ALERTS_DAILY_SUMMARY_TIME",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in (*_SYNC_VARS, *_ALERT_VARS):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_sync_config_defaults(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("SYNC_CUTOFF_DATE", "2026-01-01")

    config = get_sync_config()

    assert config.cutoff_date == date(2026, 1, 1)
    assert config.cooling_business_days == 3
    assert config.interval_seconds == 1200.0
    assert config.max_items_per_run == 0
    assert config.dry_run is False
    assert config.max_retry_attempts == 3
    assert config.circuit_breaker_threshold == 10
    assert config.tzinfo == ZoneInfo("Asia/Jerusalem")


def test_sync_config_overrides(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("SYNC_CUTOFF_DATE", "2026-02-01")
    clean_env.setenv("SYNC_TIMEZONE", "UTC")
    clean_env.setenv("SYNC_DRY_RUN", "yes")
    clean_env.setenv("SYNC_MAX_ITEMS_PER_RUN", "25")
    clean_env.setenv("SYNC_INTERVAL_SECONDS", "60")

    config = get_sync_config()

    assert config.timezone == "UTC"
    assert config.dry_run is True
    assert config.max_items_per_run == 25
    assert config.interval_seconds == 60.0


def test_sync_config_reads_allowlist(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("SYNC_CUTOFF_DATE", "2026-01-01")
    clean_env.setenv("SYNC_ALLOWLIST_ENABLED", "true")
    clean_env.setenv("SYNC_ALLOWLIST_IDS", "7, 12,,")
    clean_env.setenv("SYNC_ALLOWLIST_CASE_NUMBERS", "1234/26 ,5678/26")

    config = get_sync_config()

    assert config.allowlist_enabled is True
    assert config.allowlist_ids == (7, 12)
    assert config.allowlist_case_numbers == ("1234/26", "5678/26")


def test_allowlist_is_off_by_default(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("SYNC_CUTOFF_DATE", "2026-01-01")

    config = get_sync_config()

    assert config.allowlist_enabled is False
    assert config.allowlist_ids == ()
    assert config.allowlist_case_numbers == ()


def test_sync_config_requires_cutoff(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.delenv("SYNC_CUTOFF_DATE", raising=False)

    with pytest.raises(MissingConfigurationError, match="SYNC_CUTOFF_DATE"):
        get_sync_config()


@pytest.mark.parametrize(
    ("name", "value", "message"),
    [
        ("SYNC_CUTOFF_DATE", "01/02/2026", "ISO date"),
        ("SYNC_TIMEZONE", "Mars/Olympus", "time zone"),
        ("SYNC_MAX_RETRY_ATTEMPTS", "0", ">= 1"),
        ("SYNC_ALLOWLIST_IDS", "7,abc", "integer"),
        ("SYNC_ALLOWLIST_IDS", "0", ">= 1"),
    ],
)
def test_sync_config_rejects_invalid_values(
    clean_env: pytest.MonkeyPatch, name: str, value: str, message: str
) -> None:
    clean_env.setenv("SYNC_CUTOFF_DATE", "2026-01-01")
    clean_env.setenv(name, value)

    with pytest.raises(ConfigurationError, match=message):
        get_sync_config()


def test_alert_config_defaults(clean_env: pytest.MonkeyPatch) -> None:
    config = get_alert_config()

    assert config.enabled is False
    assert config.dedup_window_minutes == 60
    assert config.max_per_hour == 10
    assert config.daily_summary_time == time(8, 0)


def test_alert_config_overrides(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("ALERTS_ENABLED", "1")
    clean_env.setenv("ALERTS_MAX_PER_HOUR", "3")
    clean_env.setenv("ALERTS_DAILY_SUMMARY_TIME", "18:30")

    config = get_alert_config()

    assert config.enabled is True
    assert config.max_per_hour == 3
    assert config.daily_summary_time == time(18, 30)


def test_source_config_reads_layout_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SOURCE_DATABASE_URI", "mssql+pyodbc://reader@cases")
    monkeypatch.setenv("SOURCE_SCHEMA_VARIANT", "legacy")
    monkeypatch.setenv("SOURCE_CASES_TABLE", "Cases")
    monkeypatch.delenv("SOURCE_HEARINGS_TABLE", raising=False)

    config = get_source_config()

    assert config.uri == "mssql+pyodbc://reader@cases"
    assert config.schema_variant == "legacy"
    assert config.cases_table == "Cases"
    assert config.hearings_table == "hearing_events"


def test_source_config_requires_uri(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SOURCE_DATABASE_URI", raising=False)

    with pytest.raises(MissingConfigurationError, match="SOURCE_DATABASE_URI"):
        get_source_config()


def test_database_uri_uses_env_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite:///override.db")

    assert get_database_uri() == "sqlite:///override.db"


def test_database_uri_creates_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv("DOCKETSYNC_DATA_DIR", str(tmp_path / "data-dir"))

    uri = get_database_uri()

    expected_path = (tmp_path / "data-dir" / DEFAULT_DB_FILENAME).resolve()
    assert uri == f"sqlite+pysqlite:///{expected_path}"
    assert expected_path.parent.exists()
