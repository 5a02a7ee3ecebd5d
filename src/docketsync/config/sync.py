"""Reconciliation run settings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .env import (
    env_bool,
    env_float,
    env_int,
    env_list,
    env_str,
    parse_date,
    parse_int,
    require_env_vars,
)
from .errors import ConfigurationError

if TYPE_CHECKING:
    from datetime import date

DEFAULT_COOLING_BUSINESS_DAYS = 3
DEFAULT_INTERVAL_SECONDS = 1200.0
DEFAULT_MAX_RETRY_ATTEMPTS = 3
DEFAULT_CIRCUIT_BREAKER_THRESHOLD = 10
DEFAULT_LOCK_TTL_SECONDS = 1800.0
DEFAULT_TIMEZONE = "Asia/Jerusalem"


@dataclass(frozen=True, slots=True)
class SyncConfig:
    cutoff_date: date
    cooling_business_days: int = DEFAULT_COOLING_BUSINESS_DAYS
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    max_items_per_run: int = 0
    dry_run: bool = False
    max_retry_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS
    circuit_breaker_threshold: int = DEFAULT_CIRCUIT_BREAKER_THRESHOLD
    lock_ttl_seconds: float = DEFAULT_LOCK_TTL_SECONDS
    timezone: str = DEFAULT_TIMEZONE
    allowlist_enabled: bool = False
    allowlist_ids: tuple[int, ...] = ()
    allowlist_case_numbers: tuple[str, ...] = ()

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def get_sync_config() -> SyncConfig:
    values = require_env_vars(("SYNC_CUTOFF_DATE",))
    timezone = env_str("SYNC_TIMEZONE", DEFAULT_TIMEZONE)
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"SYNC_TIMEZONE is not a known time zone: {timezone!r}") from exc

    max_attempts = env_int("SYNC_MAX_RETRY_ATTEMPTS", DEFAULT_MAX_RETRY_ATTEMPTS, minimum=1)
    return SyncConfig(
        cutoff_date=parse_date("SYNC_CUTOFF_DATE", values["SYNC_CUTOFF_DATE"]),
        cooling_business_days=env_int("SYNC_COOLING_BUSINESS_DAYS", DEFAULT_COOLING_BUSINESS_DAYS),
        interval_seconds=env_float("SYNC_INTERVAL_SECONDS", DEFAULT_INTERVAL_SECONDS),
        max_items_per_run=env_int("SYNC_MAX_ITEMS_PER_RUN", 0),
        dry_run=env_bool("SYNC_DRY_RUN", default=False),
        max_retry_attempts=max_attempts,
        circuit_breaker_threshold=env_int(
            "SYNC_CIRCUIT_BREAKER_THRESHOLD", DEFAULT_CIRCUIT_BREAKER_THRESHOLD
        ),
        lock_ttl_seconds=env_float("SYNC_LOCK_TTL_SECONDS", DEFAULT_LOCK_TTL_SECONDS),
        timezone=timezone,
        allowlist_enabled=env_bool("SYNC_ALLOWLIST_ENABLED", default=False),
        allowlist_ids=tuple(
            parse_int("SYNC_ALLOWLIST_IDS", item, minimum=1)
            for item in env_list("SYNC_ALLOWLIST_IDS")
        ),
        allowlist_case_numbers=env_list("SYNC_ALLOWLIST_CASE_NUMBERS"),
    )
