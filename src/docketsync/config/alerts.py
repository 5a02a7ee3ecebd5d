"""Alert notification settings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time

from .env import env_bool, env_int, env_time

DEFAULT_DEDUP_WINDOW_MINUTES = 60
DEFAULT_MAX_PER_HOUR = 10
DEFAULT_QUEUE_SIZE = 100
DEFAULT_DIGEST_INTERVAL_MINUTES = 15
DEFAULT_DAILY_SUMMARY_TIME = time(8, 0)


@dataclass(frozen=True, slots=True)
class AlertConfig:
    enabled: bool = False
    dedup_window_minutes: int = DEFAULT_DEDUP_WINDOW_MINUTES
    max_per_hour: int = DEFAULT_MAX_PER_HOUR
    queue_size: int = DEFAULT_QUEUE_SIZE
    digest_interval_minutes: int = DEFAULT_DIGEST_INTERVAL_MINUTES
    daily_summary_time: time = DEFAULT_DAILY_SUMMARY_TIME


def get_alert_config() -> AlertConfig:
    return AlertConfig(
        enabled=env_bool("ALERTS_ENABLED", default=False),
        dedup_window_minutes=env_int("ALERTS_DEDUP_WINDOW_MINUTES", DEFAULT_DEDUP_WINDOW_MINUTES),
        max_per_hour=env_int("ALERTS_MAX_PER_HOUR", DEFAULT_MAX_PER_HOUR),
        queue_size=env_int("ALERTS_QUEUE_SIZE", DEFAULT_QUEUE_SIZE, minimum=1),
        digest_interval_minutes=env_int(
            "ALERTS_DIGEST_INTERVAL_MINUTES", DEFAULT_DIGEST_INTERVAL_MINUTES, minimum=1
        ),
        daily_summary_time=env_time("ALERTS_DAILY_SUMMARY_TIME", DEFAULT_DAILY_SUMMARY_TIME),
    )
