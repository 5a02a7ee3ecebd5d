"""Application configuration helpers."""

from __future__ import annotations

from .alerts import AlertConfig, get_alert_config
from .board import (
    DEFAULT_COLUMN_MAP,
    BoardConfig,
    HearingColumns,
    HearingLabels,
    get_board_config,
    parse_column_map,
    parse_dropdown_columns,
)
from .env import require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import (
    SourceConfig,
    StateStoreConfig,
    get_database_uri,
    get_source_config,
    get_state_store_config,
)
from .sync import SyncConfig, get_sync_config

__all__ = [
    "DEFAULT_COLUMN_MAP",
    "AlertConfig",
    "BoardConfig",
    "ConfigurationError",
    "HearingColumns",
    "HearingLabels",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "SourceConfig",
    "StateStoreConfig",
    "SyncConfig",
    "configure_logging",
    "get_alert_config",
    "get_board_config",
    "get_database_uri",
    "get_source_config",
    "get_state_store_config",
    "get_sync_config",
    "parse_column_map",
    "parse_dropdown_columns",
    "require_env_vars",
]
