"""Database locations: the engine's own state store and the source of record."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_str, require_env_vars

APP_DIR_NAME: Final[str] = "docketsync"
DEFAULT_DB_FILENAME: Final[str] = "docketsync.db"


@dataclass(frozen=True, slots=True)
class StateStoreConfig:
    """Where the sync-state tables live.

    ``uri`` wins when set; otherwise a SQLite file is created under
    ``data_dir``.
    """

    data_dir: Path
    uri: str | None = None
    database_filename: str = DEFAULT_DB_FILENAME

    def database_uri(self) -> str:
        if self.uri:
            return self.uri
        data_dir = self.data_dir.expanduser().resolve()
        data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite+pysqlite:///{data_dir / self.database_filename}"


@dataclass(frozen=True, slots=True)
class SourceConfig:
    """Connection settings for the read-only source-of-record database."""

    uri: str
    cases_table: str = "cases"
    hearings_table: str = "hearing_events"
    schema_variant: str = "export"


def _platform_data_dir() -> Path:
    if os.name == "nt":
        local = os.getenv("LOCALAPPDATA")
        return Path(local) if local else Path.home() / "AppData" / "Local"
    xdg = os.getenv("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


def get_state_store_config() -> StateStoreConfig:
    explicit_dir = os.getenv("DOCKETSYNC_DATA_DIR")
    data_dir = Path(explicit_dir) if explicit_dir else _platform_data_dir() / APP_DIR_NAME
    return StateStoreConfig(data_dir=data_dir, uri=os.getenv("DATABASE_URI") or None)


def get_database_uri() -> str:
    return get_state_store_config().database_uri()


def get_source_config() -> SourceConfig:
    values = require_env_vars(("SOURCE_DATABASE_URI",))
    return SourceConfig(
        uri=values["SOURCE_DATABASE_URI"],
        cases_table=env_str("SOURCE_CASES_TABLE", "cases"),
        hearings_table=env_str("SOURCE_HEARINGS_TABLE", "hearing_events"),
        schema_variant=env_str("SOURCE_SCHEMA_VARIANT", "export"),
    )
