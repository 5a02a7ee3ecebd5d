"""Schema migrations for the sync-state database.

Revisions live in ``versions/`` next to this module. The ``alembic`` command
line reads the same location from ``[tool.alembic]`` in ``pyproject.toml``;
the application never depends on that file and drives Alembic directly.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config

from docketsync.config.storage import get_database_uri

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent


def build_config(database_uri: str | None = None) -> Config:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_PATH))
    if database_uri is not None:
        config.set_main_option("sqlalchemy.url", database_uri)
    return config


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Upgrade the database schema to the latest revision.

    With ``engine`` the upgrade runs on one of its connections inside a single
    transaction, which keeps in-memory SQLite databases usable afterwards.
    """

    if engine is None:
        command.upgrade(build_config(database_uri or get_database_uri()), "head")
        return
    config = build_config()
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, "head")
