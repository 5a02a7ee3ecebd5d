"""Engine lifecycle and the unit of work over the sync-state repositories.

``startup()`` binds one engine per process, registers the mappers and brings
the schema to the latest Alembic revision. Every ``SqlAlchemySyncUnitOfWork``
opened afterwards gets its own session from the shared factory; nothing is
committed unless ``commit()`` is called, and leaving the block with an
exception rolls back.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from docketsync.adapters.sqlalchemy.mappings import start_mappers
from docketsync.adapters.sqlalchemy.migrations import upgrade_head
from docketsync.adapters.sqlalchemy.repositories import (
    SqlAlchemyAlertDedupRepository,
    SqlAlchemyFailureRepository,
    SqlAlchemyHearingSnapshotRepository,
    SqlAlchemyMappingRepository,
    SqlAlchemyRunLockRepository,
    SqlAlchemyRunMetricsRepository,
)
from docketsync.config.storage import get_database_uri
from docketsync.domain.ports.unit_of_work import SyncRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the state database is used before ``startup()`` or reconfigured twice."""


class _Binding:
    engine: Engine | None = None
    sessions: sessionmaker[Session] | None = None


_BINDING = _Binding()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the state database, register mappers and migrate the schema to head."""

    if _BINDING.engine is not None and not force:
        raise StartupError("State database already bound; pass force=True to rebind")

    bound = engine or create_engine(database_uri or get_database_uri(), future=True)
    start_mappers()
    upgrade_head(engine=bound)
    _BINDING.engine = bound
    _BINDING.sessions = sessionmaker(bind=bound, expire_on_commit=False)
    log.debug(f"State database bound to {bound.url.render_as_string(hide_password=True)}")


def configured_engine() -> Engine | None:
    return _BINDING.engine


def is_started() -> bool:
    return _BINDING.engine is not None


def shutdown() -> None:
    """Dispose the bound engine; a later ``startup()`` may bind a new one."""

    if _BINDING.engine is not None:
        _BINDING.engine.dispose()
    _BINDING.engine = None
    _BINDING.sessions = None


class SqlAlchemySyncUnitOfWork:
    """One session and its repositories for the duration of a ``with`` block."""

    def __init__(self) -> None:
        if _BINDING.sessions is None:
            raise StartupError(
                "State database not bound. Call "
                "docketsync.adapters.sqlalchemy.unit_of_work.startup() first."
            )
        self._sessions = _BINDING.sessions
        self._session: Session | None = None
        self._repositories: SyncRepositories | None = None

    def __enter__(self) -> SqlAlchemySyncUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work is already open")
        session = self._sessions()
        self._session = session
        self._repositories = SyncRepositories(
            mappings=SqlAlchemyMappingRepository(session),
            snapshots=SqlAlchemyHearingSnapshotRepository(session),
            run_lock=SqlAlchemyRunLockRepository(session),
            failures=SqlAlchemyFailureRepository(session),
            metrics=SqlAlchemyRunMetricsRepository(session),
            alert_dedup=SqlAlchemyAlertDedupRepository(session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work is not open")
        return self._session

    @property
    def repositories(self) -> SyncRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work is not open")
        return self._repositories

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from docketsync.domain.ports.unit_of_work import SyncUnitOfWork

    _uow_check: SyncUnitOfWork = SqlAlchemySyncUnitOfWork()
