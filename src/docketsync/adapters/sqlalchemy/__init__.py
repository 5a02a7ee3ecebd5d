"""SQLAlchemy adapter package for the sync-state store."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyAlertDedupRepository,
    SqlAlchemyFailureRepository,
    SqlAlchemyHearingSnapshotRepository,
    SqlAlchemyMappingRepository,
    SqlAlchemyRunLockRepository,
    SqlAlchemyRunMetricsRepository,
)
from .unit_of_work import SqlAlchemySyncUnitOfWork, shutdown, startup

__all__ = [
    "SqlAlchemyAlertDedupRepository",
    "SqlAlchemyFailureRepository",
    "SqlAlchemyHearingSnapshotRepository",
    "SqlAlchemyMappingRepository",
    "SqlAlchemyRunLockRepository",
    "SqlAlchemyRunMetricsRepository",
    "SqlAlchemySyncUnitOfWork",
    "create_all_tables",
    "mapper_registry",
    "start_mappers",
    "shutdown",
    "startup",
]
