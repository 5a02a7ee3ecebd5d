"""Alert delivery and alert dedup persistence adapters."""

from __future__ import annotations

from dataclasses import replace
from logging import getLogger
from typing import TYPE_CHECKING

from docketsync.domain.alerts import AlertKind

if TYPE_CHECKING:
    from collections.abc import Callable

    from docketsync.domain.alerts import Alert
    from docketsync.domain.model import AlertDedupRecord
    from docketsync.domain.ports import SyncUnitOfWork

log = getLogger(__name__)


class LoggingAlertTransport:
    """Writes alerts to the log instead of a mail server."""

    def __init__(self, logger_name: str = "docketsync.alerts") -> None:
        self._log = getLogger(logger_name)
        self.sent: int = 0

    async def send(self, alert: Alert) -> None:
        level = "error" if alert.kind is AlertKind.ERROR else "info"
        getattr(self._log, level)("%s\n%s", alert.full_subject, alert.body)
        self.sent += 1


class SqlAlchemyAlertStateStore:
    """Write-through store for the alert gate's dedup entries."""

    def __init__(self, uow_factory: Callable[[], SyncUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    def load(self) -> list[AlertDedupRecord]:
        with self._uow_factory() as uow:
            records = [replace(record, id=None) for record in uow.repositories.alert_dedup.all()]
        log.debug("Loaded %s alert dedup entries", len(records))
        return records

    def save(self, record: AlertDedupRecord) -> None:
        with self._uow_factory() as uow:
            repository = uow.repositories.alert_dedup
            stored = repository.get(record.fingerprint)
            if stored is None:
                repository.add(replace(record, id=None))
            else:
                stored.exception_type = record.exception_type
                stored.source = record.source
                stored.subject = record.subject
                stored.first_seen = record.first_seen
                stored.last_seen = record.last_seen
                stored.occurrence_count = record.occurrence_count
                stored.last_sent = record.last_sent
                stored.suppressed_count = record.suppressed_count
            uow.commit()


if TYPE_CHECKING:
    from docketsync.domain.ports import AlertStateStore, AlertTransport

    def _check_transport() -> AlertTransport:
        return LoggingAlertTransport()

    def _check_store(factory: Callable[[], SyncUnitOfWork]) -> AlertStateStore:
        return SqlAlchemyAlertStateStore(factory)
