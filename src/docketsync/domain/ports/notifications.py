"""Ports for outbound alert delivery."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable

    from docketsync.domain.alerts import Alert
    from docketsync.domain.model import AlertDedupRecord


@runtime_checkable
class AlertTransport(Protocol):
    async def send(self, alert: Alert) -> None: ...


@runtime_checkable
class AlertStateStore(Protocol):
    """Durable backing for the in-process alert gate."""

    def load(self) -> Iterable[AlertDedupRecord]: ...

    def save(self, record: AlertDedupRecord) -> None: ...
