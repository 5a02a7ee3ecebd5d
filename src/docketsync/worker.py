"""Long-running worker: the periodic sync loop and the alert dispatcher."""

from __future__ import annotations

import asyncio
import time
import traceback
from contextlib import suppress
from datetime import UTC, datetime, timedelta
from datetime import time as dt_time
from logging import getLogger
from typing import TYPE_CHECKING

from docketsync.domain.alerts import Alert, AlertKind, fingerprint

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import date, tzinfo

    from docketsync.domain.alerts import AlertGate
    from docketsync.domain.ports import AlertTransport
    from docketsync.domain.sync import RunReport, SyncRunner, UnitOfWorkFactory

log = getLogger(__name__)

HEARTBEAT_SECONDS = 300.0
SUMMARY_LOOKBACK = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AlertDispatcher:
    """Queues alerts in front of a transport and sends digests and daily summaries.

    The queue is bounded; when it is full the oldest pending alert is dropped
    so the sync loop never blocks on delivery.
    """

    def __init__(
        self,
        *,
        gate: AlertGate,
        transport: AlertTransport,
        queue_size: int = 100,
        digest_interval: timedelta = timedelta(minutes=15),
        daily_summary_time: dt_time = dt_time(8, 0),
        tz: tzinfo = UTC,
        uow_factory: UnitOfWorkFactory | None = None,
        enabled: bool = True,
        check_interval: float = 60.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.gate = gate
        self.transport = transport
        self.digest_interval = digest_interval
        self.daily_summary_time = daily_summary_time
        self.tz = tz
        self.enabled = enabled
        self.check_interval = check_interval
        self._uow_factory = uow_factory
        self._clock = clock
        self._queue: asyncio.Queue[Alert] = asyncio.Queue(maxsize=queue_size)
        self._last_digest: datetime | None = None
        self._last_summary_day: date | None = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def report_exception(
        self, exc: BaseException, *, source: str, subject: str | None = None
    ) -> bool:
        """Queue an error alert unless it is a recent duplicate or over the hourly cap."""

        if not self.enabled:
            return False
        exception_type = type(exc).__name__
        key = fingerprint(exception_type, str(exc), source)
        title = subject or f"{exception_type} in {source}"

        if self.gate.is_duplicate(
            key, exception_type=exception_type, source=source, subject=title
        ):
            log.info("Alert suppressed (duplicate): %s fingerprint=%s", title, key[:12])
            return False
        if self.gate.is_rate_limited():
            self.gate.increment_suppressed(key)
            log.warning(
                "Alert suppressed (rate limit %s/h): %s", self.gate.max_per_hour, title
            )
            return False

        body = "".join(traceback.format_exception(exc))
        self.enqueue(Alert(kind=AlertKind.ERROR, subject=title, body=body, fingerprint=key))
        self.gate.record_sent(key)
        return True

    def enqueue(self, alert: Alert) -> None:
        if self._queue.full():
            dropped = self._queue.get_nowait()
            self._queue.task_done()
            log.warning("Alert queue full, dropped: %s", dropped.full_subject)
        self._queue.put_nowait(alert)
        log.info("Alert queued: %s", alert.full_subject)

    async def drain(self) -> int:
        """Deliver everything queued right now; returns the number delivered."""

        delivered = 0
        while not self._queue.empty():
            alert = self._queue.get_nowait()
            try:
                if await self._deliver(alert):
                    delivered += 1
            finally:
                self._queue.task_done()
        return delivered

    async def tick(self, now: datetime | None = None) -> None:
        at = now or self._clock()
        self.maybe_queue_daily_summary(at)
        self.maybe_queue_digest(at)
        await self.flush_state()

    async def flush_state(self) -> int:
        """Persist queued dedup state in a worker thread, away from the event loop."""

        if not self.gate.pending_writes:
            return 0
        return await asyncio.to_thread(self.gate.flush)

    def maybe_queue_digest(self, now: datetime) -> bool:
        if self._last_digest is not None and now - self._last_digest < self.digest_interval:
            return False
        suppressed = self.gate.suppressed_alerts()
        if not suppressed:
            return False
        self._last_digest = now
        lines = [
            f"{entry.suppressed_count}x {entry.exception_type} from {entry.source}"
            f" (last seen {entry.last_seen:%Y-%m-%d %H:%M} UTC): {entry.subject or '-'}"
            for entry in sorted(suppressed, key=lambda item: -item.suppressed_count)
        ]
        self.enqueue(
            Alert(
                kind=AlertKind.DIGEST,
                subject=f"{len(suppressed)} suppressed alert type(s)",
                body="\n".join(lines),
            )
        )
        self.gate.record_delivery(now=now)
        self.gate.clear_suppressed()
        return True

    def maybe_queue_daily_summary(self, now: datetime) -> bool:
        if self._uow_factory is None:
            return False
        local = now.astimezone(self.tz)
        today = local.date()
        if self._last_summary_day is not None and today <= self._last_summary_day:
            return False
        if local.time() < self.daily_summary_time:
            return False
        self._last_summary_day = today
        self.enqueue(self.build_daily_summary(now))
        self.gate.record_delivery(now=now)
        return True

    def build_daily_summary(self, now: datetime) -> Alert:
        if self._uow_factory is None:
            raise RuntimeError("Daily summaries need a unit of work factory")
        since = now - SUMMARY_LOOKBACK
        with self._uow_factory() as uow:
            metrics = list(uow.repositories.metrics.since(since))
            failures = list(uow.repositories.failures.since(since))

        runs = len(metrics)
        durations = [metric.duration_ms for metric in metrics]
        rows = [
            ("Sync runs", runs),
            ("Created", sum(metric.created for metric in metrics)),
            ("Updated", sum(metric.updated for metric in metrics)),
            ("Skipped (no change)", sum(metric.skipped_unchanged for metric in metrics)),
            ("Skipped (ineligible)", sum(metric.skipped_ineligible for metric in metrics)),
            ("Skipped (inactive)", sum(metric.skipped_inactive for metric in metrics)),
            ("Hearing updates", sum(metric.hearing_updated for metric in metrics)),
            ("Failed (run-level)", sum(metric.failed for metric in metrics)),
            ("Failures recorded", len(failures)),
            ("Circuit breaker incidents", sum(1 for metric in metrics if metric.breaker_tripped)),
            ("Avg run duration", f"{sum(durations) / runs:.0f} ms" if runs else "0 ms"),
            ("Max run duration", f"{max(durations)} ms" if runs else "0 ms"),
        ]
        width = max(len(label) for label, _ in rows)
        body = "\n".join(f"{label.ljust(width)}  {value}" for label, value in rows)
        day = now.astimezone(self.tz).date()
        return Alert(kind=AlertKind.DAILY_SUMMARY, subject=day.isoformat(), body=body)

    async def run(self, stop_event: asyncio.Event) -> None:
        if not self.enabled:
            log.info("Alerting disabled")
            await stop_event.wait()
            return

        log.info("Alert dispatcher started")
        consumer = asyncio.create_task(self._consume(), name="alert-consumer")
        try:
            while not stop_event.is_set():
                await self.tick()
                with suppress(TimeoutError):
                    await asyncio.wait_for(stop_event.wait(), timeout=self.check_interval)
        finally:
            consumer.cancel()
            with suppress(asyncio.CancelledError):
                await consumer
            await self.drain()
            await self.flush_state()
            log.info("Alert dispatcher stopped")

    async def _consume(self) -> None:
        while True:
            alert = await self._queue.get()
            try:
                await self._deliver(alert)
            finally:
                self._queue.task_done()

    async def _deliver(self, alert: Alert) -> bool:
        try:
            await self.transport.send(alert)
        except asyncio.CancelledError:
            raise
        except Exception:
            log.warning("Failed to deliver alert: %s", alert.full_subject, exc_info=True)
            return False
        log.info("Alert sent: %s", alert.full_subject)
        return True


class SyncWorker:
    """Runs a pass immediately and then once per interval until stopped."""

    def __init__(
        self,
        *,
        runner: SyncRunner,
        interval_seconds: float,
        dispatcher: AlertDispatcher | None = None,
        heartbeat_seconds: float = HEARTBEAT_SECONDS,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.runner = runner
        self.interval_seconds = interval_seconds
        self.dispatcher = dispatcher
        self.heartbeat_seconds = heartbeat_seconds
        self._monotonic = monotonic
        self.runs = 0
        self.crashes = 0

    async def run_once(self) -> RunReport | None:
        self.runs += 1
        try:
            return await self.runner.run()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.crashes += 1
            log.critical("Sync run crashed", exc_info=exc)
            if self.dispatcher is not None:
                self.dispatcher.report_exception(exc, source="sync_worker")
            return None

    async def run_forever(self, stop_event: asyncio.Event) -> None:
        log.info(f"Sync worker started (interval={self.interval_seconds:.0f}s)")
        heartbeat = asyncio.create_task(self._heartbeat(stop_event), name="sync-heartbeat")
        try:
            while not stop_event.is_set():
                await self.run_once()
                with suppress(TimeoutError):
                    await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
        finally:
            heartbeat.cancel()
            with suppress(asyncio.CancelledError):
                await heartbeat
            log.info("Sync worker stopped after %s run(s)", self.runs)

    async def _heartbeat(self, stop_event: asyncio.Event) -> None:
        started = self._monotonic()
        while not stop_event.is_set():
            with suppress(TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=self.heartbeat_seconds)
            uptime = self._monotonic() - started
            log.info(
                "Worker heartbeat: uptime=%.0fs runs=%s crashes=%s", uptime, self.runs, self.crashes
            )


async def run_service(
    worker: SyncWorker, dispatcher: AlertDispatcher, stop_event: asyncio.Event
) -> None:
    """Run the sync loop and the alert dispatcher until ``stop_event`` is set."""

    async with asyncio.TaskGroup() as group:
        group.create_task(dispatcher.run(stop_event), name="alert-dispatcher")
        group.create_task(worker.run_forever(stop_event), name="sync-worker")
