"""Self-paced polling scheduler with a bounded worker pool per cycle."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from healthhub.config.models import PollerConfig
from healthhub.registry.directory import ServiceDirectory
from healthhub.registry.models import Metrics, ServiceRecord
from healthhub.registry.prober import utcnow

logger = logging.getLogger(__name__)


class Prober(Protocol):
    """Anything that can turn a record into its updated metrics."""

    async def probe(self, record: ServiceRecord) -> Metrics: ...


@dataclass
class CycleReport:
    """Summary of one scheduler cycle."""

    started_at: datetime
    registered: int
    due: int
    probed: int
    duration_ms: float
    cancelled: bool = False


class PollingScheduler:
    """Polls due services from a directory on a fixed cycle.

    Each cycle takes a directory snapshot, keeps the records whose effective
    interval has elapsed since their last poll, and runs them through a pool
    of ``max_workers`` tasks. Results are written back before the cycle ends,
    so the next cycle always sees them.
    """

    def __init__(
        self,
        directory: ServiceDirectory,
        prober: Prober,
        settings: PollerConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._directory = directory
        self._prober = prober
        self._settings = settings or PollerConfig()
        self._clock = clock
        self._stopping = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._written = 0
        self.last_report: CycleReport | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def effective_interval(self, record: ServiceRecord) -> float:
        if record.poll_interval_sec > 0:
            return float(record.poll_interval_sec)
        return self._settings.default_interval

    def is_due(self, record: ServiceRecord, now: datetime) -> bool:
        last = record.metrics.last_polled_at
        if last is None:
            return True
        return (now - last).total_seconds() >= self.effective_interval(record)

    def due_records(self, records: list[ServiceRecord], now: datetime) -> list[ServiceRecord]:
        return [r for r in records if self.is_due(r, now)]

    async def run_cycle(self) -> CycleReport:
        """Run one collecting-due-set → dispatching pass."""
        started_at = self._clock()
        start = time.monotonic()

        snapshot = self._directory.list_snapshot()
        due = self.due_records(snapshot, started_at)
        self._written = 0
        try:
            probed = await self.dispatch(due) if due else 0
        except asyncio.CancelledError:
            self.last_report = CycleReport(
                started_at=started_at,
                registered=len(snapshot),
                due=len(due),
                probed=self._written,
                duration_ms=round((time.monotonic() - start) * 1000, 1),
                cancelled=True,
            )
            logger.info(
                "Cycle cancelled: %d/%d due services written back", self._written, len(due)
            )
            raise

        report = CycleReport(
            started_at=started_at,
            registered=len(snapshot),
            due=len(due),
            probed=probed,
            duration_ms=round((time.monotonic() - start) * 1000, 1),
            cancelled=self._stopping.is_set() and probed < len(due),
        )
        self.last_report = report
        if probed:
            logger.info(
                "Cycle complete: %d/%d due, %d probed in %.1fms",
                report.due,
                report.registered,
                report.probed,
                report.duration_ms,
            )
        else:
            logger.debug("Cycle complete: nothing due (%d registered)", report.registered)
        return report

    async def dispatch(self, records: list[ServiceRecord]) -> int:
        """Probe *records* with the worker pool; return how many were written back."""
        queue: asyncio.Queue[ServiceRecord] = asyncio.Queue(maxsize=len(records))
        for record in records:
            if self._stopping.is_set():
                break
            queue.put_nowait(record)

        results = await asyncio.gather(
            *(self._worker(queue) for _ in range(self._settings.max_workers))
        )
        return sum(results)

    async def _worker(self, queue: asyncio.Queue[ServiceRecord]) -> int:
        done = 0
        while not self._stopping.is_set():
            try:
                record = queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            try:
                record.metrics = await self._prober.probe(record)
                self._directory.update(record)
                done += 1
                self._written += 1
            except Exception:
                logger.exception("Polling %s failed", record.id)
            finally:
                queue.task_done()
        return done

    async def run(self) -> None:
        """Run cycles until :meth:`stop` is called."""
        period = self._settings.cycle_period
        while not self._stopping.is_set():
            start = time.monotonic()
            await self.run_cycle()

            remaining = period - (time.monotonic() - start)
            if self._stopping.is_set():
                break
            if remaining > 0:
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(self._stopping.wait(), timeout=remaining)
            else:
                await asyncio.sleep(0)

    def start(self) -> asyncio.Task[None]:
        """Spawn the background cycle driver on the running event loop."""
        if self.running:
            assert self._task is not None
            return self._task
        self._stopping.clear()
        self._task = asyncio.create_task(self.run(), name="healthhub-poller")
        logger.info(
            "Poller started (cycle %.1fs, %d workers)",
            self._settings.cycle_period,
            self._settings.max_workers,
        )
        return self._task

    async def stop(self) -> None:
        """Signal the driver to stop, abort in-flight probes, and wait for it."""
        self._stopping.set()
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Poller stopped")
