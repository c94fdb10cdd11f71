# src/reminder_bot/tasks/task_scheduler.py

from __future__ import annotations

"""
Reminder scheduler.

A small polling loop that, on a fixed cadence:
- truncates "now" to the minute,
- fetches every reminder due at or before that minute,
- sends each one via an injected dispatcher port,
- deletes a reminder only after its delivery was acknowledged.

A failed delivery leaves the reminder in place, so the next scan retries it.
There is no backoff and no retry limit.

Delivery is exactly-once in normal operation. If the process dies between a
successful send and the delete, the reminder is sent again after restart
(at-least-once under crash).
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import datetime

from ..core.ports import TaskDispatcher, TaskRepo
from .task_errors import DispatchError, StoreError
from .task_models import DispatchResult, ScanReport, Task
from .task_parser import truncate_to_minute

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class TaskScheduler:
    """
    Owns the recurring scan.

    Lifecycle:
    - start(): schedule run() on the running event loop
    - stop(): ask the loop to exit and wait for the in-flight scan to finish

    Scans never overlap: run() awaits each scan before sleeping, and
    scan_once() is guarded by a lock for callers that trigger it directly.
    """

    def __init__(
            self,
            repo: TaskRepo,
            dispatcher: TaskDispatcher,
            *,
            interval_seconds: float = 30.0,
            dispatch_timeout_seconds: float | None = None,
            batch_limit: int | None = None,
            clock: Clock = datetime.now,
    ) -> None:
        self._repo = repo
        self._dispatcher = dispatcher
        self._interval = max(0.01, float(interval_seconds))
        self._dispatch_timeout = (
            float(dispatch_timeout_seconds) if dispatch_timeout_seconds and dispatch_timeout_seconds > 0 else None
        )
        self._batch_limit = batch_limit if batch_limit and batch_limit > 0 else None
        self._clock = clock

        self._scan_lock = asyncio.Lock()
        self._stop_event: asyncio.Event | None = None
        self._runner: asyncio.Task[None] | None = None

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    # ---- lifecycle ----

    def start(self) -> asyncio.Task[None]:
        """Start the scan loop on the current event loop (must be called from a coroutine)."""
        if self.running:
            assert self._runner is not None
            return self._runner
        self._stop_event = asyncio.Event()
        self._runner = asyncio.create_task(self.run(), name="reminder-scheduler")
        logger.info("Scheduler started (interval=%.1fs).", self._interval)
        return self._runner

    def request_stop(self) -> None:
        """Ask run() to exit after the current scan (must run on the scheduler's loop)."""
        if self._stop_event is not None:
            self._stop_event.set()

    async def stop(self) -> None:
        runner = self._runner
        if runner is None:
            return
        self.request_stop()
        try:
            await runner
        except asyncio.CancelledError:
            pass
        finally:
            self._runner = None
        logger.info("Scheduler stopped.")

    async def run(self) -> None:
        """
        Fixed-rate loop: one scan every interval_seconds.

        If a scan takes longer than the interval, the next one starts right
        after it instead of overlapping. Exits when stop() is called or the
        task is cancelled.
        """
        if self._stop_event is None:
            self._stop_event = asyncio.Event()
        stop_event = self._stop_event
        loop = asyncio.get_running_loop()

        while not stop_event.is_set():
            started = loop.time()

            try:
                await self.scan_once()
            except Exception:
                # scan_once handles its own errors; this only guards the loop.
                logger.exception("Scan cycle crashed")

            delay = max(0.0, self._interval - (loop.time() - started))
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=delay)

    # ---- scan ----

    async def scan_once(self, now: datetime | None = None) -> ScanReport:
        """
        One scan cycle: query due reminders, dispatch each, delete delivered ones.

        - a query failure aborts this cycle (the next one retries)
        - a dispatch failure keeps the reminder for the next cycle
        - a delete failure is logged (risk of a duplicate send) and the
          rest of the batch still runs
        """
        async with self._scan_lock:
            if now is None:
                now = self._clock()
            cutoff = truncate_to_minute(now)
            report = ScanReport(cutoff=cutoff)

            try:
                tasks = self._repo.find_due(cutoff, limit=self._batch_limit)
            except StoreError:
                logger.exception("find_due failed cutoff=%s; skipping this cycle", cutoff)
                report.query_failed = True
                return report

            if not tasks:
                return report

            logger.debug("Scan cutoff=%s due=%d", cutoff, len(tasks))

            for task in tasks:
                delivered = await self._dispatch(task)
                if not delivered:
                    report.failed.append(task.id)
                    continue

                try:
                    self._repo.delete(task.id)
                except Exception:
                    # StoreError or anything else: the rest of the batch still runs.
                    logger.exception(
                        "delete failed after delivery task_id=%s; it may be sent again", task.id
                    )
                    report.delete_failed.append(task.id)
                    continue

                report.delivered.append(task.id)
                logger.info("Reminder %s delivered to %s", task.id, task.destination)

            if report.failed or report.delete_failed:
                logger.warning(
                    "Scan cutoff=%s delivered=%d failed=%d delete_failed=%d",
                    cutoff,
                    len(report.delivered),
                    len(report.failed),
                    len(report.delete_failed),
                )
            return report

    async def _dispatch(self, task: Task) -> bool:
        try:
            send = self._dispatcher.send_text(destination=task.destination, text=task.body)
            if self._dispatch_timeout is not None:
                result: DispatchResult = await asyncio.wait_for(send, timeout=self._dispatch_timeout)
            else:
                result = await send
        except asyncio.TimeoutError:
            logger.error(
                "Reminder %s not sent: destination=%s timed out (timeout=%ss)",
                task.id,
                task.destination,
                self._dispatch_timeout,
            )
            return False
        except Exception:
            logger.exception("Reminder %s not sent: destination=%s transport error", task.id, task.destination)
            return False

        if not result.ok:
            err = DispatchError(task.destination, result.error_code, result.description)
            logger.error("Reminder %s not sent: %s", task.id, err)
            return False

        return True
