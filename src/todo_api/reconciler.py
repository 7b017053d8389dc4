"""
Due-date reconciler.

A timer-driven background job that:
- fetches every todo,
- marks overdue, incomplete ones as completed,
- keeps going when a single save fails.

Runs once per interval, aligned to interval boundaries counted from local
midnight (top of every hour with the default interval). It is started and
stopped by the application lifespan; nothing here is global. Stopping waits
for a pass already running in the worker thread, so no store writes happen
after stop() returns.

Known hazard: the whole fetched record is re-saved, so a request-path update
that lands between the scan and the save can be overwritten (last write wins).
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from .errors import StoreError
from .service import TodoService

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 3600


def seconds_until_next_run(now: datetime, interval_seconds: int = DEFAULT_INTERVAL_SECONDS) -> float:
    """
    Seconds from `now` to the next interval boundary since local midnight.

    A moment exactly on a boundary waits a full interval.
    """
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    elapsed = (now - midnight).total_seconds()
    slots = int(elapsed // interval_seconds) + 1
    next_run = midnight + timedelta(seconds=slots * interval_seconds)
    return (next_run - now).total_seconds()


# PUBLIC_INTERFACE
class DueDateReconciler:
    """Auto-completes todos whose due date has passed."""

    def __init__(
        self,
        service: TodoService,
        *,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._service = service
        self._interval = interval_seconds
        self._clock = clock or datetime.now
        self._task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Future] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def reconcile(self) -> int:
        """
        Run one pass and return how many todos were completed.

        "Now" is read per todo, at the moment it is examined.
        """
        try:
            todos = self._service.list_all()
        except StoreError:
            logger.exception("Reconciler could not fetch tasks; skipping this run")
            return 0

        completed = 0
        for todo in todos:
            due = todo["due_date"]
            if due is None or todo["completed"]:
                continue
            if due > self._clock():
                continue

            todo["completed"] = True
            try:
                self._service.save(todo)
            except StoreError:
                logger.exception("Reconciler failed to complete task %s", todo["id"])
                continue
            completed += 1
            logger.info("Task %s marked as completed", todo["id"])

        logger.debug("Reconciler pass done: scanned=%d completed=%d", len(todos), completed)
        return completed

    async def run_forever(self) -> None:
        """
        Sleep until the next boundary, reconcile in a worker thread, repeat.

        To stop the loop, cancel the coroutine/task.
        """
        while True:
            delay = seconds_until_next_run(self._clock(), self._interval)
            logger.debug("Next reconciliation in %.1fs", delay)
            await asyncio.sleep(delay)
            # Shielded so stop() can await the pass instead of orphaning the thread.
            self._inflight = asyncio.ensure_future(asyncio.to_thread(self.reconcile))
            try:
                await asyncio.shield(self._inflight)
            except Exception:
                logger.exception("Reconciler run crashed")

    def start(self) -> None:
        """Schedule run_forever() on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self.run_forever(), name="due-date-reconciler")
        logger.info("Due-date reconciler started (interval=%ss)", self._interval)

    async def stop(self) -> None:
        """Cancel the loop, then wait for any in-flight pass to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        inflight, self._inflight = self._inflight, None
        if inflight is not None and not inflight.done():
            logger.info("Waiting for in-flight reconciliation to finish")
            try:
                await inflight
            except Exception:
                logger.exception("Reconciler run crashed")
        logger.info("Due-date reconciler stopped")
