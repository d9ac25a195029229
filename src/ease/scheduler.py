# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Scheduler - One shared clock that re-triggers scheduled jobs.

The clock starts with the first scheduled job and stops when the last one is
removed. Every second it asks which jobs are due and puts their names on a
queue; a dispatcher spawns one run per name without awaiting it, so a slow
job never delays the next tick.

Seconds missed because the event loop woke up late are evaluated on the next
wake, up to MAX_CATCH_UP, so an exact hh:mm:ss instant is not lost.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from ease.schedule import Schedule

logger = logging.getLogger(__name__)

Trigger = Callable[[str], Awaitable[Any]]
ScheduleLookup = Callable[[str], Optional[Schedule]]
Clock = Callable[[], datetime]

ONE_SECOND = timedelta(seconds=1)
MAX_CATCH_UP = timedelta(minutes=1)


class Scheduler:
    """Clock-driven trigger source for scheduled jobs.

    Args:
        trigger: Coroutine function called with a job name when it is due.
            It is expected to handle its own errors.
        lookup: Returns the current Schedule of a job name (None if the job
            can no longer be scheduled)
        clock: Returns "now"; defaults to local time
        interval: Seconds between wake-ups
    """

    def __init__(
        self,
        trigger: Trigger,
        lookup: ScheduleLookup,
        clock: Optional[Clock] = None,
        interval: float = 1.0,
    ):
        self._trigger = trigger
        self._lookup = lookup
        self._clock = clock or datetime.now
        self.interval = interval
        self._scheduled: Dict[str, None] = {}
        self._queue: Optional[asyncio.Queue] = None
        self._ticker: Optional[asyncio.Task] = None
        self._dispatcher: Optional[asyncio.Task] = None
        self._runs: Set[asyncio.Task] = set()
        self._stopped = asyncio.Event()
        self._stopped.set()

    @property
    def scheduled(self) -> List[str]:
        return list(self._scheduled)

    @property
    def running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    def add(self, job_name: str) -> bool:
        """Schedule a job, starting the clock if needed. Returns False if already scheduled."""
        if job_name in self._scheduled:
            return False
        self._scheduled[job_name] = None
        if not self.running:
            self.start()
        return True

    def remove(self, job_name: str) -> bool:
        """Unschedule a job, stopping the clock when nothing is left."""
        if job_name not in self._scheduled:
            return False
        del self._scheduled[job_name]
        if not self._scheduled:
            self.stop()
        return True

    def start(self) -> None:
        """Start the clock and dispatcher on the running event loop."""
        if self.running:
            return
        self._queue = asyncio.Queue()
        self._stopped.clear()
        self._ticker = asyncio.create_task(self._run_clock(), name="ease-clock")
        self._dispatcher = asyncio.create_task(self._dispatch(), name="ease-dispatcher")
        logger.debug("Scheduler clock started")

    def stop(self) -> None:
        """Stop ticking. Job runs already spawned keep going."""
        for task in (self._ticker, self._dispatcher):
            if task is not None:
                task.cancel()
        self._ticker = None
        self._dispatcher = None
        self._stopped.set()
        logger.debug("Scheduler clock stopped")

    def due(self, now: datetime) -> List[str]:
        """Names of scheduled jobs whose schedule matches `now`."""
        names = []
        for job_name in list(self._scheduled):
            schedule = self._lookup(job_name)
            if schedule is not None and schedule.matches(now):
                names.append(job_name)
        return names

    def tick(self, now: Optional[datetime] = None) -> List[str]:
        """Queue every job due at `now` (defaults to the clock). Returns their names."""
        if self._queue is None or not self.running:
            raise RuntimeError("Scheduler is not running")
        now = now or self._clock()
        names = self.due(now)
        for job_name in names:
            self._queue.put_nowait(job_name)
        return names

    async def join(self) -> None:
        """Wait until queued triggers are dispatched and spawned runs finish."""
        if self._queue is not None and self.running:
            await self._queue.join()
        while self._runs:
            await asyncio.gather(*list(self._runs), return_exceptions=True)

    async def wait_stopped(self) -> None:
        """Wait for the clock to stop, then for in-flight runs to finish."""
        await self._stopped.wait()
        await self.join()

    async def _run_clock(self) -> None:
        last = self._clock().replace(microsecond=0)
        while True:
            await asyncio.sleep(self.interval)
            now = self._clock().replace(microsecond=0)
            if now < last:
                # Wall clock moved backwards
                last = now - ONE_SECOND
            instant = max(last + ONE_SECOND, now - max(MAX_CATCH_UP, timedelta(seconds=self.interval)))
            while instant <= now:
                self.tick(instant)
                instant += ONE_SECOND
            last = max(last, now)

    async def _dispatch(self) -> None:
        while True:
            job_name = await self._queue.get()
            try:
                logger.info('Triggering scheduled job "%s"...', job_name)
                task = asyncio.create_task(self._trigger(job_name), name=f"ease-job-{job_name}")
                self._runs.add(task)
                task.add_done_callback(self._on_run_done)
            finally:
                self._queue.task_done()

    def _on_run_done(self, task: asyncio.Task) -> None:
        self._runs.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Scheduled run %s failed: %s", task.get_name(), error)
