"""
Timers for the sync coordinator.

The coordinator only needs "run this once after N seconds" (debounce) and
"run this every N seconds" (poll). APSchedulerScheduler provides both on a
background thread; ManualScheduler runs them on virtual time so tests can
step the clock.
"""
import heapq
import itertools
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol

import pytz
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)


class Job(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, fn: Callable[[], None]) -> Job: ...

    def call_every(self, interval: float, fn: Callable[[], None]) -> Job: ...

    def shutdown(self) -> None: ...


class _APSJob:
    def __init__(self, job):
        self._job = job

    def cancel(self):
        try:
            self._job.remove()
        except JobLookupError:
            # one-shot job already ran
            pass


class APSchedulerScheduler:
    def __init__(self, scheduler: Optional[BackgroundScheduler] = None):
        self._scheduler = scheduler or BackgroundScheduler(timezone=pytz.utc)
        if not self._scheduler.running:
            self._scheduler.start()

    def call_later(self, delay, fn):
        run_date = datetime.now(pytz.utc) + timedelta(seconds=delay)
        return _APSJob(self._scheduler.add_job(fn, "date", run_date=run_date, misfire_grace_time=None))

    def call_every(self, interval, fn):
        return _APSJob(self._scheduler.add_job(
            fn, "interval", seconds=interval, max_instances=1, coalesce=True,
        ))

    def shutdown(self):
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)


class _ManualJob:
    def __init__(self, fn, interval=None):
        self.fn = fn
        self.interval = interval
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Virtual-time scheduler: nothing runs until advance() is called."""

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: list = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def _push(self, at, job):
        heapq.heappush(self._queue, (at, next(self._seq), job))

    def call_later(self, delay, fn):
        job = _ManualJob(fn)
        self._push(self._now + delay, job)
        return job

    def call_every(self, interval, fn):
        job = _ManualJob(fn, interval)
        self._push(self._now + interval, job)
        return job

    def pending(self) -> int:
        return sum(1 for _, _, job in self._queue if not job.cancelled)

    def advance(self, seconds: float):
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target:
            at, _, job = heapq.heappop(self._queue)
            if job.cancelled:
                continue
            self._now = at
            if job.interval is not None:
                self._push(at + job.interval, job)
            job.fn()
        self._now = target

    def shutdown(self):
        for _, _, job in self._queue:
            job.cancel()
        self._queue.clear()
