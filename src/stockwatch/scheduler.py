"""Repeating background jobs on top of APScheduler.

Each RepeatingJob is one APScheduler interval job plus an in-flight flag:
- a tick that fires while the previous tick of the same job is still awaiting
  the network is skipped, never run concurrently
- exceptions raised by the job body are logged and the job keeps its schedule
- stop() removes the job from the scheduler; a tick already in flight is
  allowed to finish
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from apscheduler.jobstores.base import JobLookupError

logger = logging.getLogger(__name__)


class RepeatingJob:
    """A named interval job with a non-overlap guard."""

    def __init__(
        self,
        name: str,
        func: Callable[[], Awaitable[object]],
        interval_seconds: float,
        scheduler=None,
    ) -> None:
        self.name = name
        self.interval_seconds = interval_seconds
        self.scheduler = scheduler
        self._func = func
        self._active = False
        self._in_flight = False
        self.last_run_at: datetime | None = None
        self.runs = 0
        self.skipped = 0
        self.failures = 0

    @property
    def active(self) -> bool:
        """True while the job is scheduled."""
        return self._active

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def start(self, run_now: bool = False) -> bool:
        """Schedule the job. Returns False if it was already scheduled."""
        if self._active:
            return False
        self._active = True
        if self.scheduler is not None:
            kwargs = {}
            if run_now:
                kwargs["next_run_time"] = datetime.now(timezone.utc)
            self.scheduler.add_job(
                self.fire,
                trigger="interval",
                seconds=self.interval_seconds,
                id=self.name,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                **kwargs,
            )
        logger.info("%s started (every %.0fs)", self.name, self.interval_seconds)
        return True

    def stop(self) -> bool:
        """Unschedule the job. Returns False if it was not scheduled."""
        if not self._active:
            return False
        self._active = False
        if self.scheduler is not None:
            try:
                self.scheduler.remove_job(self.name)
            except JobLookupError:
                pass  # already gone (scheduler shut down)
        logger.info("%s stopped", self.name)
        return True

    async def fire(self) -> bool:
        """Run one tick now, unless a tick is already running.

        Returns True if the body ran to completion without raising.
        """
        if self._in_flight:
            self.skipped += 1
            logger.debug("%s: previous tick still running, skipping", self.name)
            return False

        self._in_flight = True
        try:
            await self._func()
            return True
        except Exception:
            self.failures += 1
            logger.exception("%s tick failed", self.name)
            return False
        finally:
            self.runs += 1
            self.last_run_at = datetime.now(timezone.utc)
            self._in_flight = False
