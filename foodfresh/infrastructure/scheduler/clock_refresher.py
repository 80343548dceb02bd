"""
Session-scoped clock refresh job.

Runs a callback on a fixed interval via APScheduler, for as long as the
owning session is open.
"""

import asyncio
from typing import Callable, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from foodfresh.infrastructure.config import get_clock_refresh_seconds

logger = structlog.get_logger(__name__)

JOB_ID = "clock_refresh"


class ClockRefresher:
    """
    Manages the scheduler lifecycle for the periodic clock refresh.

    The callback runs on the event loop thread (it is wrapped in a
    coroutine so the AsyncIO executor does not hand it to a worker thread).
    """

    def __init__(
        self,
        callback: Callable[[], object],
        interval_seconds: Optional[float] = None,
    ) -> None:
        """
        Initialize refresher.

        Args:
            callback: Called on every tick
            interval_seconds: Tick interval (default FOODFRESH_CLOCK_REFRESH_SECONDS)
        """
        self._callback = callback
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None else get_clock_refresh_seconds()
        )
        self.scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    async def _tick(self) -> None:
        self._callback()

    def start(self) -> None:
        """
        Start ticking. Must be called with a running event loop.

        Calling start() twice is a no-op.
        """
        if self.running:
            logger.warning("Clock refresher already running")
            return

        self.scheduler = AsyncIOScheduler(
            event_loop=asyncio.get_running_loop(),
            job_defaults={
                "coalesce": True,  # Combine missed runs
                "max_instances": 1,  # One instance at a time
            },
        )
        self.scheduler.add_job(
            self._tick,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=JOB_ID,
            name="Session clock refresh",
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("Clock refresher started", interval_seconds=self.interval_seconds)

    def shutdown(self) -> None:
        """Stop ticking and drop the job. Safe to call repeatedly."""
        if self.scheduler is None:
            return

        if self.scheduler.running:
            self.scheduler.remove_all_jobs()
            self.scheduler.shutdown(wait=False)
            logger.info("Clock refresher stopped")
        self.scheduler = None

    def get_jobs(self) -> list[dict[str, str]]:
        """
        Get list of scheduled jobs.

        Returns:
            list[dict[str, str]]: List of job information
        """
        if self.scheduler is None:
            return []

        return [
            {
                "id": job.id,
                "name": job.name,
                "trigger": str(job.trigger),
            }
            for job in self.scheduler.get_jobs()
        ]

    async def trigger_now(self) -> None:
        """Run the callback immediately, outside the schedule."""
        await self._tick()
