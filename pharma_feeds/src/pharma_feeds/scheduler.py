"""
Scheduler module for periodic feed refreshes.

Uses APScheduler to run a full refresh cycle at startup and then every
``refresh_interval_minutes``.
"""

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .logging_conf import get_logger

logger = get_logger(__name__)

JOB_ID = "feed_refresh"


class FeedScheduler:
    """
    Scheduler for periodic refresh cycles.

    The job is registered with ``max_instances=1`` so a cycle that outlasts
    the interval makes APScheduler skip the overlapping run instead of
    starting a second one.
    """

    def __init__(
        self,
        refresh: Callable[[], Awaitable],
        interval_minutes: int = 30,
    ):
        """
        Initialize scheduler.

        Args:
            refresh: Coroutine function running one full refresh cycle
            interval_minutes: Minutes between cycles
        """
        self.refresh = refresh
        self.interval_minutes = interval_minutes
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    def _create_job(self) -> None:
        """Create the interval job; its first run fires immediately."""
        self.scheduler.add_job(
            self._run_job,
            IntervalTrigger(minutes=self.interval_minutes),
            id=JOB_ID,
            name="Feed Refresh",
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

        logger.info("job_scheduled", interval_minutes=self.interval_minutes)

    async def _run_job(self) -> None:
        """Execute a single refresh cycle."""
        logger.info("scheduled_refresh_starting")

        try:
            result = await self.refresh()
            logger.info(
                "scheduled_refresh_completed",
                succeeded=getattr(result, "succeeded", None),
                failed=getattr(result, "failed", None),
                skipped=getattr(result, "skipped", None),
            )
        except Exception as e:
            logger.error("scheduled_refresh_failed", error=str(e))

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the scheduler. Must be called with an event loop running."""
        if self._running:
            logger.warning("scheduler_already_running")
            return

        self.scheduler = AsyncIOScheduler()
        self._create_job()
        self.scheduler.start()
        self._running = True

        logger.info("scheduler_started")

    def stop(self) -> None:
        """Stop the scheduler."""
        if not self._running:
            return

        self.scheduler.shutdown(wait=False)
        self._running = False

        logger.info("scheduler_stopped")

    def get_next_run(self) -> Optional[datetime]:
        """Get the next scheduled run time."""
        if self.scheduler is None:
            return None
        job = self.scheduler.get_job(JOB_ID)
        if job:
            return job.next_run_time
        return None


async def run_scheduler(service) -> None:
    """
    Run periodic refreshes until cancelled or interrupted.

    This is typically called from the CLI when running as a worker process.
    """
    await service.start()

    try:
        while True:
            next_run = service.scheduler.get_next_run()
            if next_run:
                logger.info("scheduler_waiting", next_run=next_run.isoformat())
            await asyncio.sleep(service.scheduler.interval_minutes * 60)

    except (KeyboardInterrupt, SystemExit):
        logger.info("scheduler_shutting_down")
    finally:
        await service.stop()
