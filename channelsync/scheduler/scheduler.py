"""APScheduler wrapper for managing cron-triggered sync jobs.

Provides a high-level interface for scheduling jobs with cron expressions
and managing the scheduler lifecycle. Jobs live in memory: the schedule
manager rebuilds them from the channel store on every startup.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.job import Job
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from ..config import SCHEDULER_MAX_WORKERS, SCHEDULER_TIMEZONE
from .errors import InvalidCronExpressionError

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Scheduler for cron-triggered sync jobs.

    Wraps a BackgroundScheduler whose thread pool executes trigger
    callbacks.
    """

    def __init__(
        self,
        timezone: str = SCHEDULER_TIMEZONE,
        max_workers: int = SCHEDULER_MAX_WORKERS,
    ) -> None:
        """Initialize the scheduler.

        Args:
            timezone: Timezone cron expressions are evaluated in
            max_workers: Threads available to fire triggers
        """
        self.timezone = timezone
        self.max_workers = max_workers
        self._scheduler: BackgroundScheduler | None = None
        self._started = False

    def _create_scheduler(self) -> BackgroundScheduler:
        """Create and configure the APScheduler instance."""
        jobstores = {"default": MemoryJobStore()}

        # Executors - thread pool for trigger callbacks
        executors = {
            "default": ThreadPoolExecutor(max_workers=self.max_workers),
        }

        # Job defaults
        job_defaults = {
            "coalesce": True,  # Combine missed runs into one
            "max_instances": 1,  # Only one instance per job
            "misfire_grace_time": 3600,  # 1 hour grace time for missed jobs
        }

        return BackgroundScheduler(
            jobstores=jobstores,
            executors=executors,
            job_defaults=job_defaults,
            timezone=self.timezone,
        )

    def start(self) -> None:
        """Start the scheduler."""
        if self._started:
            logger.warning("Scheduler already started")
            return

        self._scheduler = self._create_scheduler()
        self._scheduler.start()
        self._started = True
        logger.info("Scheduler started")

    def shutdown(self, wait: bool = True) -> None:
        """Shutdown the scheduler.

        Args:
            wait: Whether to wait for running trigger callbacks to complete
        """
        if self._scheduler and self._started:
            self._scheduler.shutdown(wait=wait)
            self._started = False
            logger.info("Scheduler shutdown")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._started and self._scheduler is not None

    def add_job(
        self,
        job_id: str,
        func: Callable[..., Any],
        cron_expression: str,
        args: tuple[Any, ...] | None = None,
        kwargs: dict[str, Any] | None = None,
    ) -> Job:
        """Add a cron-triggered job.

        Args:
            job_id: Unique identifier for the job
            func: Function to execute
            cron_expression: Cron schedule (e.g., "0 */6 * * *")
            args: Positional arguments for the function
            kwargs: Keyword arguments for the function

        Returns:
            The APScheduler job; ``job.remove()`` stops it
        """
        if not self._scheduler:
            raise RuntimeError("Scheduler not started")

        trigger = self.parse_cron(cron_expression)

        job = self._scheduler.add_job(
            func,
            trigger=trigger,
            id=job_id,
            args=args or (),
            kwargs=kwargs or {},
            replace_existing=False,
        )
        logger.info(f"Added scheduled job: {job_id} with schedule: {cron_expression}")
        return job

    def get_jobs(self) -> list[dict[str, Any]]:
        """Get all scheduled jobs.

        Returns:
            List of job details
        """
        if not self._scheduler:
            return []

        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat()
                if job.next_run_time
                else None,
                "trigger": str(job.trigger),
            }
            for job in self._scheduler.get_jobs()
        ]

    def parse_cron(self, cron_expression: str) -> CronTrigger:
        """Parse a cron expression into an APScheduler trigger.

        Args:
            cron_expression: Standard cron format (minute hour day month day_of_week)

        Returns:
            CronTrigger instance

        Raises:
            InvalidCronExpressionError: If the expression cannot be parsed
        """
        parts = cron_expression.strip().split()

        try:
            if len(parts) == 5:
                # Standard cron: minute hour day month day_of_week
                return CronTrigger(
                    minute=parts[0],
                    hour=parts[1],
                    day=parts[2],
                    month=parts[3],
                    day_of_week=parts[4],
                    timezone=self.timezone,
                )
            elif len(parts) == 6:
                # Extended cron with seconds
                return CronTrigger(
                    second=parts[0],
                    minute=parts[1],
                    hour=parts[2],
                    day=parts[3],
                    month=parts[4],
                    day_of_week=parts[5],
                    timezone=self.timezone,
                )
        except ValueError as e:
            raise InvalidCronExpressionError(
                f"Invalid cron expression: {cron_expression}. {e}"
            ) from e

        raise InvalidCronExpressionError(
            f"Invalid cron expression: {cron_expression}. "
            "Expected 5 or 6 space-separated fields."
        )
