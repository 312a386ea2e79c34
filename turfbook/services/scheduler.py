"""Background scheduler for maintenance jobs."""
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional
import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from turfbook.core.config import settings
from turfbook.core.database import AsyncSessionLocal
from turfbook.services.deduplicator import duplicate_cleaner
from turfbook.services.reconciler import payment_reconciler

logger = logging.getLogger(__name__)

RECONCILE_JOB = "reconcile_pending_payments"
CLEANUP_JOB = "cleanup_duplicate_bookings"


@dataclass
class JobState:
    is_running: bool = False
    started_at: Optional[datetime] = None
    last_result: Any = None
    last_error: Optional[str] = None


class MaintenanceScheduler:
    """
    Runs payment reconciliation and duplicate cleanup periodically.

    The same jobs are triggered on demand through the HTTP endpoints; both
    paths go through ``run_job`` so a job never overlaps with itself.
    """

    def __init__(self, session_factory=AsyncSessionLocal, reconciler=None, cleaner=None):
        """Initialize the scheduler."""
        self.session_factory = session_factory
        self.reconciler = reconciler or payment_reconciler
        self.cleaner = cleaner or duplicate_cleaner
        self.scheduler = AsyncIOScheduler()
        self.running = False
        self.jobs: Dict[str, Callable[[Any], Awaitable[Any]]] = {
            RECONCILE_JOB: self.reconciler.reconcile_pending,
            CLEANUP_JOB: self.cleaner.cleanup,
        }
        self.states: Dict[str, JobState] = {name: JobState() for name in self.jobs}

    async def start(self):
        """Start the scheduler."""
        if self.running:
            logger.warning("Scheduler is already running")
            return

        logger.info("Starting maintenance scheduler")

        self.scheduler.add_job(
            self.run_job,
            IntervalTrigger(seconds=settings.RECONCILE_INTERVAL_SECONDS),
            args=[RECONCILE_JOB],
            id=RECONCILE_JOB,
            name="Reconcile pending payments",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self.run_job,
            IntervalTrigger(seconds=settings.CLEANUP_INTERVAL_SECONDS),
            args=[CLEANUP_JOB],
            id=CLEANUP_JOB,
            name="Clean up duplicate bookings",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        self.scheduler.start()
        self.running = True
        logger.info("Maintenance scheduler started")

    async def stop(self):
        """Stop the scheduler."""
        if not self.running:
            return

        logger.info("Stopping maintenance scheduler")
        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("Maintenance scheduler stopped")

    def is_running(self, name: str) -> bool:
        return self.states[name].is_running

    async def run_job(self, name: str):
        """
        Run one maintenance job with a fresh session.

        Args:
            name: RECONCILE_JOB or CLEANUP_JOB

        Returns:
            The job's result, or None if the job is already running
        """
        state = self.states[name]
        if state.is_running:
            logger.info(f"Job {name} is already running, skipping")
            return None

        state.is_running = True
        state.started_at = datetime.now(pytz.UTC)
        started = time.monotonic()

        try:
            async with self.session_factory() as db:
                result = await self.jobs[name](db)
            state.last_result = result
            state.last_error = None
            return result
        except Exception as e:
            state.last_error = str(e)
            logger.error(f"Job {name} failed: {e}", exc_info=True)
            raise
        finally:
            elapsed = time.monotonic() - started
            if elapsed > settings.JOB_TIME_BUDGET_SECONDS:
                logger.warning(
                    f"Job {name} took {elapsed:.1f}s, over its {settings.JOB_TIME_BUDGET_SECONDS:.0f}s budget"
                )
            else:
                logger.debug(f"Job {name} finished in {elapsed:.2f}s")
            state.is_running = False


# Singleton instance
maintenance_scheduler = MaintenanceScheduler()


def get_scheduler() -> MaintenanceScheduler:
    """Dependency for getting the maintenance scheduler."""
    return maintenance_scheduler
