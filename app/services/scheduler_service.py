import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.database import SessionLocal
from app.services.user_service import user_service

logger = logging.getLogger(__name__)


class SchedulerService:
    """Service for background maintenance jobs."""

    def __init__(self):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._initialize_scheduler()

    def _initialize_scheduler(self):
        """Initialize the APScheduler instance."""
        jobstores = {
            'default': MemoryJobStore(),
        }
        executors = {
            'default': ThreadPoolExecutor(4),
        }
        job_defaults = {
            'coalesce': True,
            'max_instances': 1
        }

        self.scheduler = AsyncIOScheduler(
            jobstores=jobstores,
            executors=executors,
            job_defaults=job_defaults
        )
        logger.info("Scheduler service initialized")

    @property
    def running(self) -> bool:
        return bool(self.scheduler and self.scheduler.running)

    def start(self):
        """Start the scheduler."""
        if self.scheduler and not self.scheduler.running:
            self.scheduler.start()
            self._setup_recurring_jobs()
            logger.info("Scheduler service started")

    def shutdown(self):
        """Shutdown the scheduler."""
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler service stopped")

    def _setup_recurring_jobs(self):
        """Set up recurring maintenance jobs."""
        if settings.PRESENCE_SWEEP_ENABLED:
            self.scheduler.add_job(
                func=self.sweep_presence,
                trigger=IntervalTrigger(seconds=settings.PRESENCE_SWEEP_INTERVAL_SECONDS),
                id='presence_sweep',
                name='Presence Timeout Sweep',
                replace_existing=True
            )
            logger.info("Presence sweep job scheduled")

    def sweep_presence(self) -> int:
        """Mark users offline whose heartbeat has timed out."""
        db = SessionLocal()
        try:
            return user_service.sweep_stale_presence(db)
        except Exception as e:
            db.rollback()
            logger.error(f"Presence sweep failed: {e}")
            return 0
        finally:
            db.close()


# Global scheduler service instance
scheduler_service = SchedulerService()
