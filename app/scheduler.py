"""Background scheduler for periodic sync"""

import logging
from typing import Any, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.config import settings
from app.models.base import SessionLocal
from app.schemas import SYNC_INTERVAL_KEY
from app.services.errors import NotConfigured, SyncInProgress
from app.services.issue_store import IssueStore
from app.services.sync_service import SyncService

logger = logging.getLogger(__name__)

JOB_ID = "sync_issues"


def _coerce_interval(value: Any) -> Optional[int]:
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        return None
    return minutes if minutes >= 1 else None


class SyncScheduler:
    """Scheduler for periodic issue synchronization"""

    def __init__(self, session_factory=SessionLocal):
        self.scheduler = BackgroundScheduler()
        self.session_factory = session_factory
        self.interval_minutes: Optional[int] = None

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self):
        """Start the scheduler"""
        self.scheduler.start()
        logger.info("Sync scheduler started")

        self.schedule_from_config()

    def stop(self):
        """Stop the scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Sync scheduler stopped")

    def schedule_from_config(self):
        """Schedule the sync job at the saved interval (or the default)"""
        db = self.session_factory()
        try:
            saved = IssueStore(db).get_config_value(SYNC_INTERVAL_KEY)
        finally:
            db.close()

        interval = _coerce_interval(saved)
        if saved is not None and interval is None:
            logger.warning(f"Ignoring invalid saved sync interval {saved!r}")
        self.schedule(interval or settings.default_sync_interval_minutes)

    def schedule(self, interval_minutes: int):
        """(Re)schedule the sync job"""
        existing = self.scheduler.get_job(JOB_ID)
        if existing is not None:
            self.scheduler.remove_job(JOB_ID)

        self.scheduler.add_job(
            func=self._sync_job,
            trigger=IntervalTrigger(minutes=interval_minutes),
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.interval_minutes = interval_minutes
        logger.info(f"Scheduled Jira sync every {interval_minutes} minutes")

    def _sync_job(self):
        """Job function to run one sync pass"""
        db = self.session_factory()
        try:
            logger.info("Running scheduled sync")
            result = SyncService(IssueStore(db)).run_sync()
            logger.info(f"Scheduled sync completed: {result.to_dict()}")
        except SyncInProgress:
            logger.info("Scheduled sync skipped: a sync is already running")
        except NotConfigured as e:
            logger.info(f"Scheduled sync skipped: {e}")
        except Exception as e:
            logger.error(f"Scheduled sync failed: {e}")
        finally:
            db.close()


# Global scheduler instance
scheduler = SyncScheduler()
