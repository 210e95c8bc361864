"""Background scheduler for periodic repository sync"""

import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.config import settings
from app.models.base import SessionLocal
from app.services.message_logger import MessageLogger
from app.services.repository_sync import RepositorySynchronizer
from app.services.tracker import TrackerStore

logger = logging.getLogger(__name__)

JOB_ID = "sync_repositories"


class RepositorySyncScheduler:
    """Fetches every tracked Git repository on a fixed interval.

    Push webhooks keep mirrors current on their own; this job only catches up
    on deliveries that never arrived.
    """

    def __init__(self, session_factory=SessionLocal):
        self.scheduler = BackgroundScheduler()
        self.session_factory = session_factory

    def start(self, interval_minutes: Optional[int] = None):
        """Start the scheduler"""
        interval = settings.repository_sync_interval_minutes if interval_minutes is None else interval_minutes
        self.scheduler.start()
        logger.info("Repository sync scheduler started")
        if interval > 0:
            self.schedule(interval)
        else:
            logger.info("Periodic repository sync disabled")

    def stop(self):
        """Stop the scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Repository sync scheduler stopped")

    def schedule(self, interval_minutes: int):
        """(Re)schedule the repository sync job"""
        self.scheduler.add_job(
            func=self.sync_all_repositories,
            trigger=IntervalTrigger(minutes=interval_minutes),
            id=JOB_ID,
            replace_existing=True,
        )
        logger.info(f"Scheduled repository sync every {interval_minutes} minutes")

    def sync_all_repositories(self):
        """Job function: update each project's repositories with its own session"""
        db = self.session_factory()
        try:
            store = TrackerStore(db)
            for project in store.projects_with_repositories():
                messages = MessageLogger(logger)
                try:
                    RepositorySynchronizer(db, store, messages).update_repositories(project)
                except Exception as e:
                    db.rollback()
                    logger.error(f"Scheduled repository sync failed for project {project.identifier}: {e}")
        finally:
            db.close()


# Global scheduler instance
scheduler = RepositorySyncScheduler()
