"""Background scheduler that pushes queued notifications."""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
import logging

from app.config import settings
from app.database import SessionLocal
from app.services.notification_service import NotificationDispatcher


# Configure logging
logger = logging.getLogger(__name__)


# Global scheduler instance
scheduler = AsyncIOScheduler()


def dispatch_pending_notifications() -> int:
    """
    Push notification rows that have not been delivered yet.

    Called by the scheduler every ``notification_dispatch_interval_seconds``.
    Runs in its own session so a delivery failure never touches a request
    transaction.

    Returns:
        Number of notifications delivered in this run
    """
    logger.info("Starting notification dispatch...")

    db = SessionLocal()
    try:
        dispatcher = NotificationDispatcher(db)
        sent_count = dispatcher.dispatch_pending()
        logger.info(f"Notification dispatch completed. Sent {sent_count}.")
        return sent_count

    except Exception as e:
        db.rollback()
        logger.error(f"Error during notification dispatch: {str(e)}", exc_info=True)
        return 0
    finally:
        db.close()


def start_scheduler():
    """
    Start the notification scheduler.

    Does nothing unless ``notification_dispatch_enabled`` is set.
    """
    if not settings.notification_dispatch_enabled:
        logger.info("Notification dispatch disabled; scheduler not started")
        return

    interval = settings.notification_dispatch_interval_seconds
    scheduler.add_job(
        dispatch_pending_notifications,
        trigger=IntervalTrigger(seconds=interval),
        id='notification_dispatch',
        name='Notification Dispatch',
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    logger.info(f"Notification scheduler configured to run every {interval} seconds")

    scheduler.start()
    logger.info("Notification scheduler started")


def stop_scheduler():
    """Stop the notification scheduler if it is running."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Notification scheduler stopped")
    else:
        logger.info("Notification scheduler was not running")
