"""
Background scheduler for limit window housekeeping.
Handles:
- Purging limit windows whose calendar window has closed
"""

import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session

from scholarship_points import config
from scholarship_points.database import SessionLocal
from scholarship_points.services.date_service import utcnow
from scholarship_points.services.limit_service import LimitService

logger = logging.getLogger("scholarship_points.scheduler")

scheduler = BackgroundScheduler(timezone="UTC")


def purge_expired_limit_windows():
    """Delete closed limit windows so the table only holds live sums"""
    db: Session = SessionLocal()
    try:
        removed = LimitService(db).purge_expired(utcnow())
        logger.info(f"Limit window purge finished: {removed} removed")
    except Exception as e:
        logger.error(f"Error in purge_expired_limit_windows: {e}")
    finally:
        db.close()


def _purge_trigger() -> CronTrigger:
    """Cron trigger from LIMIT_PURGE_TIME (HH:MM, UTC)"""
    hour, minute = config.LIMIT_PURGE_TIME.split(":")
    return CronTrigger(hour=int(hour), minute=int(minute), timezone="UTC")


def start_scheduler():
    """Start the background scheduler"""
    if scheduler.running:
        return

    scheduler.add_job(
        purge_expired_limit_windows,
        _purge_trigger(),
        id="purge_limit_windows",
        name="Purge expired limit windows",
        replace_existing=True
    )

    scheduler.start()
    logger.info(f"Scheduler started - limit window purge daily at {config.LIMIT_PURGE_TIME} UTC")


def stop_scheduler():
    """Stop the background scheduler"""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
