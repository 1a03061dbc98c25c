"""Background scheduler for purging the replay ledger."""

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from powgate.config import settings
from powgate.services.pow_service import PowService

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def purge_job(pow_service: PowService) -> None:
    """Drop consumed signatures whose challenges have expired."""
    try:
        purged = pow_service.purge_consumed()
        if purged:
            logger.info(f"Replay ledger: purged {purged} expired entries")
    except Exception as e:
        logger.error(f"Replay ledger purge failed: {e}")


def start_scheduler(pow_service: PowService) -> None:
    """Start the background scheduler."""
    scheduler.add_job(
        purge_job,
        trigger=IntervalTrigger(seconds=settings.replay_purge_interval_seconds),
        args=[pow_service],
        id="purge_replay_ledger",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started - replay purge runs every {settings.replay_purge_interval_seconds}s"
    )


def shutdown_scheduler() -> None:
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
