"""
Scheduled background jobs.

Jobs:
  1. expire_subscriptions
     Moves lapsed trials and paid windows to ``expired``.
     Runs every ``EXPIRY_SWEEP_MINUTES`` (default hourly).
"""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from core.config import get_settings
from services.subscription import run_expiry_sweep

logger = logging.getLogger("BackgroundJobs")

_scheduler: Optional[AsyncIOScheduler] = None


async def expire_subscriptions(db: AsyncIOMotorDatabase) -> None:
    try:
        await run_expiry_sweep(db)
    except PyMongoError as e:
        # The next tick retries; a failed sweep only delays expiry.
        logger.error(f"Expiry sweep failed: {e}")


def start_scheduler(db: AsyncIOMotorDatabase) -> AsyncIOScheduler:
    """Start the scheduler from the FastAPI lifespan."""
    global _scheduler
    settings = get_settings()

    _scheduler = AsyncIOScheduler(timezone="UTC")
    _scheduler.add_job(
        expire_subscriptions,
        trigger=IntervalTrigger(minutes=settings.expiry_sweep_minutes, timezone="UTC"),
        args=[db],
        id="expire_subscriptions",
        name="Expire trials and subscriptions",
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=300,
    )
    _scheduler.start()
    logger.info(f"Background scheduler started, expiry sweep every {settings.expiry_sweep_minutes} minutes")
    return _scheduler


def shutdown_scheduler() -> None:
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
    _scheduler = None
