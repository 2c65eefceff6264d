"""APScheduler configuration and scheduled job definitions.

This module configures the AsyncIOScheduler from APScheduler 3.x and defines
the daily retention cleanup of the location log.

The job goes through the LocationStore, which opens its own sessions.
"""

from __future__ import annotations

import logging
from datetime import timezone
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

if TYPE_CHECKING:
    from livetrack.config.settings import Settings
    from livetrack.services.store.service import LocationStore

logger = logging.getLogger(__name__)

RETENTION_JOB_ID = "retention-cleanup"


async def retention_cleanup_job(store: "LocationStore", retention_days: int) -> int:
    """Delete location records older than the retention period.

    Args:
        store: LocationStore owning the location log.
        retention_days: Number of days of records to keep.

    Returns:
        Number of deleted records.
    """
    deleted = await store.cleanup(retention_days)
    logger.info("Completed retention cleanup job, %d records removed", deleted)
    return deleted


def create_scheduler(
    store: "LocationStore",
    settings: "Settings",
) -> AsyncIOScheduler:
    """Create and configure the APScheduler instance.

    Args:
        store: LocationStore used by the cleanup job.
        settings: Application settings for job configuration.

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    scheduler = AsyncIOScheduler(timezone=timezone.utc)

    if not settings.scheduler.enabled:
        logger.info("Scheduler disabled via settings")
        return scheduler

    # Daily cleanup at configured time (default: 03:00 UTC)
    scheduler.add_job(
        retention_cleanup_job,
        CronTrigger(
            hour=settings.scheduler.cleanup_hour,
            minute=settings.scheduler.cleanup_minute,
            timezone=timezone.utc,
        ),
        id=RETENTION_JOB_ID,
        name="Location history retention cleanup",
        args=[store, settings.analytics.retention_days],
        replace_existing=True,
    )
    logger.info(
        "Scheduled retention cleanup at %02d:%02d UTC (keeping %d days)",
        settings.scheduler.cleanup_hour,
        settings.scheduler.cleanup_minute,
        settings.analytics.retention_days,
    )

    return scheduler
