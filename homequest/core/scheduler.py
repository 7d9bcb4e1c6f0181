"""Scheduler for maintenance jobs (feed retention)."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from homequest.core.config import settings
from homequest.core.db_client import DocumentStore
from homequest.core.scheduler_tracker import retry_job_with_backoff
from homequest.services import feed_service


logger = logging.getLogger(__name__)

FEED_PRUNE_JOB = "feed_prune"
SCHEDULED_JOB_NAMES = (FEED_PRUNE_JOB,)

# Global scheduler instance
scheduler = AsyncIOScheduler(timezone="UTC")


async def prune_feeds(store: DocumentStore) -> None:
    """Run the daily feed retention sweep over every household."""
    summaries = await feed_service.prune_all_feeds(store=store)
    failed = [summary.household_id for summary in summaries if summary.error]
    if failed:
        logger.warning("Feed prune skipped households", extra={"household_ids": failed})


async def run_feed_prune_job(store: DocumentStore) -> None:
    await retry_job_with_backoff(lambda: prune_feeds(store), FEED_PRUNE_JOB)


def start_scheduler(store: DocumentStore) -> None:
    """Start the scheduler and register all jobs.

    This should be called during FastAPI app startup.
    """
    logger.info("Starting scheduler")

    scheduler.add_job(
        run_feed_prune_job,
        trigger=CronTrigger(hour=settings.feed_prune_hour, minute=settings.feed_prune_minute, timezone="UTC"),
        args=[store],
        id=FEED_PRUNE_JOB,
        name="Prune Household Activity Feeds",
        replace_existing=True,
    )
    logger.info(
        "Scheduled feed prune job: daily at %02d:%02d UTC",
        settings.feed_prune_hour,
        settings.feed_prune_minute,
    )

    scheduler.start()
    logger.info("Scheduler started successfully")


def stop_scheduler() -> None:
    """Stop the scheduler.

    This should be called during FastAPI app shutdown.
    """
    logger.info("Stopping scheduler")
    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")
