"""Activity feed: entry construction, listing and retention pruning."""

import logging
from datetime import datetime, timedelta
from typing import Any

from homequest.core.config import constants, settings
from homequest.core.db_client import DocumentStore, format_timestamp, new_id, utc_now
from homequest.core.logging import span
from homequest.core.paths import feed_collection, feed_entry_path
from homequest.domain.feed import FeedEntry, FeedType
from homequest.models.service_models import PruneSummary


logger = logging.getLogger(__name__)

DEFAULT_ACTOR_NAME = "A member"


def actor_name_or_default(display_name: str | None) -> str:
    return display_name or DEFAULT_ACTOR_NAME


def build_feed_entry(
    *,
    household_id: str,
    entry_type: FeedType,
    actor_id: str,
    actor_name: str,
    message: str,
    related_entity_id: str | None = None,
) -> tuple[str, dict[str, Any]]:
    """Build the path and creation document for a new feed entry.

    The timestamp is stamped by the store at commit, so the entry must be
    written in the same batch or transaction as the change it describes.
    """
    entry_id = new_id()
    entry = FeedEntry(
        entry_id=entry_id,
        type=entry_type.value,
        actor_id=actor_id,
        actor_name=actor_name,
        message=message,
        related_entity_id=related_entity_id,
    )
    return feed_entry_path(household_id, entry_id), entry.to_creation_document()


def task_created_message(actor_name: str, title: str) -> str:
    return f'{actor_name} created a new quest: "{title}" 📋'


def task_completed_message(actor_name: str, title: str, xp_reward: int) -> str:
    return f'{actor_name} completed "{title}" and earned +{xp_reward} XP! ✅'


def level_up_message(actor_name: str, level: int) -> str:
    return f"🆙 {actor_name} leveled up to Level {level}!"


def coupon_purchased_message(actor_name: str, title: str) -> str:
    return f'{actor_name} purchased "{title}" 🎟️'


def coupon_redeemed_message(actor_name: str, title: str) -> str:
    return f'{actor_name} used a reward: "{title}"! 🎁'


def member_joined_message(actor_name: str) -> str:
    return f"{actor_name} joined the household! 👋"


async def list_feed(
    *,
    store: DocumentStore,
    household_id: str,
    limit: int = constants.FEED_PAGE_SIZE,
) -> list[FeedEntry]:
    """Return the newest feed entries first."""
    with span("feed_service.list_feed"):
        snapshots = await store.query(feed_collection(household_id), sort="-timestamp", limit=limit)
        return [FeedEntry.from_document(snapshot.data) for snapshot in snapshots]


async def _delete_entry(store: DocumentStore, path: str, household_id: str) -> bool:
    try:
        await store.delete(path)
    except Exception as e:
        logger.warning(
            "Failed to delete feed entry, leaving it for the next run",
            extra={"household_id": household_id, "path": path, "error": str(e)},
        )
        return False
    return True


async def prune_household_feed(
    *,
    store: DocumentStore,
    household_id: str,
    now: datetime | None = None,
) -> PruneSummary:
    """Delete expired feed entries, then the oldest entries beyond the per-household cap.

    Args:
        store: Document store
        household_id: Household whose feed is swept
        now: Reference time for the retention window (defaults to current UTC time)

    Returns:
        PruneSummary with counts for both passes
    """
    with span("feed_service.prune_household_feed"):
        now = now or utc_now()
        cutoff = format_timestamp(now - timedelta(days=settings.feed_retention_days))
        collection = feed_collection(household_id)
        summary = PruneSummary(household_id=household_id)

        expired = await store.query(collection, filter_query=f'timestamp < "{cutoff}"')
        for snapshot in expired:
            if await _delete_entry(store, snapshot.path, household_id):
                summary.expired_deleted += 1
            else:
                summary.failed_deletes += 1

        overflow = await store.query(collection, sort="-timestamp", offset=settings.feed_max_entries)
        for snapshot in overflow:
            if await _delete_entry(store, snapshot.path, household_id):
                summary.overflow_deleted += 1
            else:
                summary.failed_deletes += 1

        logger.info(
            "Pruned household feed",
            extra={
                "household_id": household_id,
                "expired_deleted": summary.expired_deleted,
                "overflow_deleted": summary.overflow_deleted,
                "failed_deletes": summary.failed_deletes,
            },
        )
        return summary


async def prune_all_feeds(*, store: DocumentStore, now: datetime | None = None) -> list[PruneSummary]:
    """Sweep every household's feed; one household failing does not stop the others."""
    with span("feed_service.prune_all_feeds"):
        now = now or utc_now()
        households = await store.query(constants.HOUSEHOLDS_COLLECTION)
        summaries = []
        for household in households:
            try:
                summaries.append(await prune_household_feed(store=store, household_id=household.id, now=now))
            except Exception as e:
                logger.error("Feed prune failed for household", extra={"household_id": household.id, "error": str(e)})
                summaries.append(PruneSummary(household_id=household.id, error=str(e)))

        logger.info(
            "Feed prune finished",
            extra={"households": len(summaries), "deleted": sum(s.total_deleted for s in summaries)},
        )
        return summaries
