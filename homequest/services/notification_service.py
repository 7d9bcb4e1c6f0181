"""Push notifications to household members about completed quests."""

import asyncio
import logging

from homequest.core.db_client import DocumentStore
from homequest.core.logging import span
from homequest.core.paths import household_path, user_path
from homequest.domain.household import Household
from homequest.domain.user import User
from homequest.interface.push_sender import PushSender, push_sender
from homequest.models.service_models import MulticastResult


logger = logging.getLogger(__name__)

TASK_COMPLETED_TITLE = "Quest Complete! 🎉"


async def _member_token(store: DocumentStore, uid: str) -> str:
    snapshot = await store.get(user_path(uid))
    return User.from_document(snapshot.data).fcm_token


async def collect_member_tokens(*, store: DocumentStore, household_id: str, exclude_uid: str) -> list[str]:
    """Push tokens of every household member except `exclude_uid`; members without a token are skipped."""
    snapshot = await store.get(household_path(household_id))
    if not snapshot.exists:
        return []
    household = Household.from_document(snapshot.data)
    recipients = [uid for uid in household.members if uid != exclude_uid]
    tokens = await asyncio.gather(*(_member_token(store, uid) for uid in recipients))
    return [token for token in tokens if token]


async def notify_task_completed(
    *,
    store: DocumentStore,
    household_id: str,
    actor_id: str,
    actor_name: str,
    task_title: str,
    task_id: str,
    sender: PushSender | None = None,
) -> MulticastResult | None:
    """Tell the rest of the household that a quest was completed.

    Best effort: failures are logged and never raised, since the award has
    already been committed.

    Returns:
        The provider result, or None when nothing was sent
    """
    with span("notification_service.notify_task_completed"):
        try:
            tokens = await collect_member_tokens(store=store, household_id=household_id, exclude_uid=actor_id)
            if not tokens:
                logger.info("No push recipients for completed task", extra={"household_id": household_id})
                return None

            result = await (sender or push_sender).send_multicast(
                tokens=tokens,
                title=TASK_COMPLETED_TITLE,
                body=f'{actor_name} just completed "{task_title}"',
                data={"householdId": household_id, "taskId": task_id},
            )
        except Exception as e:
            logger.warning(
                "Push notification failed (non-fatal)",
                extra={"household_id": household_id, "error": str(e)},
            )
            return None

        if not result.success:
            logger.warning(
                "Push provider rejected notification",
                extra={"household_id": household_id, "error": result.error},
            )
        elif result.invalid_tokens:
            logger.info(
                "Push provider reported stale tokens",
                extra={"household_id": household_id, "invalid_tokens": len(result.invalid_tokens)},
            )
        logger.info(
            "Push sent: %d success, %d failures",
            result.success_count,
            result.failure_count,
            extra={"household_id": household_id, "task_id": task_id},
        )
        return result
