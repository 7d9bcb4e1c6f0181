"""Economy engine: awards XP and coins when a task becomes completed.

Runs as a change-stream handler on task documents. Delivery is at-least-once,
so the award itself is a store transaction guarded by the task's
`completedAt`: a redelivered event finds it set and commits nothing.
"""

import logging
from typing import Any

from homequest.core.change_stream import ChangeEvent
from homequest.core.db_client import DocumentStore, Transaction, new_id
from homequest.core.field_values import SERVER_TIMESTAMP, Increment
from homequest.core.logging import log_with_context, span
from homequest.core.paths import TASK_DOCUMENT_PATTERN, task_path, user_path
from homequest.domain.feed import FeedType
from homequest.domain.task import Task, TaskStatus
from homequest.domain.user import User
from homequest.interface.push_sender import PushSender
from homequest.models.service_models import AwardResult
from homequest.services import feed_service, notification_service
from homequest.services.level_service import compute_level


logger = logging.getLogger(__name__)


def is_completion_transition(before: dict[str, Any] | None, after: dict[str, Any] | None) -> bool:
    """True only on the edge into COMPLETED."""
    if after is None or after.get("status") != TaskStatus.COMPLETED:
        return False
    return (before or {}).get("status") != TaskStatus.COMPLETED


def recurring_clone_document(task_document: dict[str, Any], new_task_id: str) -> dict[str, Any]:
    """Copy a completed recurring task into a fresh open task."""
    return {
        **task_document,
        "taskId": new_task_id,
        "status": TaskStatus.OPEN.value,
        "claimedBy": None,
        "proofImageUrl": None,
        "completedAt": None,
        "createdAt": SERVER_TIMESTAMP,
    }


async def award_task_completion(
    *,
    store: DocumentStore,
    household_id: str,
    task_id: str,
) -> AwardResult | None:
    """Apply the rewards for one completed task exactly once.

    Returns:
        AwardResult when this call committed the award, None when there was
        nothing to do (already awarded, no claimer, or claimer missing)
    """
    path = task_path(household_id, task_id)
    skip_reason: str | None = None

    async def body(transaction: Transaction) -> AwardResult | None:
        nonlocal skip_reason
        skip_reason = None

        task_snapshot = await transaction.get(path)
        if not task_snapshot.exists:
            skip_reason = "task_missing"
            return None
        task = Task.from_document(task_snapshot.data)
        if task.status != TaskStatus.COMPLETED or task.completed_at is not None:
            skip_reason = "already_awarded"
            return None
        if not task.claimed_by:
            skip_reason = "no_claimer"
            return None

        user_snapshot = await transaction.get(user_path(task.claimed_by))
        if not user_snapshot.exists:
            skip_reason = "claimer_missing"
            return None
        user = User.from_document(user_snapshot.data)
        actor_name = feed_service.actor_name_or_default(user.display_name)

        new_level = compute_level(user.current_xp + task.xp_reward)
        leveled_up = new_level > user.level

        user_update: dict[str, Any] = {
            "currentXp": Increment(task.xp_reward),
            "coinBalance": Increment(task.coin_reward),
        }
        if leveled_up:
            user_update["level"] = new_level
        transaction.update(user_snapshot.path, user_update)
        transaction.update(path, {"completedAt": SERVER_TIMESTAMP})

        transaction.create(
            *feed_service.build_feed_entry(
                household_id=household_id,
                entry_type=FeedType.TASK_COMPLETED,
                actor_id=task.claimed_by,
                actor_name=actor_name,
                message=feed_service.task_completed_message(actor_name, task.title, task.xp_reward),
                related_entity_id=task_id,
            )
        )
        if leveled_up:
            transaction.create(
                *feed_service.build_feed_entry(
                    household_id=household_id,
                    entry_type=FeedType.LEVEL_UP,
                    actor_id=task.claimed_by,
                    actor_name=actor_name,
                    message=feed_service.level_up_message(actor_name, new_level),
                    related_entity_id=task.claimed_by,
                )
            )

        recurring_task_id = None
        if task.is_recurring:
            recurring_task_id = new_id()
            transaction.create(
                task_path(household_id, recurring_task_id),
                recurring_clone_document(task_snapshot.data or {}, recurring_task_id),
            )

        return AwardResult(
            household_id=household_id,
            task_id=task_id,
            claimer_id=task.claimed_by,
            claimer_name=actor_name,
            task_title=task.title,
            xp_awarded=task.xp_reward,
            coins_awarded=task.coin_reward,
            old_level=user.level,
            new_level=new_level if leveled_up else user.level,
            recurring_task_id=recurring_task_id,
        )

    with span("economy_service.award_task_completion"):
        result = await store.run_transaction(body)

    if result is None:
        context = {"household_id": household_id, "task_id": task_id, "reason": skip_reason}
        if skip_reason in ("no_claimer", "claimer_missing"):
            logger.error("Cannot award completed task", extra=context)
        else:
            logger.info("Skipped task award", extra=context)
    return result


async def handle_task_write(
    event: ChangeEvent,
    params: dict[str, str],
    *,
    store: DocumentStore,
    sender: PushSender | None = None,
) -> AwardResult | None:
    """React to one task write; only the transition into COMPLETED does anything."""
    if not is_completion_transition(event.before, event.after):
        return None

    household_id, task_id = params["household_id"], params["task_id"]
    if not (event.after or {}).get("claimedBy"):
        logger.error(
            "Task completed but has no claimedBy uid",
            extra={"household_id": household_id, "task_id": task_id},
        )
        return None

    result = await award_task_completion(store=store, household_id=household_id, task_id=task_id)
    if result is None:
        return None

    log_with_context(
        logger,
        "info",
        "Task completion awarded",
        household_id=household_id,
        task_id=task_id,
        claimer_id=result.claimer_id,
        xp=result.xp_awarded,
        coins=result.coins_awarded,
        level_up=result.leveled_up,
        recurring_task_id=result.recurring_task_id,
    )

    await notification_service.notify_task_completed(
        store=store,
        household_id=household_id,
        actor_id=result.claimer_id,
        actor_name=result.claimer_name,
        task_title=result.task_title,
        task_id=task_id,
        sender=sender,
    )
    return result


def register_economy_triggers(store: DocumentStore, *, sender: PushSender | None = None) -> None:
    """Subscribe the economy engine to task writes on the store's change stream."""

    async def on_task_written(event: ChangeEvent, params: dict[str, str]) -> None:
        await handle_task_write(event, params, store=store, sender=sender)

    store.changes.subscribe(TASK_DOCUMENT_PATTERN, on_task_written)
