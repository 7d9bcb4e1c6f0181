"""Task service: posting quests and moving them through their lifecycle.

Status changes are transactional so concurrent claims cannot both win. The
transition into COMPLETED is what the economy engine reacts to; this module
never touches balances or the completion feed entry itself.
"""

import logging
from datetime import datetime

from homequest.core.config import settings
from homequest.core.db_client import DocumentStore, Transaction, format_timestamp, new_id
from homequest.core.errors import (
    FailedPreconditionError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
)
from homequest.core.logging import span
from homequest.core.paths import task_path, tasks_collection, validate_id
from homequest.domain.create_models import TaskCreate, parse_request
from homequest.domain.feed import FeedType
from homequest.domain.task import Task, TaskStatus
from homequest.services import feed_service
from homequest.services.household_service import require_member
from homequest.services.user_service import get_user


logger = logging.getLogger(__name__)


async def _read_task(transaction: Transaction, path: str) -> Task:
    snapshot = await transaction.get(path)
    if not snapshot.exists:
        raise NotFoundError("Task not found.")
    return Task.from_document(snapshot.data)


async def create_task(
    *,
    store: DocumentStore,
    caller_id: str,
    household_id: str,
    title: str,
    xp_reward: int,
    coin_reward: int,
    description: str | None = None,
    deadline: datetime | None = None,
    is_recurring: bool = False,
    assigned_to: str | None = None,
) -> Task:
    """Post a new quest to the household and announce it in the feed.

    Raises:
        InvalidArgumentError: If title, description or rewards are out of bounds
        PermissionDeniedError: If the caller is not a member
    """
    with span("task_service.create_task"):
        request = parse_request(
            TaskCreate,
            title=title,
            description=description,
            xp_reward=xp_reward,
            coin_reward=coin_reward,
            deadline=deadline,
            is_recurring=is_recurring,
            assigned_to=assigned_to,
        )
        household = await require_member(store=store, household_id=household_id, caller_id=caller_id)
        if request.assigned_to is not None and request.assigned_to not in household.members:
            raise InvalidArgumentError("Assigned member does not belong to this household.")

        creator = await get_user(store=store, uid=caller_id)
        actor_name = feed_service.actor_name_or_default(creator.display_name)

        task = Task(
            task_id=new_id(),
            title=request.title,
            description=request.description,
            status=TaskStatus.OPEN,
            xp_reward=request.xp_reward,
            coin_reward=request.coin_reward,
            created_by=caller_id,
            assigned_to=request.assigned_to,
            deadline=format_timestamp(request.deadline) if request.deadline else None,
            is_recurring=request.is_recurring,
        )

        batch = store.batch()
        batch.create(task_path(household_id, task.task_id), task.to_creation_document())
        batch.create(
            *feed_service.build_feed_entry(
                household_id=household_id,
                entry_type=FeedType.TASK_CREATED,
                actor_id=caller_id,
                actor_name=actor_name,
                message=feed_service.task_created_message(actor_name, task.title),
                related_entity_id=task.task_id,
            )
        )
        await batch.commit()

        logger.info("Created task", extra={"household_id": household_id, "task_id": task.task_id})
        return await get_task(store=store, household_id=household_id, task_id=task.task_id)


async def get_task(*, store: DocumentStore, household_id: str, task_id: str) -> Task:
    snapshot = await store.get(task_path(validate_id(household_id, "Household id"), validate_id(task_id, "Task id")))
    if not snapshot.exists:
        raise NotFoundError("Task not found.")
    return Task.from_document(snapshot.data)


async def list_tasks(
    *,
    store: DocumentStore,
    caller_id: str,
    household_id: str,
    status: TaskStatus | None = None,
) -> list[Task]:
    """List household tasks, newest first, optionally filtered by status."""
    with span("task_service.list_tasks"):
        await require_member(store=store, household_id=household_id, caller_id=caller_id)
        filter_query = f'status = "{TaskStatus(status).value}"' if status else ""
        snapshots = await store.query(tasks_collection(household_id), filter_query=filter_query, sort="-createdAt")
        return [Task.from_document(snapshot.data) for snapshot in snapshots]


async def claim_task(*, store: DocumentStore, caller_id: str, household_id: str, task_id: str) -> Task:
    """Claim an open task for the caller.

    Raises:
        NotFoundError: If the task does not exist
        FailedPreconditionError: If the caller created it or it is no longer open
        PermissionDeniedError: If it is reserved for another member
    """
    with span("task_service.claim_task"):
        await require_member(store=store, household_id=household_id, caller_id=caller_id)
        path = task_path(household_id, validate_id(task_id, "Task id"))

        async def body(transaction: Transaction) -> Task:
            task = await _read_task(transaction, path)
            if task.created_by == caller_id:
                raise FailedPreconditionError("You cannot claim your own quest.")
            if task.status != TaskStatus.OPEN or task.claimed_by is not None:
                raise FailedPreconditionError("This quest has already been claimed.")
            if task.assigned_to not in (None, caller_id):
                raise PermissionDeniedError("This quest is assigned to another member.")

            transaction.update(path, {"status": TaskStatus.CLAIMED.value, "claimedBy": caller_id})
            return task.model_copy(update={"status": TaskStatus.CLAIMED, "claimed_by": caller_id})

        task = await store.run_transaction(body)
        logger.info("Claimed task", extra={"household_id": household_id, "task_id": task_id, "caller_id": caller_id})
        return task


async def submit_proof(
    *,
    store: DocumentStore,
    caller_id: str,
    household_id: str,
    task_id: str,
    proof_image_url: str,
    require_review: bool | None = None,
) -> Task:
    """Attach proof of completion and advance the task.

    An open task can be finished directly by anyone except its creator (the
    caller becomes the claimer); a claimed task only by its claimer. Without
    peer review the task moves straight to COMPLETED, otherwise it waits in
    PENDING_VERIFICATION for approve_task.

    Args:
        require_review: Overrides the configured proof review policy
    """
    with span("task_service.submit_proof"):
        if not proof_image_url or not proof_image_url.strip():
            raise InvalidArgumentError("A proof photo is required to complete a quest.")
        await require_member(store=store, household_id=household_id, caller_id=caller_id)
        path = task_path(household_id, validate_id(task_id, "Task id"))
        review = settings.require_proof_review if require_review is None else require_review
        next_status = TaskStatus.PENDING_VERIFICATION if review else TaskStatus.COMPLETED

        async def body(transaction: Transaction) -> Task:
            task = await _read_task(transaction, path)
            if task.status == TaskStatus.OPEN:
                if task.created_by == caller_id:
                    raise FailedPreconditionError("You cannot complete your own quest.")
                if task.assigned_to not in (None, caller_id):
                    raise PermissionDeniedError("This quest is assigned to another member.")
            elif task.status == TaskStatus.CLAIMED:
                if task.claimed_by != caller_id:
                    raise PermissionDeniedError("Only the member who claimed this quest can submit proof.")
            else:
                raise FailedPreconditionError("This quest is no longer accepting proof.")

            transaction.update(
                path,
                {"status": next_status.value, "claimedBy": caller_id, "proofImageUrl": proof_image_url.strip()},
            )
            return task.model_copy(
                update={"status": next_status, "claimed_by": caller_id, "proof_image_url": proof_image_url.strip()}
            )

        task = await store.run_transaction(body)
        logger.info(
            "Proof submitted",
            extra={"household_id": household_id, "task_id": task_id, "caller_id": caller_id, "status": next_status},
        )
        return task


async def approve_task(*, store: DocumentStore, caller_id: str, household_id: str, task_id: str) -> Task:
    """Approve a task waiting for verification; the claimer cannot approve their own work."""
    with span("task_service.approve_task"):
        await require_member(store=store, household_id=household_id, caller_id=caller_id)
        path = task_path(household_id, validate_id(task_id, "Task id"))

        async def body(transaction: Transaction) -> Task:
            task = await _read_task(transaction, path)
            if task.status != TaskStatus.PENDING_VERIFICATION:
                raise FailedPreconditionError("This quest is not waiting for approval.")
            if task.claimed_by == caller_id:
                raise PermissionDeniedError("You cannot approve your own quest.")

            transaction.update(path, {"status": TaskStatus.COMPLETED.value})
            return task.model_copy(update={"status": TaskStatus.COMPLETED})

        task = await store.run_transaction(body)
        logger.info("Approved task", extra={"household_id": household_id, "task_id": task_id, "caller_id": caller_id})
        return task
