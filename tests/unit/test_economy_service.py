"""Tests for the economy engine reacting to task completion."""

import asyncio

import pytest

from homequest.core.change_stream import ChangeEvent
from homequest.core.db_client import DocumentStore
from homequest.core.paths import task_path
from homequest.domain.feed import FeedType
from homequest.domain.task import TaskStatus
from homequest.services import economy_service, feed_service, task_service, user_service
from tests.unit.mocks import FakePushSender


PROOF_URL = "https://media.example/proofs/dishes.jpg"


async def _complete(store: DocumentStore, household, task_id: str, uid: str) -> None:
    await task_service.claim_task(store=store, caller_id=uid, household_id=household.household_id, task_id=task_id)
    await task_service.submit_proof(
        store=store,
        caller_id=uid,
        household_id=household.household_id,
        task_id=task_id,
        proof_image_url=PROOF_URL,
        require_review=False,
    )
    await store.changes.drain()


async def _feed_of_type(store: DocumentStore, household, entry_type: FeedType) -> list:
    entries = await feed_service.list_feed(store=store, household_id=household.household_id, limit=100)
    return [entry for entry in entries if entry.type == entry_type]


async def _completion_event(store: DocumentStore, household, task_id: str) -> ChangeEvent:
    path = task_path(household.household_id, task_id)
    snapshot = await store.get(path)
    return ChangeEvent(
        path=path,
        before={**snapshot.data, "status": TaskStatus.CLAIMED.value},
        after=snapshot.data,
        commit_time="2026-01-01T00:00:00.000000Z",
    )


@pytest.mark.unit
@pytest.mark.parametrize(
    ("before", "after", "expected"),
    [
        ({"status": "claimed"}, {"status": "completed"}, True),
        ({"status": "pending_verification"}, {"status": "completed"}, True),
        (None, {"status": "completed"}, True),
        ({}, {"status": "completed"}, True),
        ({"status": "completed"}, {"status": "completed"}, False),
        ({"status": "open"}, {"status": "claimed"}, False),
        ({"status": "claimed"}, None, False),
    ],
)
def test_is_completion_transition(before, after, expected) -> None:
    assert economy_service.is_completion_transition(before, after) is expected


class TestAward:
    """Rewards applied by the engine after a task completes."""

    @pytest.mark.unit
    async def test_completion_awards_xp_coins_and_single_feed_entry(
        self, store, household, economy, make_task
    ) -> None:
        task_id = await make_task(xp_reward=100, coin_reward=20)

        await _complete(store, household, task_id, household.bob)

        bob = await user_service.get_user(store=store, uid=household.bob)
        assert bob.current_xp == 100
        assert bob.coin_balance == 20
        assert bob.level == 1

        completed = await _feed_of_type(store, household, FeedType.TASK_COMPLETED)
        assert len(completed) == 1
        assert completed[0].actor_id == household.bob
        assert completed[0].actor_name == "Bob"
        assert completed[0].related_entity_id == task_id
        assert completed[0].message == 'Bob completed "Wash dishes" and earned +100 XP! ✅'
        assert await _feed_of_type(store, household, FeedType.LEVEL_UP) == []

        task = await task_service.get_task(store=store, household_id=household.household_id, task_id=task_id)
        assert task.status == TaskStatus.COMPLETED
        assert task.completed_at is not None

    @pytest.mark.unit
    async def test_level_up_writes_level_and_feed_entry(
        self, store, household, economy, make_task, set_user_fields
    ) -> None:
        await set_user_fields(household.bob, currentXp=1_950, level=4)
        task_id = await make_task(xp_reward=100, coin_reward=20)

        await _complete(store, household, task_id, household.bob)

        bob = await user_service.get_user(store=store, uid=household.bob)
        assert bob.current_xp == 2_050
        assert bob.level == 5

        level_ups = await _feed_of_type(store, household, FeedType.LEVEL_UP)
        assert len(level_ups) == 1
        assert level_ups[0].message == "🆙 Bob leveled up to Level 5!"
        assert level_ups[0].related_entity_id == household.bob

    @pytest.mark.unit
    async def test_level_not_written_without_level_up(
        self, store, household, economy, make_task, set_user_fields
    ) -> None:
        await set_user_fields(household.bob, currentXp=600, level=3)
        task_id = await make_task(xp_reward=100, coin_reward=20)

        await _complete(store, household, task_id, household.bob)

        bob = await user_service.get_user(store=store, uid=household.bob)
        assert bob.level == 3
        assert bob.current_xp == 700

    @pytest.mark.unit
    async def test_duplicate_delivery_does_not_double_award(self, store, household, make_task, set_user_fields) -> None:
        await set_user_fields(household.alice, fcmToken="token-alice")
        task_id = await make_task(status=TaskStatus.COMPLETED, claimed_by=household.bob)
        event = await _completion_event(store, household, task_id)
        params = {"household_id": household.household_id, "task_id": task_id}
        sender = FakePushSender()

        results = await asyncio.gather(
            economy_service.handle_task_write(event, params, store=store, sender=sender),
            economy_service.handle_task_write(event, params, store=store, sender=sender),
        )
        late = await economy_service.handle_task_write(event, params, store=store, sender=sender)

        assert sum(result is not None for result in results) == 1
        assert late is None
        bob = await user_service.get_user(store=store, uid=household.bob)
        assert bob.current_xp == 100
        assert bob.coin_balance == 20
        assert len(await _feed_of_type(store, household, FeedType.TASK_COMPLETED)) == 1
        assert len(sender.calls) == 1

    @pytest.mark.unit
    async def test_missing_claimer_is_a_no_op(self, store, household, make_task) -> None:
        task_id = await make_task(status=TaskStatus.COMPLETED)
        event = await _completion_event(store, household, task_id)

        result = await economy_service.handle_task_write(
            event,
            {"household_id": household.household_id, "task_id": task_id},
            store=store,
            sender=FakePushSender(),
        )

        assert result is None
        assert await _feed_of_type(store, household, FeedType.TASK_COMPLETED) == []

    @pytest.mark.unit
    async def test_missing_user_document_mutates_nothing(self, store, household, make_task) -> None:
        task_id = await make_task(status=TaskStatus.COMPLETED, claimed_by="ghost")
        event = await _completion_event(store, household, task_id)

        result = await economy_service.handle_task_write(
            event,
            {"household_id": household.household_id, "task_id": task_id},
            store=store,
            sender=FakePushSender(),
        )

        assert result is None
        task = await task_service.get_task(store=store, household_id=household.household_id, task_id=task_id)
        assert task.completed_at is None
        assert await _feed_of_type(store, household, FeedType.TASK_COMPLETED) == []

    @pytest.mark.unit
    async def test_recurring_task_is_regenerated(self, store, household, economy, make_task) -> None:
        task_id = await make_task(
            title="Take out trash",
            is_recurring=True,
            xp_reward=50,
            coin_reward=10,
            description="Bins go out on Monday",
        )

        await _complete(store, household, task_id, household.bob)

        tasks = await task_service.list_tasks(
            store=store, caller_id=household.alice, household_id=household.household_id
        )
        clones = [task for task in tasks if task.task_id != task_id]
        assert len(clones) == 1
        clone = clones[0]
        assert clone.status == TaskStatus.OPEN
        assert clone.title == "Take out trash"
        assert clone.description == "Bins go out on Monday"
        assert clone.xp_reward == 50
        assert clone.coin_reward == 10
        assert clone.created_by == household.alice
        assert clone.is_recurring is True
        assert clone.claimed_by is None
        assert clone.proof_image_url is None
        assert clone.completed_at is None
        assert clone.created_at is not None

        bob = await user_service.get_user(store=store, uid=household.bob)
        assert bob.current_xp == 50

    @pytest.mark.unit
    async def test_non_recurring_task_is_not_regenerated(self, store, household, economy, make_task) -> None:
        task_id = await make_task()

        await _complete(store, household, task_id, household.bob)

        tasks = await task_service.list_tasks(
            store=store, caller_id=household.alice, household_id=household.household_id
        )
        assert [task.task_id for task in tasks] == [task_id]


class TestCompletionNotification:
    """Best-effort push after the award commits."""

    @pytest.mark.unit
    async def test_notifies_other_members_with_tokens(
        self, store, household, economy, make_task, set_user_fields
    ) -> None:
        await set_user_fields(household.alice, fcmToken="token-alice")
        await set_user_fields(household.bob, fcmToken="token-bob")
        task_id = await make_task()

        await _complete(store, household, task_id, household.bob)

        assert len(economy.calls) == 1
        call = economy.calls[0]
        assert call["tokens"] == ["token-alice"]
        assert call["title"] == "Quest Complete! 🎉"
        assert call["body"] == 'Bob just completed "Wash dishes"'

    @pytest.mark.unit
    async def test_no_tokens_sends_nothing(self, store, household, economy, make_task) -> None:
        task_id = await make_task()

        await _complete(store, household, task_id, household.bob)

        assert economy.calls == []

    @pytest.mark.unit
    async def test_push_failure_does_not_undo_award(self, store, household, make_task, set_user_fields) -> None:
        await set_user_fields(household.alice, fcmToken="token-alice")
        task_id = await make_task(status=TaskStatus.COMPLETED, claimed_by=household.bob)
        event = await _completion_event(store, household, task_id)
        sender = FakePushSender(error=RuntimeError("provider down"))

        result = await economy_service.handle_task_write(
            event,
            {"household_id": household.household_id, "task_id": task_id},
            store=store,
            sender=sender,
        )

        assert result is not None
        assert len(sender.calls) == 1
        bob = await user_service.get_user(store=store, uid=household.bob)
        assert bob.current_xp == 100
