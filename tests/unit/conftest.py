"""Pytest configuration and fixtures for unit tests."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import pytest

from homequest.core.db_client import DocumentStore, new_id
from homequest.core.paths import coupon_path, task_path, user_path
from homequest.domain.coupon import Coupon
from homequest.domain.task import Task, TaskStatus
from homequest.services import household_service
from homequest.services.economy_service import register_economy_triggers
from tests.unit.mocks import FakePushSender


@dataclass(frozen=True)
class SeededHousehold:
    """Household with three members: alice (creator), bob and carol."""

    household_id: str
    invite_code: str
    alice: str = "alice"
    bob: str = "bob"
    carol: str = "carol"


@pytest.fixture
async def household(store: DocumentStore) -> SeededHousehold:
    created = await household_service.create_household(
        store=store,
        caller_id="alice",
        display_name="Alice",
        household_name="Maple House",
    )
    for uid, name in (("bob", "Bob"), ("carol", "Carol")):
        await household_service.join_household(
            store=store,
            caller_id=uid,
            display_name=name,
            invite_code=created.invite_code,
        )
    return SeededHousehold(household_id=created.household_id, invite_code=created.invite_code)


@pytest.fixture
def fake_sender() -> FakePushSender:
    return FakePushSender()


@pytest.fixture
def economy(store: DocumentStore, fake_sender: FakePushSender) -> FakePushSender:
    """Wire the economy engine to the store; returns the recording push sender."""
    register_economy_triggers(store, sender=fake_sender)
    return fake_sender


@pytest.fixture
def set_user_fields(store: DocumentStore) -> Callable[..., Awaitable[None]]:
    """Write user fields directly, bypassing the client-facing protections."""

    async def _set(uid: str, **fields: Any) -> None:
        await store.update(user_path(uid), fields)

    return _set


@pytest.fixture
def make_task(store: DocumentStore, household: SeededHousehold) -> Callable[..., Awaitable[str]]:
    """Insert a task document directly and return its id."""

    async def _make(**overrides: Any) -> str:
        task_id = new_id()
        fields: dict[str, Any] = {
            "task_id": task_id,
            "title": "Wash dishes",
            "status": TaskStatus.OPEN,
            "xp_reward": 100,
            "coin_reward": 20,
            "created_by": household.alice,
        }
        fields.update(overrides)
        task = Task(**fields)
        await store.create(task_path(household.household_id, task_id), task.to_creation_document())
        return task_id

    return _make


@pytest.fixture
def make_coupon(store: DocumentStore, household: SeededHousehold) -> Callable[..., Awaitable[str]]:
    """Insert a coupon document directly and return its id."""

    async def _make(**overrides: Any) -> str:
        coupon_id = new_id()
        fields: dict[str, Any] = {
            "coupon_id": coupon_id,
            "title": "Breakfast in bed",
            "cost": 50,
            "seller_id": household.alice,
        }
        fields.update(overrides)
        coupon = Coupon(**fields)
        await store.create(coupon_path(household.household_id, coupon_id), coupon.to_creation_document())
        return coupon_id

    return _make
