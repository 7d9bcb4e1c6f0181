"""HTTP request surface for household clients."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from homequest.core.config import constants
from homequest.core.db_client import DocumentStore
from homequest.domain.task import TaskStatus
from homequest.interface.auth import get_caller_id, get_optional_caller_id
from homequest.services import (
    coupon_service,
    feed_service,
    household_service,
    purchase_service,
    task_service,
    user_service,
)


router = APIRouter(tags=["homequest"])


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateHouseholdRequest(CamelModel):
    display_name: str = Field(..., alias="displayName")
    email: str = ""
    household_name: str = Field(..., alias="householdName")


class JoinHouseholdRequest(CamelModel):
    display_name: str = Field(..., alias="displayName")
    email: str = ""
    invite_code: str = Field(..., alias="inviteCode")


class PushTokenRequest(CamelModel):
    fcm_token: str = Field(..., alias="fcmToken")


class AvatarRequest(CamelModel):
    avatar_url: str = Field(..., alias="avatarUrl")


class CreateTaskRequest(CamelModel):
    title: str
    description: str | None = None
    xp_reward: int = Field(..., alias="xpReward")
    coin_reward: int = Field(..., alias="coinReward")
    deadline: datetime | None = None
    is_recurring: bool = Field(default=False, alias="isRecurring")
    assigned_to: str | None = Field(default=None, alias="assignedTo")


class ProofRequest(CamelModel):
    proof_image_url: str = Field(..., alias="proofImageUrl")


class CreateCouponRequest(CamelModel):
    title: str
    cost: int


class PurchaseRequest(CamelModel):
    household_id: str | None = Field(default=None, alias="householdId")
    coupon_id: str | None = Field(default=None, alias="couponId")


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


# Households and users


@router.post("/households")
async def create_household(
    payload: CreateHouseholdRequest,
    caller_id: str = Depends(get_caller_id),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    household = await household_service.create_household(
        store=store,
        caller_id=caller_id,
        display_name=payload.display_name,
        email=payload.email,
        household_name=payload.household_name,
    )
    return household.to_document()


@router.post("/households/join")
async def join_household(
    payload: JoinHouseholdRequest,
    caller_id: str = Depends(get_caller_id),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    household = await household_service.join_household(
        store=store,
        caller_id=caller_id,
        display_name=payload.display_name,
        email=payload.email,
        invite_code=payload.invite_code,
    )
    return household.to_document()


@router.get("/households/{household_id}")
async def get_household(
    household_id: str,
    caller_id: str = Depends(get_caller_id),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    household = await household_service.require_member(store=store, household_id=household_id, caller_id=caller_id)
    return household.to_document()


@router.get("/households/{household_id}/leaderboard")
async def get_leaderboard(
    household_id: str,
    caller_id: str = Depends(get_caller_id),
    store: DocumentStore = Depends(get_store),
) -> list[dict[str, Any]]:
    entries = await user_service.get_leaderboard(store=store, caller_id=caller_id, household_id=household_id)
    return [entry.model_dump() for entry in entries]


@router.get("/users/me")
async def get_me(caller_id: str = Depends(get_caller_id), store: DocumentStore = Depends(get_store)) -> dict[str, Any]:
    user = await user_service.get_user(store=store, uid=caller_id)
    return user.to_document()


@router.patch("/users/me")
async def update_me(
    updates: dict[str, Any] = Body(...),
    caller_id: str = Depends(get_caller_id),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    user = await user_service.update_profile(store=store, caller_id=caller_id, updates=updates)
    return user.to_document()


@router.put("/users/me/push-token")
async def update_push_token(
    payload: PushTokenRequest,
    caller_id: str = Depends(get_caller_id),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    user = await user_service.update_push_token(store=store, caller_id=caller_id, fcm_token=payload.fcm_token)
    return user.to_document()


@router.put("/users/me/avatar")
async def update_avatar(
    payload: AvatarRequest,
    caller_id: str = Depends(get_caller_id),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    user = await user_service.update_avatar(store=store, caller_id=caller_id, avatar_url=payload.avatar_url)
    return user.to_document()


# Tasks


@router.post("/households/{household_id}/tasks")
async def create_task(
    household_id: str,
    payload: CreateTaskRequest,
    caller_id: str = Depends(get_caller_id),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    task = await task_service.create_task(
        store=store,
        caller_id=caller_id,
        household_id=household_id,
        title=payload.title,
        description=payload.description,
        xp_reward=payload.xp_reward,
        coin_reward=payload.coin_reward,
        deadline=payload.deadline,
        is_recurring=payload.is_recurring,
        assigned_to=payload.assigned_to,
    )
    return task.to_document()


@router.get("/households/{household_id}/tasks")
async def list_tasks(
    household_id: str,
    status: TaskStatus | None = Query(default=None),
    caller_id: str = Depends(get_caller_id),
    store: DocumentStore = Depends(get_store),
) -> list[dict[str, Any]]:
    tasks = await task_service.list_tasks(store=store, caller_id=caller_id, household_id=household_id, status=status)
    return [task.to_document() for task in tasks]


@router.post("/households/{household_id}/tasks/{task_id}/claim")
async def claim_task(
    household_id: str,
    task_id: str,
    caller_id: str = Depends(get_caller_id),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    task = await task_service.claim_task(store=store, caller_id=caller_id, household_id=household_id, task_id=task_id)
    return task.to_document()


@router.post("/households/{household_id}/tasks/{task_id}/proof")
async def submit_proof(
    household_id: str,
    task_id: str,
    payload: ProofRequest,
    caller_id: str = Depends(get_caller_id),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    task = await task_service.submit_proof(
        store=store,
        caller_id=caller_id,
        household_id=household_id,
        task_id=task_id,
        proof_image_url=payload.proof_image_url,
    )
    return task.to_document()


@router.post("/households/{household_id}/tasks/{task_id}/approve")
async def approve_task(
    household_id: str,
    task_id: str,
    caller_id: str = Depends(get_caller_id),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    task = await task_service.approve_task(store=store, caller_id=caller_id, household_id=household_id, task_id=task_id)
    return task.to_document()


# Coupons


@router.post("/households/{household_id}/coupons")
async def create_coupon(
    household_id: str,
    payload: CreateCouponRequest,
    caller_id: str = Depends(get_caller_id),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    coupon = await coupon_service.create_coupon(
        store=store,
        caller_id=caller_id,
        household_id=household_id,
        title=payload.title,
        cost=payload.cost,
    )
    return coupon.to_document()


@router.get("/households/{household_id}/coupons/available")
async def list_available_coupons(
    household_id: str,
    caller_id: str = Depends(get_caller_id),
    store: DocumentStore = Depends(get_store),
) -> list[dict[str, Any]]:
    coupons = await coupon_service.list_available_coupons(store=store, caller_id=caller_id, household_id=household_id)
    return [coupon.to_document() for coupon in coupons]


@router.get("/households/{household_id}/coupons/owned")
async def list_owned_coupons(
    household_id: str,
    caller_id: str = Depends(get_caller_id),
    store: DocumentStore = Depends(get_store),
) -> list[dict[str, Any]]:
    coupons = await coupon_service.list_owned_coupons(store=store, caller_id=caller_id, household_id=household_id)
    return [coupon.to_document() for coupon in coupons]


@router.post("/households/{household_id}/coupons/{coupon_id}/redeem")
async def redeem_coupon(
    household_id: str,
    coupon_id: str,
    caller_id: str = Depends(get_caller_id),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    coupon = await coupon_service.redeem_coupon(
        store=store,
        caller_id=caller_id,
        household_id=household_id,
        coupon_id=coupon_id,
    )
    return coupon.to_document()


@router.post("/coupons/purchase")
async def purchase_coupon(
    payload: PurchaseRequest,
    caller_id: str | None = Depends(get_optional_caller_id),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    """Synchronous purchase call: {"householdId", "couponId"} -> {"success": true}."""
    result = await purchase_service.purchase_coupon(
        store=store,
        caller_id=caller_id,
        household_id=payload.household_id,
        coupon_id=payload.coupon_id,
    )
    return result.model_dump()


# Feed


@router.get("/households/{household_id}/feed")
async def list_feed(
    household_id: str,
    limit: int = Query(default=constants.FEED_PAGE_SIZE, ge=1, le=constants.DEFAULT_PER_PAGE_LIMIT),
    caller_id: str = Depends(get_caller_id),
    store: DocumentStore = Depends(get_store),
) -> list[dict[str, Any]]:
    await household_service.require_member(store=store, household_id=household_id, caller_id=caller_id)
    entries = await feed_service.list_feed(store=store, household_id=household_id, limit=limit)
    return [entry.to_document() for entry in entries]
