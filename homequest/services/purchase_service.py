"""Coupon purchase: the only path that debits coins and sets a coupon's buyer."""

import logging

from homequest.core.db_client import DocumentStore, Transaction
from homequest.core.errors import (
    FailedPreconditionError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
    UnauthenticatedError,
)
from homequest.core.field_values import SERVER_TIMESTAMP
from homequest.core.logging import span
from homequest.core.paths import coupon_path, user_path, validate_id
from homequest.domain.coupon import Coupon
from homequest.domain.feed import FeedType
from homequest.domain.user import User
from homequest.models.service_models import PurchaseResult
from homequest.services import feed_service


logger = logging.getLogger(__name__)


async def purchase_coupon(
    *,
    store: DocumentStore,
    caller_id: str | None,
    household_id: str | None,
    coupon_id: str | None,
) -> PurchaseResult:
    """Buy a coupon with the caller's coins.

    Every check and every write happens inside one transaction, so two
    concurrent purchases of the same coupon, or two purchases drawing on the
    same balance, can never both succeed.

    Raises:
        UnauthenticatedError: If there is no caller identity
        InvalidArgumentError: If householdId or couponId is missing
        NotFoundError: If the caller's profile or the coupon does not exist
        PermissionDeniedError: If the caller is not in the household
        FailedPreconditionError: Own coupon, already purchased, or insufficient coins
    """
    if not caller_id:
        raise UnauthenticatedError("Must be signed in.")
    if not household_id or not coupon_id:
        raise InvalidArgumentError("householdId and couponId required.")
    validate_id(caller_id, "Caller id")
    validate_id(household_id, "householdId")
    validate_id(coupon_id, "couponId")

    buyer_path = user_path(caller_id)
    target_path = coupon_path(household_id, coupon_id)

    async def body(transaction: Transaction) -> tuple[Coupon, int]:
        user_snapshot = await transaction.get(buyer_path)
        coupon_snapshot = await transaction.get(target_path)

        if not user_snapshot.exists:
            raise NotFoundError("User not found.")
        user = User.from_document(user_snapshot.data)
        if user.household_id != household_id:
            raise PermissionDeniedError("User is not a member of this household.")

        if not coupon_snapshot.exists:
            raise NotFoundError("Coupon not found.")
        coupon = Coupon.from_document(coupon_snapshot.data)

        if coupon.seller_id == caller_id:
            raise FailedPreconditionError("You cannot purchase your own reward.")
        if coupon.buyer_id is not None:
            raise FailedPreconditionError("This coupon has already been purchased.")
        if user.coin_balance < coupon.cost:
            raise FailedPreconditionError(
                f"Insufficient coins. You need {coupon.cost} but have {user.coin_balance}."
            )

        new_balance = user.coin_balance - coupon.cost
        actor_name = feed_service.actor_name_or_default(user.display_name)
        transaction.update(buyer_path, {"coinBalance": new_balance})
        transaction.update(target_path, {"buyerId": caller_id, "purchasedAt": SERVER_TIMESTAMP})
        transaction.create(
            *feed_service.build_feed_entry(
                household_id=household_id,
                entry_type=FeedType.COUPON_PURCHASED,
                actor_id=caller_id,
                actor_name=actor_name,
                message=feed_service.coupon_purchased_message(actor_name, coupon.title),
                related_entity_id=coupon_id,
            )
        )
        return coupon, new_balance

    with span("purchase_service.purchase_coupon"):
        coupon, new_balance = await store.run_transaction(body)

    logger.info(
        "Coupon purchased",
        extra={
            "household_id": household_id,
            "coupon_id": coupon_id,
            "buyer_id": caller_id,
            "cost": coupon.cost,
            "new_balance": new_balance,
        },
    )
    return PurchaseResult(success=True)
