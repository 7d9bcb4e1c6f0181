"""Coupon service: listing rewards and confirming redemptions."""

import logging

from homequest.core.db_client import DocumentStore, Transaction, new_id
from homequest.core.errors import FailedPreconditionError, NotFoundError, PermissionDeniedError
from homequest.core.logging import span
from homequest.core.paths import coupon_path, coupons_collection, user_path, validate_id
from homequest.domain.coupon import Coupon
from homequest.domain.create_models import CouponCreate, parse_request
from homequest.domain.feed import FeedType
from homequest.domain.user import User
from homequest.services import feed_service
from homequest.services.household_service import require_member


logger = logging.getLogger(__name__)


async def create_coupon(
    *,
    store: DocumentStore,
    caller_id: str,
    household_id: str,
    title: str,
    cost: int,
) -> Coupon:
    """Offer a reward to the household with the caller as seller."""
    with span("coupon_service.create_coupon"):
        request = parse_request(CouponCreate, title=title, cost=cost)
        await require_member(store=store, household_id=household_id, caller_id=caller_id)

        coupon = Coupon(coupon_id=new_id(), title=request.title, cost=request.cost, seller_id=caller_id)
        await store.create(coupon_path(household_id, coupon.coupon_id), coupon.to_creation_document())

        logger.info("Created coupon", extra={"household_id": household_id, "coupon_id": coupon.coupon_id})
        return await get_coupon(store=store, household_id=household_id, coupon_id=coupon.coupon_id)


async def get_coupon(*, store: DocumentStore, household_id: str, coupon_id: str) -> Coupon:
    path = coupon_path(validate_id(household_id, "Household id"), validate_id(coupon_id, "Coupon id"))
    snapshot = await store.get(path)
    if not snapshot.exists:
        raise NotFoundError("Coupon not found.")
    return Coupon.from_document(snapshot.data)


async def list_available_coupons(*, store: DocumentStore, caller_id: str, household_id: str) -> list[Coupon]:
    """Coupons nobody has bought yet, newest first."""
    await require_member(store=store, household_id=household_id, caller_id=caller_id)
    snapshots = await store.query(coupons_collection(household_id), filter_query="buyerId = null", sort="-createdAt")
    return [Coupon.from_document(snapshot.data) for snapshot in snapshots]


async def list_owned_coupons(*, store: DocumentStore, caller_id: str, household_id: str) -> list[Coupon]:
    """Coupons the caller has bought, newest purchase first."""
    await require_member(store=store, household_id=household_id, caller_id=caller_id)
    snapshots = await store.query(
        coupons_collection(household_id),
        filter_query=f'buyerId = "{caller_id}"',
        sort="-purchasedAt",
    )
    return [Coupon.from_document(snapshot.data) for snapshot in snapshots]


async def redeem_coupon(*, store: DocumentStore, caller_id: str, household_id: str, coupon_id: str) -> Coupon:
    """Seller confirms a purchased coupon was honored.

    Raises:
        NotFoundError: If the coupon does not exist
        PermissionDeniedError: If the caller is not the seller
        FailedPreconditionError: If the coupon is unsold or already redeemed
    """
    with span("coupon_service.redeem_coupon"):
        await require_member(store=store, household_id=household_id, caller_id=caller_id)
        path = coupon_path(household_id, validate_id(coupon_id, "Coupon id"))

        async def body(transaction: Transaction) -> Coupon:
            coupon_snapshot = await transaction.get(path)
            seller_snapshot = await transaction.get(user_path(caller_id))
            if not coupon_snapshot.exists:
                raise NotFoundError("Coupon not found.")
            coupon = Coupon.from_document(coupon_snapshot.data)

            if coupon.seller_id != caller_id:
                raise PermissionDeniedError("Only the seller can confirm a redemption.")
            if coupon.buyer_id is None:
                raise FailedPreconditionError("This coupon has not been purchased yet.")
            if coupon.is_redeemed:
                raise FailedPreconditionError("This coupon has already been redeemed.")

            actor_name = feed_service.actor_name_or_default(User.from_document(seller_snapshot.data).display_name)
            transaction.update(path, {"isRedeemed": True})
            transaction.create(
                *feed_service.build_feed_entry(
                    household_id=household_id,
                    entry_type=FeedType.COUPON_REDEEMED,
                    actor_id=caller_id,
                    actor_name=actor_name,
                    message=feed_service.coupon_redeemed_message(actor_name, coupon.title),
                    related_entity_id=coupon_id,
                )
            )
            return coupon.model_copy(update={"is_redeemed": True})

        coupon = await store.run_transaction(body)
        logger.info("Redeemed coupon", extra={"household_id": household_id, "coupon_id": coupon_id})
        return coupon
