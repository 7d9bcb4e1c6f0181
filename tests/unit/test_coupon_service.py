"""Tests for coupon listing and redemption."""

import pytest

from homequest.core.errors import FailedPreconditionError, InvalidArgumentError, PermissionDeniedError
from homequest.domain.feed import FeedType
from homequest.services import coupon_service, feed_service


@pytest.mark.unit
async def test_create_coupon(store, household) -> None:
    coupon = await coupon_service.create_coupon(
        store=store, caller_id=household.carol, household_id=household.household_id, title="Foot rub", cost=40
    )

    assert coupon.seller_id == household.carol
    assert coupon.buyer_id is None
    assert coupon.is_available
    assert coupon.created_at is not None


@pytest.mark.unit
@pytest.mark.parametrize(("title", "cost"), [("Foot rub", 0), ("Foot rub", -5), ("", 10)])
async def test_create_coupon_validation(store, household, title, cost) -> None:
    with pytest.raises(InvalidArgumentError):
        await coupon_service.create_coupon(
            store=store, caller_id=household.carol, household_id=household.household_id, title=title, cost=cost
        )


@pytest.mark.unit
async def test_available_and_owned_lists(store, household, make_coupon) -> None:
    unsold = await make_coupon(title="Movie pick")
    sold = await make_coupon(title="Skip chores", buyer_id=household.bob, purchased_at="2026-01-01T00:00:00.000000Z")
    await make_coupon(title="Late curfew", buyer_id=household.carol, purchased_at="2026-01-02T00:00:00.000000Z")

    available = await coupon_service.list_available_coupons(
        store=store, caller_id=household.bob, household_id=household.household_id
    )
    owned = await coupon_service.list_owned_coupons(
        store=store, caller_id=household.bob, household_id=household.household_id
    )

    assert [coupon.coupon_id for coupon in available] == [unsold]
    assert [coupon.coupon_id for coupon in owned] == [sold]


class TestRedeem:
    """Seller confirms the reward was delivered."""

    @pytest.mark.unit
    async def test_seller_redeems_purchased_coupon(self, store, household, make_coupon) -> None:
        coupon_id = await make_coupon(buyer_id=household.bob)

        coupon = await coupon_service.redeem_coupon(
            store=store, caller_id=household.alice, household_id=household.household_id, coupon_id=coupon_id
        )

        assert coupon.is_redeemed is True
        entries = await feed_service.list_feed(store=store, household_id=household.household_id)
        redeemed = [entry for entry in entries if entry.type == FeedType.COUPON_REDEEMED]
        assert len(redeemed) == 1
        assert redeemed[0].message == 'Alice used a reward: "Breakfast in bed"! 🎁'

    @pytest.mark.unit
    async def test_only_seller_redeems(self, store, household, make_coupon) -> None:
        coupon_id = await make_coupon(buyer_id=household.bob)

        with pytest.raises(PermissionDeniedError, match="Only the seller"):
            await coupon_service.redeem_coupon(
                store=store, caller_id=household.bob, household_id=household.household_id, coupon_id=coupon_id
            )

    @pytest.mark.unit
    async def test_unsold_coupon_cannot_be_redeemed(self, store, household, make_coupon) -> None:
        coupon_id = await make_coupon()

        with pytest.raises(FailedPreconditionError, match="not been purchased"):
            await coupon_service.redeem_coupon(
                store=store, caller_id=household.alice, household_id=household.household_id, coupon_id=coupon_id
            )

    @pytest.mark.unit
    async def test_redeem_is_one_shot(self, store, household, make_coupon) -> None:
        coupon_id = await make_coupon(buyer_id=household.bob, is_redeemed=True)

        with pytest.raises(FailedPreconditionError, match="already been redeemed"):
            await coupon_service.redeem_coupon(
                store=store, caller_id=household.alice, household_id=household.household_id, coupon_id=coupon_id
            )
