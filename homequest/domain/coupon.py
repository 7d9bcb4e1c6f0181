"""Coupon domain model."""

from typing import Any

from pydantic import Field

from homequest.core.field_values import SERVER_TIMESTAMP
from homequest.domain.base import DocumentModel


class Coupon(DocumentModel):
    """A reward a member offers to the household, bought with coins."""

    coupon_id: str = Field(default="", alias="couponId")
    title: str = Field(default="")
    cost: int = Field(default=0, description="Price in coins")
    seller_id: str = Field(default="", alias="sellerId")
    buyer_id: str | None = Field(default=None, alias="buyerId", description="Set once, by the purchase")
    is_redeemed: bool = Field(default=False, alias="isRedeemed")
    created_at: str | None = Field(default=None, alias="createdAt")
    purchased_at: str | None = Field(default=None, alias="purchasedAt")

    @property
    def is_available(self) -> bool:
        return self.buyer_id is None

    @property
    def is_awaiting_redemption(self) -> bool:
        return self.buyer_id is not None and not self.is_redeemed

    def to_creation_document(self) -> dict[str, Any]:
        document = self.to_document()
        document["createdAt"] = SERVER_TIMESTAMP
        return document
