"""User domain model."""

from typing import Any

from pydantic import Field

from homequest.core.config import constants
from homequest.core.field_values import SERVER_TIMESTAMP
from homequest.domain.base import DocumentModel


# Fields only the economy engine and the purchase transaction may write
PROTECTED_ECONOMY_FIELDS = frozenset({"level", "currentXp", "coinBalance"})


class User(DocumentModel):
    """Household member profile and economy balances."""

    uid: str = Field(default="", description="Identity id, also the document id")
    display_name: str = Field(default="", alias="displayName", description="Name shown to the household")
    email: str = Field(default="", description="Sign-in email")
    household_id: str = Field(default="", alias="householdId", description="Household the user belongs to")
    level: int = Field(default=constants.DEFAULT_LEVEL, description="Level 1..10 derived from currentXp")
    current_xp: int = Field(default=constants.DEFAULT_XP, alias="currentXp", description="Total XP earned")
    coin_balance: int = Field(default=constants.DEFAULT_COIN_BALANCE, alias="coinBalance", description="Coins")
    fcm_token: str = Field(default="", alias="fcmToken", description="Push token, empty when unknown")
    avatar_url: str | None = Field(default=None, alias="avatarUrl", description="Avatar URL in the media store")
    created_at: str | None = Field(default=None, alias="createdAt", description="ISO timestamp")

    def to_creation_document(self) -> dict[str, Any]:
        document = self.to_document()
        document["createdAt"] = SERVER_TIMESTAMP
        return document
