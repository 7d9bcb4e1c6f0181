"""Household domain model."""

from typing import Any

from pydantic import Field

from homequest.core.field_values import SERVER_TIMESTAMP
from homequest.domain.base import DocumentModel


class Household(DocumentModel):
    """A group of users sharing tasks, coupons and a feed."""

    household_id: str = Field(default="", alias="householdId")
    name: str = Field(default="")
    members: list[str] = Field(default_factory=list, description="Member uids")
    invite_code: str = Field(default="", alias="inviteCode", description="6-character join code")
    created_by: str = Field(default="", alias="createdBy")
    created_at: str | None = Field(default=None, alias="createdAt")

    def to_creation_document(self) -> dict[str, Any]:
        document = self.to_document()
        document["createdAt"] = SERVER_TIMESTAMP
        return document
