"""Activity feed domain models."""

from enum import StrEnum
from typing import Any

from pydantic import Field

from homequest.core.field_values import SERVER_TIMESTAMP
from homequest.domain.base import DocumentModel


class FeedType(StrEnum):
    """Kinds of household activity."""

    TASK_CREATED = "task_created"
    TASK_COMPLETED = "task_completed"
    COUPON_PURCHASED = "coupon_purchased"
    COUPON_REDEEMED = "coupon_redeemed"
    LEVEL_UP = "level_up"
    MEMBER_JOINED = "member_joined"


class FeedEntry(DocumentModel):
    """Append-only activity record, pruned by the retention job."""

    entry_id: str = Field(default="", alias="entryId")
    type: str = Field(default=FeedType.TASK_CREATED.value)
    actor_id: str = Field(default="", alias="actorId")
    actor_name: str = Field(default="", alias="actorName")
    message: str = Field(default="")
    related_entity_id: str | None = Field(default=None, alias="relatedEntityId")
    timestamp: str | None = Field(default=None, description="ISO timestamp of the commit")

    def to_creation_document(self) -> dict[str, Any]:
        document = self.to_document()
        document["timestamp"] = SERVER_TIMESTAMP
        return document
