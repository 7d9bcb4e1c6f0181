"""Task domain models and enums."""

from enum import StrEnum
from typing import Any

from pydantic import Field

from homequest.core.field_values import SERVER_TIMESTAMP
from homequest.domain.base import DocumentModel


class TaskStatus(StrEnum):
    """Task lifecycle state."""

    OPEN = "open"
    CLAIMED = "claimed"
    PENDING_VERIFICATION = "pending_verification"
    COMPLETED = "completed"


class Task(DocumentModel):
    """A unit of household work that pays XP and coins on completion."""

    task_id: str = Field(default="", alias="taskId")
    title: str = Field(default="")
    description: str | None = Field(default=None)
    status: TaskStatus = Field(default=TaskStatus.OPEN)
    xp_reward: int = Field(default=0, alias="xpReward")
    coin_reward: int = Field(default=0, alias="coinReward")
    created_by: str = Field(default="", alias="createdBy")
    assigned_to: str | None = Field(default=None, alias="assignedTo", description="Reserved for one member")
    claimed_by: str | None = Field(default=None, alias="claimedBy", description="Member doing the work")
    proof_image_url: str | None = Field(default=None, alias="proofImageUrl")
    deadline: str | None = Field(default=None, description="ISO timestamp")
    is_recurring: bool = Field(default=False, alias="isRecurring", description="Regenerates when completed")
    created_at: str | None = Field(default=None, alias="createdAt")
    completed_at: str | None = Field(default=None, alias="completedAt")

    def to_creation_document(self) -> dict[str, Any]:
        """Document for a new task: unset fields written as explicit nulls."""
        document = self.to_document()
        document["createdAt"] = SERVER_TIMESTAMP
        return document

    def is_claimable_by(self, uid: str) -> bool:
        return (
            self.status == TaskStatus.OPEN
            and self.created_by != uid
            and self.claimed_by is None
            and self.assigned_to in (None, uid)
        )
