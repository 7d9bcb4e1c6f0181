"""Pydantic models for service layer return types."""

from pydantic import BaseModel, Field


class PurchaseResult(BaseModel):
    """Outcome of a successful coupon purchase."""

    success: bool = True


class LeaderboardEntry(BaseModel):
    """Member ranking by lifetime XP."""

    uid: str
    display_name: str
    level: int
    current_xp: int
    rank: int


class AwardResult(BaseModel):
    """What the economy engine committed for one task completion."""

    household_id: str
    task_id: str
    claimer_id: str
    claimer_name: str
    task_title: str
    xp_awarded: int
    coins_awarded: int
    old_level: int
    new_level: int
    recurring_task_id: str | None = None

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


class PruneSummary(BaseModel):
    """Result of one household's feed retention sweep."""

    household_id: str
    expired_deleted: int = 0
    overflow_deleted: int = 0
    failed_deletes: int = 0
    error: str | None = Field(default=None, description="Set when the household could not be processed")

    @property
    def total_deleted(self) -> int:
        return self.expired_deleted + self.overflow_deleted


class MulticastResult(BaseModel):
    """Result of one multicast push request."""

    success: bool = Field(..., description="Whether the provider accepted the request")
    success_count: int = 0
    failure_count: int = 0
    invalid_tokens: list[str] = Field(default_factory=list, description="Tokens the provider rejected")
    error: str | None = None
