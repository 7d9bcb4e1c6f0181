"""Pydantic models validating client requests before any write."""

from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from homequest.core.config import constants
from homequest.core.errors import InvalidArgumentError


ModelT = TypeVar("ModelT", bound=BaseModel)


def _required_text(value: str, label: str, max_length: int) -> str:
    value = value.strip()
    if not value:
        msg = f"{label} is required"
        raise ValueError(msg)
    if len(value) > max_length:
        msg = f"{label} must be at most {max_length} characters"
        raise ValueError(msg)
    return value


class MemberProfile(BaseModel):
    """Profile supplied when a caller creates or joins a household."""

    display_name: str = Field(..., description="Name shown to the household")
    email: str = Field(default="", description="Sign-in email")

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v: str) -> str:
        return _required_text(v, "Display name", constants.MAX_DISPLAY_NAME_LENGTH)


class HouseholdCreate(MemberProfile):
    """Request to create a household with the caller as first member."""

    household_name: str = Field(..., description="Household name")

    @field_validator("household_name")
    @classmethod
    def validate_household_name(cls, v: str) -> str:
        return _required_text(v, "Household name", constants.MAX_HOUSEHOLD_NAME_LENGTH)


class HouseholdJoin(MemberProfile):
    """Request to join an existing household by invite code."""

    invite_code: str = Field(..., description="Invite code, case-insensitive")

    @field_validator("invite_code")
    @classmethod
    def normalize_invite_code(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != constants.INVITE_CODE_LENGTH or any(c not in constants.INVITE_CODE_CHARS for c in v):
            msg = f"Invite code must be {constants.INVITE_CODE_LENGTH} letters or digits"
            raise ValueError(msg)
        return v


class TaskCreate(BaseModel):
    """Request to post a new task."""

    title: str
    description: str | None = None
    xp_reward: int = Field(..., ge=constants.MIN_XP_REWARD, le=constants.MAX_XP_REWARD)
    coin_reward: int = Field(..., ge=constants.MIN_COIN_REWARD, le=constants.MAX_COIN_REWARD)
    deadline: datetime | None = None
    is_recurring: bool = False
    assigned_to: str | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _required_text(v, "Title", constants.MAX_TASK_TITLE_LENGTH)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if len(v) > constants.MAX_TASK_DESCRIPTION_LENGTH:
            msg = f"Description must be at most {constants.MAX_TASK_DESCRIPTION_LENGTH} characters"
            raise ValueError(msg)
        return v or None


class CouponCreate(BaseModel):
    """Request to offer a coupon to the household."""

    title: str
    cost: int = Field(..., gt=0)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _required_text(v, "Title", constants.MAX_COUPON_TITLE_LENGTH)


class ProfileUpdate(BaseModel):
    """Client update of the caller's own profile; only supplied fields are written."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    display_name: str = Field(default="", alias="displayName", description="Name shown to the household")
    avatar_url: str | None = Field(default=None, alias="avatarUrl", description="Avatar URL, null clears it")
    fcm_token: str = Field(default="", alias="fcmToken", description="Push token, empty clears it")

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v: str) -> str:
        return _required_text(v, "Display name", constants.MAX_DISPLAY_NAME_LENGTH)

    @field_validator("fcm_token")
    @classmethod
    def strip_token(cls, v: str) -> str:
        return v.strip()

    def to_update_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, include=self.model_fields_set)


def parse_request(model: type[ModelT], **fields: Any) -> ModelT:
    """Validate request fields, raising InvalidArgumentError with the first problem."""
    try:
        return model(**fields)
    except ValidationError as e:
        error = e.errors()[0]
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        raise InvalidArgumentError(f"{location}: {message}" if location else message) from e
