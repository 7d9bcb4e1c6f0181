"""Document paths shared with every client."""

import re

from homequest.core.config import constants
from homequest.core.errors import InvalidArgumentError


_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def user_path(uid: str) -> str:
    return f"{constants.USERS_COLLECTION}/{uid}"


def household_path(household_id: str) -> str:
    return f"{constants.HOUSEHOLDS_COLLECTION}/{household_id}"


def tasks_collection(household_id: str) -> str:
    return f"{household_path(household_id)}/{constants.TASKS_SUB_COLLECTION}"


def task_path(household_id: str, task_id: str) -> str:
    return f"{tasks_collection(household_id)}/{task_id}"


def coupons_collection(household_id: str) -> str:
    return f"{household_path(household_id)}/{constants.COUPONS_SUB_COLLECTION}"


def coupon_path(household_id: str, coupon_id: str) -> str:
    return f"{coupons_collection(household_id)}/{coupon_id}"


def feed_collection(household_id: str) -> str:
    return f"{household_path(household_id)}/{constants.FEED_SUB_COLLECTION}"


def feed_entry_path(household_id: str, entry_id: str) -> str:
    return f"{feed_collection(household_id)}/{entry_id}"


# Change stream pattern for task writes
TASK_DOCUMENT_PATTERN = (
    f"{constants.HOUSEHOLDS_COLLECTION}/{{household_id}}/{constants.TASKS_SUB_COLLECTION}/{{task_id}}"
)


def validate_id(value: str | None, label: str) -> str:
    """Reject ids that cannot be used as a path segment or inside a filter literal."""
    if not value or not _ID_PATTERN.fullmatch(value):
        raise InvalidArgumentError(f"{label} is missing or invalid.")
    return value
