"""Domain models and DTOs."""

from homequest.domain.coupon import Coupon
from homequest.domain.create_models import CouponCreate, HouseholdCreate, HouseholdJoin, MemberProfile, TaskCreate
from homequest.domain.feed import FeedEntry, FeedType
from homequest.domain.household import Household
from homequest.domain.task import Task, TaskStatus
from homequest.domain.user import PROTECTED_ECONOMY_FIELDS, User


__all__ = [
    "PROTECTED_ECONOMY_FIELDS",
    "Coupon",
    "CouponCreate",
    "FeedEntry",
    "FeedType",
    "Household",
    "HouseholdCreate",
    "HouseholdJoin",
    "MemberProfile",
    "Task",
    "TaskCreate",
    "TaskStatus",
    "User",
]
