from homequest.services import (
    coupon_service,
    economy_service,
    feed_service,
    household_service,
    level_service,
    notification_service,
    purchase_service,
    task_service,
    user_service,
)


__all__ = [
    "coupon_service",
    "economy_service",
    "feed_service",
    "household_service",
    "level_service",
    "notification_service",
    "purchase_service",
    "task_service",
    "user_service",
]
