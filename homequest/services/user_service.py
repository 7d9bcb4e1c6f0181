"""User service: profile reads and client-writable profile fields."""

import logging
from typing import Any

from homequest.core.config import constants
from homequest.core.db_client import DocumentStore, RecordNotFoundError
from homequest.core.errors import InvalidArgumentError, NotFoundError, PermissionDeniedError
from homequest.core.logging import span
from homequest.core.paths import user_path, validate_id
from homequest.domain.create_models import ProfileUpdate, parse_request
from homequest.domain.user import PROTECTED_ECONOMY_FIELDS, User
from homequest.models.service_models import LeaderboardEntry
from homequest.services.household_service import require_member


logger = logging.getLogger(__name__)

# Profile fields a member may change on their own document
EDITABLE_PROFILE_FIELDS = frozenset({"displayName", "avatarUrl", "fcmToken"})


async def get_user(*, store: DocumentStore, uid: str) -> User:
    """Fetch a user profile, raising NotFoundError if it does not exist."""
    snapshot = await store.get(user_path(validate_id(uid, "User id")))
    if not snapshot.exists:
        raise NotFoundError("User not found.")
    return User.from_document(snapshot.data)


async def update_profile(*, store: DocumentStore, caller_id: str, updates: dict[str, Any]) -> User:
    """Apply a client update to the caller's own profile.

    Level, XP and coin balance belong to the economy engine and the purchase
    transaction; any update touching them is rejected outright.

    Raises:
        PermissionDeniedError: If the update touches a protected economy field
        InvalidArgumentError: If the update is empty, names an unknown field or has a value of the wrong type
        NotFoundError: If the caller has no profile
    """
    with span("user_service.update_profile"):
        validate_id(caller_id, "Caller id")
        protected = PROTECTED_ECONOMY_FIELDS.intersection(updates)
        if protected:
            logger.warning(
                "Rejected client write to economy fields",
                extra={"caller_id": caller_id, "fields": sorted(protected)},
            )
            raise PermissionDeniedError("Level, XP and coin balance can only be changed by the quest economy.")

        unknown = set(updates) - EDITABLE_PROFILE_FIELDS
        if unknown:
            raise InvalidArgumentError(f"Unknown profile fields: {', '.join(sorted(unknown))}")
        if not updates:
            raise InvalidArgumentError("No profile fields to update.")

        # Types are checked before the write; a bad value must never reach the stored profile
        payload = parse_request(ProfileUpdate, **updates).to_update_document()

        try:
            await store.update(user_path(caller_id), payload)
        except RecordNotFoundError as e:
            raise NotFoundError("User not found.") from e

        logger.info("Updated profile", extra={"caller_id": caller_id, "fields": sorted(payload)})
        return await get_user(store=store, uid=caller_id)


async def update_push_token(*, store: DocumentStore, caller_id: str, fcm_token: str) -> User:
    return await update_profile(store=store, caller_id=caller_id, updates={"fcmToken": fcm_token})


async def update_avatar(*, store: DocumentStore, caller_id: str, avatar_url: str) -> User:
    return await update_profile(store=store, caller_id=caller_id, updates={"avatarUrl": avatar_url})


async def get_leaderboard(*, store: DocumentStore, caller_id: str, household_id: str) -> list[LeaderboardEntry]:
    """Household members ranked by lifetime XP, highest first."""
    with span("user_service.get_leaderboard"):
        await require_member(store=store, household_id=household_id, caller_id=caller_id)
        snapshots = await store.query(
            constants.USERS_COLLECTION,
            filter_query=f'householdId = "{household_id}"',
            sort="-currentXp",
        )
        users = [User.from_document(snapshot.data) for snapshot in snapshots]
        return [
            LeaderboardEntry(
                uid=user.uid,
                display_name=user.display_name,
                level=user.level,
                current_xp=user.current_xp,
                rank=rank,
            )
            for rank, user in enumerate(users, start=1)
        ]
