"""Household service: sign-up flows, invite codes and membership checks."""

import logging
import secrets

from homequest.core.config import constants, settings
from homequest.core.db_client import DocumentStore, RecordExistsError, new_id
from homequest.core.errors import FailedPreconditionError, NotFoundError, PermissionDeniedError
from homequest.core.field_values import ArrayUnion
from homequest.core.logging import span
from homequest.core.paths import household_path, user_path, validate_id
from homequest.domain.create_models import HouseholdCreate, HouseholdJoin, parse_request
from homequest.domain.feed import FeedType
from homequest.domain.household import Household
from homequest.domain.user import User
from homequest.services import feed_service


logger = logging.getLogger(__name__)


def generate_invite_code() -> str:
    return "".join(secrets.choice(constants.INVITE_CODE_CHARS) for _ in range(constants.INVITE_CODE_LENGTH))


async def find_household_by_invite_code(*, store: DocumentStore, invite_code: str) -> Household | None:
    """Look up a household by its (already normalized) invite code."""
    matches = await store.query(
        constants.HOUSEHOLDS_COLLECTION,
        filter_query=f'inviteCode = "{invite_code}"',
        limit=1,
    )
    if not matches:
        return None
    return Household.from_document(matches[0].data)


async def _unused_invite_code(store: DocumentStore) -> str:
    for attempt in range(1, settings.invite_code_max_attempts + 1):
        code = generate_invite_code()
        if await find_household_by_invite_code(store=store, invite_code=code) is None:
            return code
        logger.info("Invite code collision, regenerating", extra={"attempt": attempt})

    raise FailedPreconditionError("Could not generate a unique invite code. Please try again.")


async def get_household(*, store: DocumentStore, household_id: str) -> Household:
    """Fetch a household, raising NotFoundError if it does not exist."""
    snapshot = await store.get(household_path(validate_id(household_id, "Household id")))
    if not snapshot.exists:
        raise NotFoundError("Household not found.")
    return Household.from_document(snapshot.data)


async def require_member(*, store: DocumentStore, household_id: str, caller_id: str) -> Household:
    """Return the household if the caller belongs to it."""
    validate_id(caller_id, "Caller id")
    household = await get_household(store=store, household_id=household_id)
    if caller_id not in household.members:
        raise PermissionDeniedError("User is not a member of this household.")
    return household


async def _ensure_no_profile(store: DocumentStore, caller_id: str) -> None:
    if (await store.get(user_path(caller_id))).exists:
        raise FailedPreconditionError("You already belong to a household.")


async def create_household(
    *,
    store: DocumentStore,
    caller_id: str,
    display_name: str,
    household_name: str,
    email: str = "",
) -> Household:
    """Create a household with the caller as its first member.

    The household, the caller's profile and a member_joined feed entry are
    written in one batch.

    Raises:
        InvalidArgumentError: If a name is empty or too long
        FailedPreconditionError: If the caller already has a profile, or no unique invite code was found
    """
    with span("household_service.create_household"):
        validate_id(caller_id, "Caller id")
        request = parse_request(
            HouseholdCreate,
            display_name=display_name,
            email=email,
            household_name=household_name,
        )
        await _ensure_no_profile(store, caller_id)

        household = Household(
            household_id=new_id(),
            name=request.household_name,
            members=[caller_id],
            invite_code=await _unused_invite_code(store),
            created_by=caller_id,
        )
        user = User(
            uid=caller_id,
            display_name=request.display_name,
            email=request.email,
            household_id=household.household_id,
        )

        batch = store.batch()
        batch.create(household_path(household.household_id), household.to_creation_document())
        batch.create(user_path(caller_id), user.to_creation_document())
        batch.create(
            *feed_service.build_feed_entry(
                household_id=household.household_id,
                entry_type=FeedType.MEMBER_JOINED,
                actor_id=caller_id,
                actor_name=request.display_name,
                message=feed_service.member_joined_message(request.display_name),
                related_entity_id=caller_id,
            )
        )
        try:
            await batch.commit()
        except RecordExistsError as e:
            raise FailedPreconditionError("You already belong to a household.") from e

        logger.info("Created household", extra={"household_id": household.household_id, "caller_id": caller_id})
        return await get_household(store=store, household_id=household.household_id)


async def join_household(
    *,
    store: DocumentStore,
    caller_id: str,
    display_name: str,
    invite_code: str,
    email: str = "",
) -> Household:
    """Join a household by invite code (case-insensitive).

    Raises:
        InvalidArgumentError: If the display name or code is malformed
        NotFoundError: If no household uses the code
        FailedPreconditionError: If the caller already has a profile
    """
    with span("household_service.join_household"):
        validate_id(caller_id, "Caller id")
        request = parse_request(HouseholdJoin, display_name=display_name, email=email, invite_code=invite_code)
        await _ensure_no_profile(store, caller_id)

        household = await find_household_by_invite_code(store=store, invite_code=request.invite_code)
        if household is None:
            raise NotFoundError("No household found with this invite code.")

        user = User(
            uid=caller_id,
            display_name=request.display_name,
            email=request.email,
            household_id=household.household_id,
        )

        batch = store.batch()
        batch.create(user_path(caller_id), user.to_creation_document())
        batch.update(household_path(household.household_id), {"members": ArrayUnion(caller_id)})
        batch.create(
            *feed_service.build_feed_entry(
                household_id=household.household_id,
                entry_type=FeedType.MEMBER_JOINED,
                actor_id=caller_id,
                actor_name=request.display_name,
                message=feed_service.member_joined_message(request.display_name),
                related_entity_id=caller_id,
            )
        )
        try:
            await batch.commit()
        except RecordExistsError as e:
            raise FailedPreconditionError("You already belong to a household.") from e

        logger.info("Joined household", extra={"household_id": household.household_id, "caller_id": caller_id})
        return await get_household(store=store, household_id=household.household_id)
