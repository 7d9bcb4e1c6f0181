"""Caller identity: signed bearer tokens carrying the user's id."""

import logging

from fastapi import Header
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from homequest.core.config import settings
from homequest.core.errors import UnauthenticatedError


logger = logging.getLogger(__name__)

TOKEN_SALT = "homequest-auth"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.require_credential("secret_key", "Auth token signing"), salt=TOKEN_SALT)


def issue_token(uid: str) -> str:
    """Sign a bearer token for the given identity id."""
    return _serializer().dumps({"uid": uid})


def verify_token(token: str, *, max_age: int | None = None) -> str:
    """Return the identity id carried by a token.

    Raises:
        UnauthenticatedError: If the token is tampered with, expired or malformed
    """
    if max_age is None:
        max_age = settings.auth_token_max_age_seconds
    try:
        payload = _serializer().loads(token, max_age=max_age)
    except SignatureExpired as err:
        logger.warning("auth_token_expired")
        raise UnauthenticatedError("Session expired. Sign in again.") from err
    except BadSignature as err:
        logger.warning("auth_token_tampered")
        raise UnauthenticatedError("Invalid credentials.") from err

    uid = payload.get("uid") if isinstance(payload, dict) else None
    if not uid or not isinstance(uid, str):
        raise UnauthenticatedError("Invalid credentials.")
    return uid


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthenticatedError("Invalid credentials.")
    return token.strip()


async def get_optional_caller_id(authorization: str | None = Header(default=None)) -> str | None:
    """Caller id when an Authorization header is present, None otherwise."""
    token = _bearer_token(authorization)
    return verify_token(token) if token else None


async def get_caller_id(authorization: str | None = Header(default=None)) -> str:
    """Caller id from the Authorization header; every route except purchase requires it."""
    uid = await get_optional_caller_id(authorization)
    if uid is None:
        raise UnauthenticatedError("Must be signed in.")
    return uid
