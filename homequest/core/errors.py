"""Error taxonomy for economy operations and its user-facing responses."""

from enum import Enum

from pydantic import BaseModel


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Stable error codes returned to callers."""

    INVALID_ARGUMENT = "invalid-argument"
    UNAUTHENTICATED = "unauthenticated"
    PERMISSION_DENIED = "permission-denied"
    NOT_FOUND = "not-found"
    FAILED_PRECONDITION = "failed-precondition"
    INTERNAL = "internal"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


class HomeQuestError(Exception):
    """Base class for every caller-facing error.

    Attributes:
        code: Stable machine-readable code
        message: Short human-readable reason
        status_code: HTTP status used by the request surface
    """

    code: str = ErrorCode.INTERNAL
    status_code: int = 500
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    suggestion: str = "Please try again later. If the problem persists, contact support."

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidArgumentError(HomeQuestError, ValueError):
    """Bad input rejected before any write."""

    code = ErrorCode.INVALID_ARGUMENT
    status_code = 400
    severity = ErrorSeverity.LOW
    suggestion = "Check the highlighted fields and try again."


class UnauthenticatedError(HomeQuestError):
    """Caller has no valid identity."""

    code = ErrorCode.UNAUTHENTICATED
    status_code = 401
    severity = ErrorSeverity.MEDIUM
    suggestion = "Sign in again and retry."


class PermissionDeniedError(HomeQuestError, PermissionError):
    """Caller is not allowed to act on this household or field."""

    code = ErrorCode.PERMISSION_DENIED
    status_code = 403
    severity = ErrorSeverity.MEDIUM
    suggestion = "Contact your household if you think this is an error."


class NotFoundError(HomeQuestError):
    """A referenced user, household, task or coupon does not exist."""

    code = ErrorCode.NOT_FOUND
    status_code = 404
    severity = ErrorSeverity.LOW
    suggestion = "Refresh and try again."


class FailedPreconditionError(HomeQuestError):
    """Request is well-formed but the current state forbids it."""

    code = ErrorCode.FAILED_PRECONDITION
    status_code = 409
    severity = ErrorSeverity.LOW
    suggestion = "Refresh to see the latest state and try again."


class InternalError(HomeQuestError):
    """Infrastructure failure surfaced as a generic error."""

    code = ErrorCode.INTERNAL
    status_code = 500
    severity = ErrorSeverity.HIGH


def to_error_response(exception: Exception) -> ErrorResponse:
    """Convert an exception into a structured response for the caller.

    Known errors keep their own message. Anything else is reported as a generic
    internal failure so infrastructure details never reach end users.

    Args:
        exception: The exception raised while serving a request

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    if isinstance(exception, HomeQuestError):
        return ErrorResponse(
            code=exception.code,
            message=exception.message,
            suggestion=exception.suggestion,
            severity=exception.severity,
        )

    return ErrorResponse(
        code=ErrorCode.INTERNAL,
        message="An unexpected error occurred.",
        suggestion=InternalError.suggestion,
        severity=ErrorSeverity.HIGH,
    )


def status_code_for(exception: Exception) -> int:
    """Return the HTTP status code for an exception."""
    if isinstance(exception, HomeQuestError):
        return exception.status_code
    return InternalError.status_code
