"""Error taxonomy shared by every service.

Services raise these; the API layer turns them into JSON responses through a
single exception handler registered in :mod:`rchat.main`.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class RChatError(Exception):
    """Base class for errors that are reported to the caller."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_type: str = "bad_request"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, str]:
        return {"error": self.error_type, "message": self.message}


class ValidationError(RChatError):
    """Malformed input, size or charset limits."""

    error_type = "validation_error"


class BadRequestError(RChatError):
    """A well-formed request that makes no sense for the current state."""

    error_type = "bad_request"


class AuthenticationError(RChatError):
    """Missing or wrong credentials, or a locked account."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "unauthorized"


class AuthorizationError(RChatError):
    """The caller lacks the privilege required for the action."""

    status_code = status.HTTP_403_FORBIDDEN
    error_type = "forbidden"


class NotMemberError(AuthorizationError):
    """The caller is not even a member of the community in scope."""

    error_type = "not_a_member"


class InsufficientRoleError(AuthorizationError):
    """The caller is a member but does not hold the required role."""

    error_type = "insufficient_role"


class NotFoundError(RChatError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"


class ConflictError(RChatError):
    status_code = status.HTTP_409_CONFLICT
    error_type = "conflict"


class RateLimitedError(RChatError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error_type = "rate_limit_exceeded"

    def __init__(self, message: str = "Too many requests, please try again later") -> None:
        super().__init__(message)


class InternalError(RChatError):
    """Persistence or cascade failure; detail is logged, not returned."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type = "internal_error"

    def to_payload(self) -> dict[str, str]:
        return {"error": self.error_type, "message": "Internal server error"}


async def rchat_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render an :class:`RChatError` as a JSON response."""
    assert isinstance(exc, RChatError)
    if isinstance(exc, InternalError):
        logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.message)
    else:
        logger.debug("%s on %s: %s", exc.error_type, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RChatError, rchat_error_handler)
