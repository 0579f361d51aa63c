# src/rchat/api/v1/dependencies.py
"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session
from starlette.requests import HTTPConnection

from rchat.core.security import resolve_identity
from rchat.core.settings import settings
from rchat.db.session import get_db
from rchat.models import User
from rchat.services.accounts import LoginThrottle, get_login_throttle
from rchat.services.fanout import ConnectionManager

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer token credentials
        db: Database session

    Returns:
        User object for the authenticated user

    Raises:
        HTTPException: If token is invalid or user not found
    """
    try:
        username = resolve_identity(credentials.credentials)
    except JWTError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    user = db.get(User, username)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


def identity_from_token(token: str | None, db: Session) -> str:
    """Resolve a live-socket token to a username, falling back to the guest identity."""
    if not token:
        return settings.guest_username
    try:
        username = resolve_identity(token)
    except JWTError:
        return settings.guest_username
    if db.get(User, username) is None:
        return settings.guest_username
    return username


def get_connection_manager(connection: HTTPConnection) -> ConnectionManager:
    """Return the application's connection manager."""
    return connection.app.state.connections


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]
ManagerDep = Annotated[ConnectionManager, Depends(get_connection_manager)]
ThrottleDep = Annotated[LoginThrottle, Depends(get_login_throttle)]
