# src/rchat/api/v1/endpoints/auth.py
"""Authentication endpoints for the RChat API."""

from __future__ import annotations

from fastapi import APIRouter, status

from rchat.core.security import create_access_token
from rchat.models import User
from rchat.schemas.user import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from rchat.services.accounts import login_user, register_user

from ..dependencies import CurrentUserDep, ManagerDep, SessionDep, ThrottleDep

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    db: SessionDep,
    manager: ManagerDep,
) -> TokenResponse:
    """Create an account and return an access token for it."""
    user = register_user(
        db,
        payload.username,
        payload.password,
        profile_type=payload.profile_type,
        avatar_color=payload.avatar_color,
        events=manager,
    )
    return TokenResponse(access_token=create_access_token(user.username), username=user.username)


@router.post("/login", response_model=TokenResponse)
async def login(
    payload: LoginRequest,
    db: SessionDep,
    throttle: ThrottleDep,
    manager: ManagerDep,
) -> TokenResponse:
    """Exchange credentials for an access token."""
    token, user = login_user(db, payload.username, payload.password, throttle=throttle, events=manager)
    return TokenResponse(access_token=token, username=user.username)


@router.get("/me", response_model=UserResponse)
async def me(current_user: CurrentUserDep) -> User:
    return current_user


@router.post("/logout")
async def logout() -> dict[str, bool]:
    """Acknowledge a logout. Tokens are stateless; the client discards its own."""
    return {"success": True}
