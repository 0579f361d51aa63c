# src/rchat/schemas/user.py
"""User-related Pydantic schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """Payload submitted to create an account."""

    username: str = Field(..., description="Printable ASCII, 1-64 characters")
    password: str
    profile_type: Literal["identicon", "person"] = "identicon"
    avatar_color: str | None = None


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    """Access token issued after a successful login or registration."""

    access_token: str
    token_type: str = "bearer"
    username: str


class UserResponse(BaseModel):
    """Public view of a user."""

    username: str
    profile_type: str
    avatar_color: str | None
    is_admin: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserPage(BaseModel):
    """One page of the site-wide account list."""

    users: list[UserResponse]
    total: int
