"""Credential helpers: password hashing and access tokens."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from passlib.context import CryptContext

from rchat.core.settings import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Return a salted bcrypt hash of ``password``."""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check ``password`` against a stored hash; unrecognised hashes never match."""
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        return False


def create_access_token(username: str, expires_minutes: int | None = None) -> str:
    """Issue a signed JWT whose subject is ``username``."""
    minutes = expires_minutes or settings.access_token_expire_minutes
    expire = datetime.now(UTC) + timedelta(minutes=minutes)
    payload = {"sub": username, "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def resolve_identity(token: str) -> str:
    """Return the username carried by ``token``.

    Raises:
        JWTError: If the token is malformed, expired or has no subject.
    """
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    subject = payload.get("sub")
    if not subject:
        raise JWTError("Token has no subject")
    return str(subject)
