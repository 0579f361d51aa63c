# src/rchat/services/accounts.py
"""Registration, login and the login throttle."""

from __future__ import annotations

import hashlib
import logging
import time
from datetime import timedelta
from threading import Lock

import redis
from sqlalchemy import func
from sqlalchemy.orm import Session

from rchat.core.errors import (
    AuthenticationError,
    ConflictError,
    RateLimitedError,
    ValidationError,
)
from rchat.core.security import create_access_token, hash_password, verify_password
from rchat.core.settings import settings
from rchat.db.time import utcnow
from rchat.models import BannedUsername, Server, User
from rchat.models.user import PROFILE_TYPE_IDENTICON
from rchat.services.fanout import EventPublisher
from rchat.services.permissions import require_admin
from rchat.services.servers import join_server
from rchat.utils.validation import validate_password, validate_username

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


class LoginThrottle:
    """Rejects a login attempt that follows another for the same name too quickly.

    Backed by Redis when ``REDIS_URL`` is set and reachable; falls back to an
    in-process cache otherwise.
    """

    def __init__(self, redis_url: str | None = None, window_seconds: int | None = None) -> None:
        self._window = settings.login_throttle_seconds if window_seconds is None else window_seconds
        self._redis: redis.Redis | None = None
        url = redis_url if redis_url is not None else settings.redis_url
        if url:
            try:
                self._redis = redis.Redis.from_url(url)
            except ValueError as exc:
                logger.warning("Ignoring invalid REDIS_URL: %s", exc)
        self._attempts: dict[str, float] = {}
        self._lock = Lock()

    def hit(self, username: str) -> bool:
        """Record an attempt for ``username``; return True if it must be rejected."""
        if self._window <= 0:
            return False
        key = f"login:{username.lower()}"
        if self._redis is not None:
            try:
                # SET NX only succeeds when no attempt is inside the window.
                return not self._redis.set(key, "1", ex=int(self._window), nx=True)
            except redis.RedisError as exc:
                logger.warning("Redis unavailable for login throttle, using local cache: %s", exc)
                self._redis = None

        now = time.monotonic()
        with self._lock:
            for stale in [name for name, expiry in self._attempts.items() if expiry <= now]:
                self._attempts.pop(stale, None)
            if key in self._attempts:
                return True
            self._attempts[key] = now + self._window
            return False

    def reset(self) -> None:
        with self._lock:
            self._attempts.clear()


_THROTTLE: LoginThrottle | None = None
_THROTTLE_LOCK = Lock()


def get_login_throttle() -> LoginThrottle:
    """Return the process-wide login throttle."""
    global _THROTTLE
    with _THROTTLE_LOCK:
        if _THROTTLE is None:
            _THROTTLE = LoginThrottle()
        return _THROTTLE


def _avatar_color(username: str) -> str:
    digest = hashlib.sha256(username.lower().encode("utf-8")).hexdigest()
    return f"#{digest[:6]}"


def _find_user(db: Session, username: str) -> User | None:
    return db.query(User).filter(func.lower(User.username) == username.lower()).first()


def register_user(
    db: Session,
    username: str,
    password: str,
    profile_type: str = PROFILE_TYPE_IDENTICON,
    avatar_color: str | None = None,
    events: EventPublisher | None = None,
) -> User:
    """Create an account and put it in the default community.

    Raises:
        ValidationError: Bad username or password, or a reserved name.
        ConflictError: The name is on the site-ban log or already taken.
    """
    validate_username(username)
    validate_password(password)
    if username.lower() == settings.guest_username.lower():
        raise ValidationError("Username is reserved")

    banned = (
        db.query(BannedUsername)
        .filter(func.lower(BannedUsername.username) == username.lower())
        .first()
    )
    if banned is not None:
        raise ConflictError("Username is permanently banned")
    if _find_user(db, username) is not None:
        raise ConflictError("Username already exists")

    user = User(
        username=username,
        password_hash=hash_password(password),
        profile_type=profile_type,
        avatar_color=avatar_color or _avatar_color(username),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", username)

    if db.get(Server, settings.default_server_name) is not None:
        join_server(db, settings.default_server_name, user.username, events=events)
    return user


def login_user(
    db: Session,
    username: str,
    password: str,
    throttle: LoginThrottle | None = None,
    events: EventPublisher | None = None,
) -> tuple[str, User]:
    """Check credentials and return ``(access_token, user)``.

    The throttle runs before the user table is read. Each failure counts
    against the account, which is locked for ``LOGIN_LOCK_HOURS`` after
    ``LOGIN_MAX_ATTEMPTS`` failures; a success resets the counter.
    """
    throttle = throttle or get_login_throttle()
    if throttle.hit(username):
        raise RateLimitedError()

    user = _find_user(db, username)
    if user is None:
        raise AuthenticationError(INVALID_CREDENTIALS)
    if user.is_locked():
        raise AuthenticationError("Account is locked. Try again later.")

    if not verify_password(password, user.password_hash):
        user.login_attempts = (user.login_attempts or 0) + 1
        if user.login_attempts >= settings.login_max_attempts:
            user.account_locked = True
            user.lock_until = utcnow() + timedelta(hours=settings.login_lock_hours)
            logger.warning("Account %s locked after %d failed logins", user.username, user.login_attempts)
        db.commit()
        raise AuthenticationError(INVALID_CREDENTIALS)

    user.login_attempts = 0
    user.account_locked = False
    user.lock_until = None
    user.last_login = utcnow()
    db.commit()

    if db.get(Server, settings.default_server_name) is not None:
        join_server(db, settings.default_server_name, user.username, events=events)

    return create_access_token(user.username), user


def list_users(
    db: Session,
    requester: str,
    q: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[User], int]:
    """Return one page of accounts, newest first, and the matching total.

    The internal system account is never listed.
    """
    require_admin(db, requester)
    query = db.query(User).filter(func.lower(User.username) != settings.system_username.lower())
    if q:
        query = query.filter(func.lower(User.username).contains(q.lower()))
    total = query.count()
    page = (
        query.order_by(User.created_at.desc(), User.username)
        .offset(max(offset, 0))
        .limit(max(min(limit, 200), 1))
        .all()
    )
    return page, total
