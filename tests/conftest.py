# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("AUTO_BOOTSTRAP", "false")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from rchat.api.v1.dependencies import get_connection_manager
from rchat.core.security import create_access_token, hash_password
from rchat.core.settings import settings
from rchat.db.session import Base
from rchat.db.session import get_db as app_get_session
from rchat.main import app as fastapi_app
from rchat.models import Channel, Server, User
from rchat.schemas.events import ServerEvent
from rchat.services.accounts import LoginThrottle, get_login_throttle
from rchat.services.fanout import Connection, ConnectionManager
from rchat.services.servers import create_server, ensure_default_server

TEST_DB_URL = "sqlite://"
TEST_PASSWORD = "correct-horse-battery"

# Hashing is deliberately slow; do it once for every fixture user.
_PASSWORD_HASH = hash_password(TEST_PASSWORD)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()
    session.begin_nested()

    @event.listens_for(session, "after_transaction_end")
    def restart_savepoint(sess: Session, trans) -> None:  # pragma: no cover - SQLAlchemy internals
        if trans.nested and not getattr(trans._parent, "nested", False):
            session.begin_nested()

    try:
        yield session
    finally:
        event.remove(session, "after_transaction_end", restart_savepoint)
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def manager(db_session: Session) -> ConnectionManager:
    """A connection manager that writes presence through the test session."""
    return ConnectionManager(db_session=db_session, queue_size=64)


@pytest.fixture(autouse=True)
def override_connection_manager(app: FastAPI, manager: ConnectionManager) -> Iterator[None]:
    app.dependency_overrides[get_connection_manager] = lambda: manager
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_connection_manager, None)


@pytest.fixture()
def throttle() -> LoginThrottle:
    """A local-only throttle with the window disabled."""
    return LoginThrottle(redis_url="", window_seconds=0)


@pytest.fixture(autouse=True)
def override_login_throttle(app: FastAPI, throttle: LoginThrottle) -> Iterator[None]:
    app.dependency_overrides[get_login_throttle] = lambda: throttle
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_login_throttle, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def observer(manager: ConnectionManager) -> Connection:
    """A guest subscriber used to capture published events, greeting already consumed."""
    connection = manager.connect(settings.guest_username)
    _drain(connection)
    return connection


def _drain(connection: Connection) -> list[ServerEvent]:
    events: list[ServerEvent] = []
    while not connection.queue.empty():
        events.append(connection.queue.get_nowait())
    return events


@pytest.fixture()
def published(observer: Connection):
    """Return a callable that pops every event the observer has received so far."""

    def _published() -> list[ServerEvent]:
        return _drain(observer)

    return _published


def _make_user(db_session: Session, username: str, *, is_admin: bool = False) -> User:
    user = User(
        username=username,
        password_hash=_PASSWORD_HASH,
        avatar_color="#123456",
        is_admin=is_admin,
    )
    db_session.add(user)
    db_session.flush()
    db_session.refresh(user)
    return user


@pytest.fixture()
def make_user(db_session: Session):
    """Factory for extra persisted users."""

    def _factory(username: str, *, is_admin: bool = False) -> User:
        return _make_user(db_session, username, is_admin=is_admin)

    return _factory


@pytest.fixture()
def alice(db_session: Session) -> User:
    """The primary test user."""
    return _make_user(db_session, "alice")


@pytest.fixture()
def bob(db_session: Session) -> User:
    """A second ordinary user."""
    return _make_user(db_session, "bob")


@pytest.fixture()
def site_admin(db_session: Session) -> User:
    """A user carrying the site-admin flag."""
    return _make_user(db_session, "root", is_admin=True)


def auth_headers(username: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(username)}"}


@pytest.fixture()
def headers_for():
    """Factory for bearer headers of an arbitrary username."""
    return auth_headers


@pytest.fixture()
def alice_headers(alice: User) -> dict[str, str]:
    return auth_headers(alice.username)


@pytest.fixture()
def bob_headers(bob: User) -> dict[str, str]:
    return auth_headers(bob.username)


@pytest.fixture()
def admin_headers(site_admin: User) -> dict[str, str]:
    return auth_headers(site_admin.username)


@pytest.fixture()
def default_server(db_session: Session) -> tuple[Server, Channel]:
    """The distinguished default community and its first channel."""
    return ensure_default_server(db_session)


@pytest.fixture()
def community(db_session: Session, alice: User) -> Server:
    """A community created (and so administered) by alice."""
    return create_server(db_session, "Gaming", alice.username)


@pytest.fixture()
def community_channel(db_session: Session, community: Server) -> Channel:
    return (
        db_session.query(Channel)
        .filter(Channel.server_name == community.name, Channel.is_active.is_(True))
        .order_by(Channel.position)
        .first()
    )
