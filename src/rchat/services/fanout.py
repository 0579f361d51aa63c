# src/rchat/services/fanout.py
"""Presence tracking and live event fan-out.

The :class:`ConnectionManager` owns every live socket. Each connection gets a
bounded queue; :meth:`ConnectionManager.publish` copies one event into every
queue without ever waiting, and a per-connection writer task drains its queue
into the socket. Presence (``server_members.is_online``) flips only when an
identity gains its first live connection or loses its last one.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rchat.core.settings import settings
from rchat.db.session import SessionLocal
from rchat.db.time import utcnow
from rchat.models import ServerMember
from rchat.schemas.events import (
    ClientFrame,
    Connected,
    ErrorEvent,
    PresenceChanged,
    Pong,
    ServerEvent,
)

logger = logging.getLogger(__name__)

HEARTBEAT_FRAME = "heartbeat"


class EventPublisher(Protocol):
    """Anything that accepts events for fan-out; :class:`ConnectionManager` in production."""

    def publish(self, event: ServerEvent) -> int: ...


def emit(publisher: EventPublisher | None, *events: ServerEvent) -> None:
    """Publish ``events`` in order when a publisher is wired in."""
    if publisher is None:
        return
    for event in events:
        publisher.publish(event)


@dataclass(eq=False)
class Connection:
    """One live socket: its owner, its id and its bounded event queue."""

    username: str
    queue: asyncio.Queue[ServerEvent]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=utcnow)
    dropped: int = 0
    closed: bool = False

    def offer(self, event: ServerEvent) -> None:
        """Enqueue ``event``, evicting the oldest queued event when full."""
        try:
            self.queue.put_nowait(event)
            return
        except asyncio.QueueFull:
            pass
        try:
            self.queue.get_nowait()
        except asyncio.QueueEmpty:
            pass
        self.dropped += 1
        self.queue.put_nowait(event)
        if self.dropped == 1 or self.dropped % 100 == 0:
            logger.warning(
                "Connection %s (%s) is lagging; %d events dropped",
                self.id,
                self.username,
                self.dropped,
            )


class ConnectionManager:
    """Registry of live connections plus the single shared event bus."""

    def __init__(self, db_session: Session | None = None, queue_size: int | None = None) -> None:
        """Initialize the manager.

        Args:
            db_session: Optional session used for presence updates. If None, a
                new session is opened per presence transition.
            queue_size: Per-connection buffer; defaults to ``WS_QUEUE_SIZE``.
        """
        self._db_session = db_session
        self._queue_size = settings.ws_queue_size if queue_size is None else queue_size
        if self._queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self._connections: dict[str, Connection] = {}
        self._live_by_identity: dict[str, int] = {}
        self._lock = threading.Lock()

    # --- Registry ------------------------------------------------------------------
    def connect(self, username: str) -> Connection:
        """Register a new connection for ``username`` and greet it."""
        connection = Connection(username=username, queue=asyncio.Queue(maxsize=self._queue_size))
        key = username.lower()
        with self._lock:
            self._connections[connection.id] = connection
            live = self._live_by_identity.get(key, 0) + 1
            self._live_by_identity[key] = live

        logger.info("Connection %s opened for %s (%d live)", connection.id, username, live)
        connection.offer(Connected(username=username))
        if live == 1 and not self._is_guest(username):
            self._set_presence(username, online=True)
        return connection

    def disconnect(self, connection: Connection) -> None:
        """Unregister ``connection``. Only the first call has any effect."""
        key = connection.username.lower()
        with self._lock:
            if connection.closed:
                return
            connection.closed = True
            self._connections.pop(connection.id, None)
            live = self._live_by_identity.get(key, 1) - 1
            if live > 0:
                self._live_by_identity[key] = live
            else:
                self._live_by_identity.pop(key, None)

        logger.info(
            "Connection %s closed for %s (%d live)", connection.id, connection.username, live
        )
        if live <= 0 and not self._is_guest(connection.username):
            self._set_presence(connection.username, online=False)

    def publish(self, event: ServerEvent) -> int:
        """Fan ``event`` out to every registered connection.

        Never blocks. Returns the number of connections the event was queued on.
        """
        with self._lock:
            snapshot = list(self._connections.values())
        for connection in snapshot:
            connection.offer(event)
        logger.debug("Published %s to %d connections", event.type, len(snapshot))
        return len(snapshot)

    def online_usernames(self) -> set[str]:
        """Return the identities (lowercased, guest excluded) with a live connection."""
        guest = settings.guest_username.lower()
        with self._lock:
            return {name for name in self._live_by_identity if name != guest}

    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    # --- Socket lifecycle ------------------------------------------------------------
    async def serve(self, websocket: WebSocket, username: str) -> None:
        """Pump events to and frames from an accepted ``websocket`` until either side ends.

        The reader and writer run as sibling tasks; whichever finishes first
        cancels the other, and the connection is torn down exactly once.
        """
        connection = self.connect(username)
        reader = asyncio.create_task(self._read_frames(websocket, connection))
        writer = asyncio.create_task(self._write_events(websocket, connection))
        try:
            done, pending = await asyncio.wait(
                {reader, writer}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
            # Not gather(): an outside cancellation must keep its own reason.
            if pending:
                await asyncio.wait(pending)
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    logger.warning(
                        "Connection %s task failed: %r", connection.id, task.exception()
                    )
        finally:
            for task in (reader, writer):
                if not task.done():
                    task.cancel()
            self.disconnect(connection)

    async def _read_frames(self, websocket: WebSocket, connection: Connection) -> None:
        while True:
            message = await websocket.receive()
            if message.get("type") == "websocket.disconnect":
                return
            text = message.get("text")
            if text is None:
                continue
            frame = self._parse_frame(text)
            if frame is None:
                connection.offer(ErrorEvent(message="Malformed frame"))
            elif frame.type == HEARTBEAT_FRAME:
                connection.offer(Pong())

    async def _write_events(self, websocket: WebSocket, connection: Connection) -> None:
        while True:
            event = await connection.queue.get()
            try:
                await websocket.send_text(event.model_dump_json())
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                logger.warning("Write to connection %s failed: %s", connection.id, exc)
                return

    @staticmethod
    def _parse_frame(text: str) -> ClientFrame | None:
        try:
            return ClientFrame.model_validate_json(text)
        except ValidationError:
            logger.debug("Malformed client frame: %.80r", text)
            return None

    # --- Presence --------------------------------------------------------------------
    @staticmethod
    def _is_guest(username: str) -> bool:
        return username.lower() == settings.guest_username.lower()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        if self._db_session is not None:
            yield self._db_session
        else:
            with SessionLocal() as db:
                yield db

    def _set_presence(self, username: str, *, online: bool) -> None:
        """Persist the presence flag on every membership and announce it per community."""
        with self._session() as db:
            try:
                db.execute(
                    update(ServerMember)
                    .where(func.lower(ServerMember.username) == username.lower())
                    .values(is_online=online, last_seen=utcnow())
                    .execution_options(synchronize_session=False)
                )
                db.commit()
                server_names = (
                    db.query(ServerMember.server_name)
                    .filter(func.lower(ServerMember.username) == username.lower())
                    .order_by(ServerMember.server_name)
                    .all()
                )
            except SQLAlchemyError:
                db.rollback()
                logger.exception("Failed to update presence for %s", username)
                return

        for (server_name,) in server_names:
            self.publish(
                PresenceChanged(server_name=server_name, username=username, is_online=online)
            )
