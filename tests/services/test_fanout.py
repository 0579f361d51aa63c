# mypy: ignore-errors
# tests/services/test_fanout.py
"""Tests for the connection registry, presence and event fan-out."""

import asyncio
import contextlib
import json

import pytest
from sqlalchemy.exc import OperationalError

from rchat.core.settings import settings
from rchat.models import ServerMember
from rchat.schemas.events import NewMessage, Pong, ServerDeleted, parse_event
from rchat.services.fanout import Connection, ConnectionManager, emit
from rchat.services.servers import join_server


class FakeWebSocket:
    """Just enough of a Starlette WebSocket for ``ConnectionManager.serve``."""

    def __init__(self) -> None:
        self.incoming: asyncio.Queue[dict] = asyncio.Queue()
        self.sent: list[dict] = []
        self.fail_writes = False

    async def receive(self) -> dict:
        return await self.incoming.get()

    async def send_text(self, data: str) -> None:
        if self.fail_writes:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(data))

    def client_says(self, payload: dict) -> None:
        self.incoming.put_nowait({"type": "websocket.receive", "text": json.dumps(payload)})

    def hang_up(self) -> None:
        self.incoming.put_nowait({"type": "websocket.disconnect", "code": 1000})

    def sent_types(self) -> list[str]:
        return [frame["type"] for frame in self.sent]


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def _drain(connection: Connection) -> list:
    events = []
    while not connection.queue.empty():
        events.append(connection.queue.get_nowait())
    return events


def _message_event(n: int) -> NewMessage:
    return NewMessage(
        message_id=str(n),
        channel_id="c",
        sender_username="alice",
        content=f"m{n}",
        content_type="text",
        filter_status="clean",
        created_at="2024-01-01T00:00:00+00:00",
    )


def test_publish_reaches_every_connection(manager) -> None:
    first = manager.connect(settings.guest_username)
    second = manager.connect(settings.guest_username)
    _drain(first)
    _drain(second)

    delivered = manager.publish(ServerDeleted(server_name="Gaming"))

    assert delivered == 2
    assert [e.type for e in _drain(first)] == ["server_deleted"]
    assert [e.type for e in _drain(second)] == ["server_deleted"]


def test_publish_preserves_order_per_connection(manager) -> None:
    connection = manager.connect(settings.guest_username)
    _drain(connection)
    for n in range(5):
        manager.publish(_message_event(n))
    assert [e.message_id for e in _drain(connection)] == ["0", "1", "2", "3", "4"]


def test_full_queue_drops_oldest_without_blocking(db_session) -> None:
    manager = ConnectionManager(db_session=db_session, queue_size=3)
    slow = manager.connect(settings.guest_username)
    fast = manager.connect(settings.guest_username)
    _drain(slow)

    for n in range(5):
        manager.publish(_message_event(n))
        _drain(fast)

    assert [e.message_id for e in _drain(slow)] == ["2", "3", "4"]
    assert slow.dropped == 2


def test_publish_with_no_connections(manager) -> None:
    assert manager.publish(ServerDeleted(server_name="Gaming")) == 0


def test_emit_without_publisher_is_noop() -> None:
    emit(None, ServerDeleted(server_name="Gaming"))


def test_emit_publishes_in_order(mocker) -> None:
    publisher = mocker.Mock()
    first = ServerDeleted(server_name="a")
    second = ServerDeleted(server_name="b")
    emit(publisher, first, second)
    assert publisher.publish.call_args_list == [mocker.call(first), mocker.call(second)]


def test_presence_flips_only_on_first_and_last_connection(manager, alice, community, db_session) -> None:
    watcher = manager.connect(settings.guest_username)
    _drain(watcher)

    one = manager.connect("alice")
    two = manager.connect("ALICE")
    assert [e.type for e in _drain(watcher)] == ["user_online_status_changed"]
    db_session.expire_all()
    assert db_session.get(ServerMember, ("Gaming", "alice")).is_online is True

    manager.disconnect(one)
    assert _drain(watcher) == []
    assert manager.online_usernames() == {"alice"}

    manager.disconnect(two)
    events = _drain(watcher)
    assert [(e.type, e.is_online) for e in events] == [("user_online_status_changed", False)]
    db_session.expire_all()
    assert db_session.get(ServerMember, ("Gaming", "alice")).is_online is False
    assert manager.online_usernames() == set()


def test_presence_announced_per_community(manager, alice, community, default_server, db_session) -> None:
    join_server(db_session, default_server[0].name, "alice")
    watcher = manager.connect(settings.guest_username)
    _drain(watcher)

    manager.connect("alice")

    events = _drain(watcher)
    assert sorted(e.server_name for e in events) == sorted(["Gaming", default_server[0].name])
    assert all(e.is_online for e in events)


def test_disconnect_is_idempotent(manager, alice, community) -> None:
    watcher = manager.connect(settings.guest_username)
    connection = manager.connect("alice")
    _drain(watcher)

    manager.disconnect(connection)
    manager.disconnect(connection)

    assert len(_drain(watcher)) == 1
    assert manager.connection_count() == 1


def test_guest_never_goes_online(manager, db_session, mocker) -> None:
    spy = mocker.spy(manager, "_set_presence")
    connection = manager.connect(settings.guest_username)
    manager.disconnect(connection)
    spy.assert_not_called()
    assert manager.online_usernames() == set()


def test_presence_failure_is_logged_not_raised(manager, alice, db_session, mocker, caplog) -> None:
    mocker.patch.object(
        db_session, "execute", side_effect=OperationalError("UPDATE", {}, Exception("locked"))
    )
    connection = manager.connect("alice")
    assert connection.closed is False
    assert "Failed to update presence" in caplog.text


def test_new_connection_is_greeted(manager) -> None:
    connection = manager.connect(settings.guest_username)
    events = _drain(connection)
    assert events[0].type == "connected"
    assert events[0].username == settings.guest_username


@pytest.mark.asyncio
async def test_serve_greets_answers_heartbeat_and_cleans_up(manager, alice, community, db_session) -> None:
    websocket = FakeWebSocket()
    task = asyncio.create_task(manager.serve(websocket, "alice"))

    await _wait_for(lambda: "user_online_status_changed" in websocket.sent_types())
    websocket.client_says({"type": "heartbeat"})
    await _wait_for(lambda: "pong" in websocket.sent_types())
    assert manager.connection_count() == 1

    websocket.hang_up()
    await asyncio.wait_for(task, timeout=2)

    assert websocket.sent_types()[:2] == ["connected", "user_online_status_changed"]
    assert manager.connection_count() == 0
    db_session.expire_all()
    assert db_session.get(ServerMember, ("Gaming", "alice")).is_online is False


@pytest.mark.asyncio
async def test_serve_delivers_published_events(manager) -> None:
    websocket = FakeWebSocket()
    task = asyncio.create_task(manager.serve(websocket, settings.guest_username))
    await _wait_for(lambda: websocket.sent_types() == ["connected"])

    manager.publish(ServerDeleted(server_name="Gaming"))
    await _wait_for(lambda: "server_deleted" in websocket.sent_types())

    websocket.hang_up()
    await asyncio.wait_for(task, timeout=2)
    assert websocket.sent[-1] == {"type": "server_deleted", "server_name": "Gaming"}


@pytest.mark.asyncio
async def test_failed_write_disconnects(manager) -> None:
    websocket = FakeWebSocket()
    websocket.fail_writes = True
    await asyncio.wait_for(manager.serve(websocket, settings.guest_username), timeout=2)
    assert manager.connection_count() == 0


class LingeringWebSocket(FakeWebSocket):
    """A socket whose interrupted write finishes its close handshake before giving up."""

    def __init__(self) -> None:
        super().__init__()
        self.writing = False

    async def send_text(self, data: str) -> None:
        self.writing = True
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            handshake = asyncio.ensure_future(asyncio.sleep(0.05))
            while not handshake.done():
                with contextlib.suppress(asyncio.CancelledError):
                    await asyncio.shield(handshake)
            raise


@pytest.mark.asyncio
async def test_cancelling_serve_during_teardown_keeps_its_reason(manager) -> None:
    websocket = LingeringWebSocket()
    task = asyncio.create_task(manager.serve(websocket, settings.guest_username))
    await _wait_for(lambda: websocket.writing)

    websocket.hang_up()
    await asyncio.sleep(0.01)
    task.cancel("server shutting down")

    with pytest.raises(asyncio.CancelledError) as excinfo:
        await task
    assert excinfo.value.args == ("server shutting down",)
    assert manager.connection_count() == 0
    await asyncio.sleep(0.1)


def test_events_parse_back_to_models() -> None:
    event = parse_event(Pong().model_dump_json())
    assert isinstance(event, Pong)
    message = parse_event(_message_event(7).model_dump_json())
    assert isinstance(message, NewMessage)
    assert message.message_id == "7"


def test_observer_sees_only_events_published_after_it_joined(manager, published) -> None:
    assert published() == []
    manager.publish(ServerDeleted(server_name="Gaming"))
    assert [event.type for event in published()] == ["server_deleted"]


def test_queues_are_always_bounded(monkeypatch) -> None:
    from pydantic import ValidationError

    from rchat.core.settings import Settings

    monkeypatch.setenv("WS_QUEUE_SIZE", "0")
    with pytest.raises(ValidationError):
        Settings()
    with pytest.raises(ValueError, match="at least 1"):
        ConnectionManager(queue_size=0)
