# studyup_chat/tests/unit/test_rooms.py
import logging

import pytest

from studyup_chat.realtime.connection import Connection
from studyup_chat.realtime.presence import PresenceRegistry
from studyup_chat.realtime.rooms import RoomManager
from studyup_chat.tests.conftest import make_websocket, sent_frames


@pytest.fixture
def presence():
    return PresenceRegistry(logging.getLogger("test_rooms"))


@pytest.fixture
def rooms(presence):
    return RoomManager(presence, logging.getLogger("test_rooms"))


@pytest.fixture
def connect(rooms):
    def _connect(user_id=None):
        connection = Connection(make_websocket())
        if user_id:
            connection.bind(user_id)
        rooms.add_connection(connection)
        return connection

    return _connect


def test_room_names():
    assert RoomManager.user_room("u1") == "user:u1"
    assert RoomManager.chat_room("c1") == "chat:c1"


def test_join_is_idempotent(rooms, connect):
    connection = connect("u1")

    assert rooms.join(connection, "chat:1") is True
    assert rooms.join(connection, "chat:1") is False
    assert rooms.members("chat:1") == {connection.id}
    assert connection.rooms == {"chat:1"}


def test_leave_unknown_room_is_noop(rooms, connect):
    connection = connect("u1")

    assert rooms.leave(connection, "chat:1") is False

    rooms.join(connection, "chat:1")
    assert rooms.leave(connection, "chat:1") is True
    assert rooms.members("chat:1") == set()
    assert "chat:1" not in rooms.rooms


def test_discard_drops_every_membership(rooms, connect):
    connection = connect("u1")
    other = connect("u2")
    rooms.join(connection, "chat:1")
    rooms.join(connection, "user:u1")
    rooms.join(other, "chat:1")

    rooms.discard(connection)

    assert connection.rooms == set()
    assert rooms.members("chat:1") == {other.id}
    assert "user:u1" not in rooms.rooms
    assert rooms.get_connection(connection.id) is None


@pytest.mark.asyncio
async def test_emit_to_room_reaches_members_only(rooms, connect):
    member = connect("u1")
    outsider = connect("u2")
    rooms.join(member, "chat:1")

    delivered = await rooms.emit_to_chat("1", "message:new", {"id": "m1"})

    assert delivered == 1
    assert sent_frames(member.websocket) == [{"event": "message:new", "data": {"id": "m1"}}]
    outsider.websocket.send_json.assert_not_called()


@pytest.mark.asyncio
async def test_emit_to_chat_except_skips_users_registered_connection(rooms, presence, connect):
    sender = connect("u1")
    receiver = connect("u2")
    presence.register("u1", sender.id)
    rooms.join(sender, "chat:1")
    rooms.join(receiver, "chat:1")

    await rooms.emit_to_chat_except("1", "u1", "typing:start", {"userId": "u1"})

    sender.websocket.send_json.assert_not_called()
    receiver.websocket.send_json.assert_called_once()


@pytest.mark.asyncio
async def test_failed_send_does_not_abort_fan_out(rooms, connect, caplog):
    broken = connect("u1")
    healthy = connect("u2")
    broken.websocket.send_json.side_effect = RuntimeError("socket closed")
    rooms.join(broken, "chat:1")
    rooms.join(healthy, "chat:1")

    with caplog.at_level(logging.WARNING, logger="test_rooms"):
        delivered = await rooms.emit_to_chat("1", "message:new", {"id": "m1"})

    assert delivered == 1
    healthy.websocket.send_json.assert_called_once()
    assert "Dropped message:new" in caplog.text


@pytest.mark.asyncio
async def test_emit_to_authenticated_skips_anonymous_and_excluded(rooms, connect):
    anonymous = connect()
    first = connect("u1")
    second = connect("u2")

    await rooms.emit_to_authenticated("user:online", "u1", exclude=first.id)

    anonymous.websocket.send_json.assert_not_called()
    first.websocket.send_json.assert_not_called()
    assert sent_frames(second.websocket) == [{"event": "user:online", "data": "u1"}]
