# studyup_chat/tests/unit/test_handler.py
import logging
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from studyup_chat.infrastructure import models
from studyup_chat.realtime.connection import ConnectionState
from studyup_chat.tests.conftest import create_user, make_websocket, sent_events, sent_frames

pytestmark = pytest.mark.asyncio


async def test_authenticate_sends_snapshot_and_announces(
    handler, application, authenticated, alice, bob
):
    first = await authenticated(alice)
    second = await authenticated(bob)

    assert first.state is ConnectionState.AUTHENTICATED
    assert application.presence.lookup(bob.id) == second.id
    assert sent_events(second.websocket, "users:online") == [sorted([alice.id, bob.id])]
    assert sent_events(first.websocket, "user:online") == [bob.id]
    assert sent_events(second.websocket, "user:online") == []
    assert application.rooms.members(f"user:{bob.id}") == {second.id}


@pytest.mark.parametrize("user_id", [None, "", "   ", "no-such-user"])
async def test_authenticate_rejects_unknown_identity(
    handler, application, authenticated, open_connection, alice, user_id
):
    watcher = await authenticated(alice)
    watcher.websocket.send_json.reset_mock()
    connection = open_connection()

    assert await handler.authenticate(connection, user_id) is False

    assert connection.state is ConnectionState.UNAUTHENTICATED
    connection.websocket.send_json.assert_not_called()
    watcher.websocket.send_json.assert_not_called()
    assert application.presence.list_online() == {alice.id}


async def test_authenticate_rejects_inactive_user(
    handler, database, open_connection, alice
):
    async with database.session() as session:
        user = (await session.execute(select(models.User).filter_by(id=alice.id))).scalar_one()
        user.is_active = False
        await session.commit()
    connection = open_connection()

    assert await handler.authenticate(connection, alice.id) is False


async def test_join_requires_authentication(handler, open_connection, application, chat):
    connection = open_connection()

    await handler.handle_frame(connection, {"event": "chat:join", "data": chat.id})

    assert application.rooms.members(f"chat:{chat.id}") == set()


async def test_non_participant_join_is_ignored(
    handler, authenticated, application, chat, carol
):
    intruder = await authenticated(carol)

    assert await handler.join_chat(intruder, chat.id) is False
    assert application.rooms.members(f"chat:{chat.id}") == set()


async def test_open_join_when_participant_check_disabled(
    handler, authenticated, application, chat, carol
):
    handler.require_participant = False
    connection = await authenticated(carol)

    assert await handler.join_chat(connection, chat.id) is True
    assert application.rooms.members(f"chat:{chat.id}") == {connection.id}


async def test_join_and_leave(handler, authenticated, application, chat, alice):
    connection = await authenticated(alice)

    await handler.handle_frame(connection, {"event": "chat:join", "data": chat.id})
    await handler.handle_frame(connection, {"event": "chat:join", "data": chat.id})
    assert application.rooms.members(f"chat:{chat.id}") == {connection.id}

    await handler.handle_frame(connection, {"event": "chat:leave", "data": chat.id})
    await handler.handle_frame(connection, {"event": "chat:leave", "data": chat.id})
    assert application.rooms.members(f"chat:{chat.id}") == set()
    assert connection.rooms == {f"user:{alice.id}"}


async def test_typing_reaches_room_except_sender(
    handler, authenticated, chat, alice, bob, carol
):
    typist = await authenticated(alice)
    listener = await authenticated(bob)
    outsider = await authenticated(carol)
    await handler.join_chat(typist, chat.id)
    await handler.join_chat(listener, chat.id)

    await handler.handle_frame(
        typist,
        {"event": "typing:start", "data": {"chatId": chat.id, "userId": "spoofed"}},
    )
    await handler.handle_frame(typist, {"event": "typing:stop", "data": {"chatId": chat.id}})

    notice = {"userId": alice.id, "chatId": chat.id}
    assert sent_events(listener.websocket, "typing:start") == [notice]
    assert sent_events(listener.websocket, "typing:stop") == [notice]
    assert sent_events(typist.websocket, "typing:start") == []
    assert sent_events(outsider.websocket, "typing:start") == []


async def test_typing_from_unauthenticated_connection_is_ignored(
    handler, authenticated, open_connection, chat, alice
):
    listener = await authenticated(alice)
    await handler.join_chat(listener, chat.id)
    anonymous = open_connection()

    await handler.handle_frame(anonymous, {"event": "typing:start", "data": {"chatId": chat.id}})

    assert sent_events(listener.websocket, "typing:start") == []


async def test_room_isolation(handler, authenticated, chat, database, alice, bob, carol):
    from studyup_chat.infrastructure.unit_of_work import StoreTransaction

    async with StoreTransaction(database) as store:
        other_chat = await store.chats.get_or_create_chat(alice.id, carol.id)
    in_chat = await authenticated(bob)
    in_other = await authenticated(carol)
    sender = await authenticated(alice)
    await handler.join_chat(in_chat, chat.id)
    await handler.join_chat(in_other, other_chat.id)

    await handler.handle_frame(
        sender, {"event": "message:send", "data": {"chatId": chat.id, "content": "for bob"}}
    )

    assert len(sent_events(in_chat.websocket, "message:new")) == 1
    assert sent_events(in_other.websocket, "message:new") == []


async def test_disconnect_announces_offline_once(
    handler, authenticated, application, alice, bob
):
    watcher = await authenticated(alice)
    leaving = await authenticated(bob)

    await handler.disconnect(leaving)
    await handler.disconnect(leaving)

    assert sent_events(watcher.websocket, "user:offline") == [bob.id]
    assert not application.presence.is_online(bob.id)
    assert application.rooms.get_connection(leaving.id) is None
    assert leaving.state is ConnectionState.DISCONNECTED


async def test_stale_disconnect_keeps_user_online(
    handler, authenticated, application, alice, bob
):
    watcher = await authenticated(alice)
    old = await authenticated(bob)
    new = await authenticated(bob)

    await handler.disconnect(old)

    assert application.presence.lookup(bob.id) == new.id
    assert sent_events(watcher.websocket, "user:offline") == []


async def test_unauthenticated_disconnect_is_silent(
    handler, authenticated, open_connection, alice
):
    watcher = await authenticated(alice)
    anonymous = open_connection()

    await handler.disconnect(anonymous)

    assert sent_events(watcher.websocket, "user:offline") == []


async def test_reauthenticating_as_other_user_releases_identity(
    handler, authenticated, application, chat, alice, bob, carol
):
    watcher = await authenticated(carol)
    connection = await authenticated(alice)
    await handler.join_chat(connection, chat.id)

    assert await handler.authenticate(connection, bob.id)

    assert not application.presence.is_online(alice.id)
    assert application.presence.lookup(bob.id) == connection.id
    assert sent_events(watcher.websocket, "user:offline") == [alice.id]
    assert connection.rooms == {f"user:{bob.id}"}


async def test_events_after_disconnect_are_ignored(
    handler, authenticated, application, chat, alice
):
    connection = await authenticated(alice)
    await handler.disconnect(connection)

    await handler.handle_frame(connection, {"event": "chat:join", "data": chat.id})

    assert application.rooms.members(f"chat:{chat.id}") == set()


async def test_malformed_frames_are_ignored(handler, authenticated, alice, caplog):
    connection = await authenticated(alice)
    connection.websocket.send_json.reset_mock()

    with caplog.at_level(logging.WARNING):
        await handler.handle_frame(connection, {"event": "message:delete", "data": "m1"})
        await handler.handle_frame(connection, ["not", "an", "object"])

    connection.websocket.send_json.assert_not_called()
    assert connection.state is ConnectionState.AUTHENTICATED
    assert "Ignored malformed frame" in caplog.text


async def test_two_users_exchange_message_then_one_leaves(
    handler, application, database, chat, alice, bob
):
    c1 = handler.connect(make_websocket())
    c2 = handler.connect(make_websocket())

    await handler.handle_frame(c1, {"event": "authenticate", "data": alice.id})
    await handler.handle_frame(c2, {"event": "authenticate", "data": bob.id})
    await handler.handle_frame(c1, {"event": "chat:join", "data": chat.id})
    await handler.handle_frame(c2, {"event": "chat:join", "data": chat.id})
    await handler.handle_frame(
        c1,
        {
            "event": "message:send",
            "data": {"chatId": chat.id, "content": "hello", "receiverId": bob.id},
        },
    )

    async with database.session() as session:
        stored = (await session.execute(select(models.Message))).scalars().all()
    assert [(m.sender_id, m.receiver_id, m.content) for m in stored] == [
        (alice.id, bob.id, "hello")
    ]
    for connection in (c1, c2):
        (payload,) = sent_events(connection.websocket, "message:new")
        assert payload["id"] == stored[0].id

    await handler.handle_frame(c2, {"event": "chat:leave", "data": chat.id})
    await handler.disconnect(c2)

    assert sent_frames(c1.websocket)[-1] == {"event": "user:offline", "data": bob.id}
    c3 = handler.connect(make_websocket())
    await handler.authenticate(c3, alice.id)
    assert sent_events(c3.websocket, "users:online") == [[alice.id]]


async def test_authenticate_user_with_reserved_domain_email(
    handler, application, database, open_connection
):
    dana = await create_user(database, "dana", email="dana@school.local")
    connection = open_connection()

    assert await handler.authenticate(connection, dana.id) is True
    assert application.presence.lookup(dana.id) == connection.id
    assert sent_events(connection.websocket, "users:online") == [[dana.id]]


async def test_failing_event_does_not_end_connection(
    handler, authenticated, application, chat, alice, caplog
):
    connection = await authenticated(alice)
    broken = AsyncMock(side_effect=RuntimeError("relay exploded"))

    with patch.object(handler.typing_relay, "typing_start", broken):
        await handler.handle_frame(
            connection, {"event": "typing:start", "data": {"chatId": chat.id}}
        )
    await handler.handle_frame(connection, {"event": "chat:join", "data": chat.id})

    assert "Failed to handle TypingStart" in caplog.text
    assert connection.state is ConnectionState.AUTHENTICATED
    assert application.rooms.members(f"chat:{chat.id}") == {connection.id}
