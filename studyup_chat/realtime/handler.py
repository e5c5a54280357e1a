# studyup_chat/realtime/handler.py
import logging
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.websockets import WebSocket

from studyup_chat.infrastructure.database import Database
from studyup_chat.infrastructure.unit_of_work import StoreTransaction
from studyup_chat.realtime import protocol
from studyup_chat.realtime.connection import Connection, ConnectionState
from studyup_chat.realtime.delivery import MessageDeliveryPipeline
from studyup_chat.realtime.presence import PresenceRegistry
from studyup_chat.realtime.rooms import RoomManager
from studyup_chat.realtime.typing_relay import TypingRelay


class ConnectionHandler:
    """Drives each connection through Unauthenticated -> Authenticated -> Disconnected.

    Out of order or malformed client events are logged and ignored; nothing
    here closes a connection on the client's behalf.
    """

    def __init__(
        self,
        database: Database,
        presence: PresenceRegistry,
        rooms: RoomManager,
        pipeline: MessageDeliveryPipeline,
        typing_relay: TypingRelay,
        logger: logging.Logger,
        require_participant: bool = True,
    ):
        self.database = database
        self.presence = presence
        self.rooms = rooms
        self.pipeline = pipeline
        self.typing_relay = typing_relay
        self.logger = logger
        self.require_participant = require_participant
        self._handlers = {
            protocol.Authenticate: self._on_authenticate,
            protocol.ChatJoin: self._on_chat_join,
            protocol.ChatLeave: self._on_chat_leave,
            protocol.TypingStart: self._on_typing_start,
            protocol.TypingStop: self._on_typing_stop,
            protocol.MessageSend: self._on_message_send,
        }

    def connect(self, websocket: WebSocket) -> Connection:
        connection = Connection(websocket)
        self.rooms.add_connection(connection)
        self.logger.info(f"Connection {connection.id} opened")
        return connection

    async def handle_frame(self, connection: Connection, frame: Any) -> None:
        try:
            event = protocol.parse_client_frame(frame)
        except ValidationError as e:
            self.logger.warning(
                f"Ignored malformed frame from connection {connection.id}: "
                f"{e.error_count()} error(s)"
            )
            return
        await self.handle(connection, event)

    async def handle(self, connection: Connection, event: protocol.ClientEvent) -> None:
        if connection.state is ConnectionState.DISCONNECTED:
            return
        try:
            await self._handlers[type(event)](connection, event)
        except Exception:
            self.logger.exception(
                f"Failed to handle {type(event).__name__} from connection {connection.id}"
            )

    async def _on_authenticate(self, connection: Connection, event: protocol.Authenticate):
        await self.authenticate(connection, event.data)

    async def _on_chat_join(self, connection: Connection, event: protocol.ChatJoin):
        await self.join_chat(connection, event.data)

    async def _on_chat_leave(self, connection: Connection, event: protocol.ChatLeave):
        self.leave_chat(connection, event.data)

    async def _on_typing_start(self, connection: Connection, event: protocol.TypingStart):
        await self.typing_relay.typing_start(connection, event.data.chat_id)

    async def _on_typing_stop(self, connection: Connection, event: protocol.TypingStop):
        await self.typing_relay.typing_stop(connection, event.data.chat_id)

    async def _on_message_send(self, connection: Connection, event: protocol.MessageSend):
        await self.pipeline.send_message(
            connection, event.data.chat_id, event.data.content, event.data.receiver_id
        )

    async def authenticate(self, connection: Connection, user_id: Optional[str]) -> bool:
        user_id = (user_id or "").strip()
        if not user_id:
            self.logger.warning(f"Connection {connection.id} sent authenticate without a user id")
            return False

        try:
            async with StoreTransaction(self.database) as store:
                user = await store.users.get_active_user(user_id)
        except (SQLAlchemyError, OSError):
            self.logger.exception(f"User lookup failed while authenticating {connection.id}")
            return False
        if user is None:
            self.logger.warning(
                f"Connection {connection.id} tried to authenticate as unknown user {user_id}"
            )
            return False

        if connection.is_authenticated and connection.user_id != user_id:
            await self._release_identity(connection)

        connection.bind(user_id)
        self.presence.register(user_id, connection.id)
        self.rooms.join(connection, self.rooms.user_room(user_id))
        self.logger.info(f"User {user_id} authenticated on connection {connection.id}")

        await self.rooms.emit_to_authenticated(
            protocol.USER_ONLINE, user_id, exclude=connection.id
        )
        await self.rooms.emit_to_connection(
            connection.id, protocol.USERS_ONLINE, sorted(self.presence.list_online())
        )
        return True

    async def _release_identity(self, connection: Connection) -> None:
        previous = connection.user_id
        for room in list(connection.rooms):
            self.rooms.leave(connection, room)
        if self.presence.unregister(previous, connection.id):
            await self.rooms.emit_to_authenticated(
                protocol.USER_OFFLINE, previous, exclude=connection.id
            )
        self.logger.info(f"Connection {connection.id} released identity {previous}")

    async def join_chat(self, connection: Connection, chat_id: Optional[str]) -> bool:
        if not connection.is_authenticated:
            self.logger.warning(f"Ignored chat:join from unauthenticated connection {connection.id}")
            return False
        if not chat_id:
            return False

        if self.require_participant:
            try:
                async with StoreTransaction(self.database) as store:
                    allowed = await store.chats.is_participant(chat_id, connection.user_id)
            except (SQLAlchemyError, OSError):
                self.logger.exception(f"Participant check failed for chat {chat_id}")
                return False
            if not allowed:
                self.logger.warning(
                    f"User {connection.user_id} is not a participant of chat {chat_id}; join ignored"
                )
                return False

        self.rooms.join(connection, self.rooms.chat_room(chat_id))
        return True

    def leave_chat(self, connection: Connection, chat_id: Optional[str]) -> bool:
        if not chat_id:
            return False
        return self.rooms.leave(connection, self.rooms.chat_room(chat_id))

    async def disconnect(self, connection: Connection) -> None:
        if connection.state is ConnectionState.DISCONNECTED:
            return
        user_id = connection.user_id if connection.is_authenticated else None

        self.rooms.discard(connection)
        connection.close()
        self.logger.info(f"Connection {connection.id} closed")

        if user_id and self.presence.unregister(user_id, connection.id):
            await self.rooms.emit_to_authenticated(protocol.USER_OFFLINE, user_id)
