# studyup_chat/realtime/delivery.py
import asyncio
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from studyup_chat.domain.events import MessageCreated
from studyup_chat.infrastructure import schemas
from studyup_chat.infrastructure.database import Database
from studyup_chat.infrastructure.event_dispatcher import EventDispatcher
from studyup_chat.infrastructure.unit_of_work import StoreTransaction
from studyup_chat.realtime import protocol
from studyup_chat.realtime.connection import Connection
from studyup_chat.realtime.rooms import RoomManager


class MessageDeliveryPipeline:
    """Validate, persist, then broadcast.

    Nothing is broadcast until the write has committed, and the sender
    receives the broadcast like every other member of the chat room. A failed
    or timed out write is reported to the sender alone and never retried.
    """

    def __init__(
        self,
        database: Database,
        event_dispatcher: EventDispatcher,
        rooms: RoomManager,
        logger: logging.Logger,
        persist_timeout: Optional[float] = 10.0,
    ):
        self.database = database
        self.event_dispatcher = event_dispatcher
        self.rooms = rooms
        self.logger = logger
        self.persist_timeout = persist_timeout if persist_timeout and persist_timeout > 0 else None

    async def send_message(
        self,
        connection: Connection,
        chat_id: Optional[str],
        content: Optional[str],
        receiver_id: Optional[str] = None,
    ) -> Optional[schemas.Message]:
        if not connection.is_authenticated:
            self.logger.warning(
                f"Dropped message:send from unauthenticated connection {connection.id}"
            )
            return None
        if not chat_id:
            self.logger.warning(
                f"Dropped message:send without chatId from user {connection.user_id}"
            )
            return None
        text = (content or "").strip()
        if not text:
            self.logger.warning(
                f"Dropped empty message:send from user {connection.user_id} to chat {chat_id}"
            )
            return None

        try:
            message = await self.persist(chat_id, connection.user_id, text, receiver_id)
        except asyncio.TimeoutError:
            self.logger.error(
                f"Timed out after {self.persist_timeout}s storing message for chat {chat_id}"
            )
            await self.rooms.emit_to_connection(
                connection.id, protocol.MESSAGE_ERROR, protocol.message_error(chat_id)
            )
            return None
        except (ValueError, SQLAlchemyError, OSError):
            self.logger.exception(
                f"Failed to store message from user {connection.user_id} for chat {chat_id}"
            )
            await self.rooms.emit_to_connection(
                connection.id, protocol.MESSAGE_ERROR, protocol.message_error(chat_id)
            )
            return None

        await self.broadcast_message(message)
        return message

    async def persist(
        self,
        chat_id: str,
        sender_id: str,
        content: str,
        receiver_id: Optional[str] = None,
    ) -> schemas.Message:
        """Stores one message in its own transaction.

        The timeout bounds the statements only. The commit runs outside it, so
        a message is either rolled back and reported as failed, or committed
        and broadcast; a timeout never fires on a row that is already durable.
        """
        async with StoreTransaction(self.database) as store:
            return await asyncio.wait_for(
                store.messages.send_message(chat_id, sender_id, content, receiver_id),
                timeout=self.persist_timeout,
            )

    async def broadcast_message(self, message: schemas.Message) -> None:
        """Announces an already stored message to its chat room.

        Shared by the socket path and the REST path so both produce the same
        message:new payload.
        """
        await self.event_dispatcher.dispatch(MessageCreated(**message.model_dump()))
