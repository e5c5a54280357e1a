# studyup_chat/realtime/typing_relay.py
import logging
from typing import Optional

from studyup_chat.realtime import protocol
from studyup_chat.realtime.connection import Connection
from studyup_chat.realtime.rooms import RoomManager


class TypingRelay:
    """Fire-and-forget typing notices, relayed to the chat room minus the typist.

    The relayed userId is the connection's bound identity, not whatever the
    client put in the payload.
    """

    def __init__(self, rooms: RoomManager, logger: logging.Logger):
        self.rooms = rooms
        self.logger = logger

    async def typing_start(self, connection: Connection, chat_id: Optional[str]) -> int:
        return await self._relay(connection, chat_id, protocol.TYPING_START)

    async def typing_stop(self, connection: Connection, chat_id: Optional[str]) -> int:
        return await self._relay(connection, chat_id, protocol.TYPING_STOP)

    async def _relay(self, connection: Connection, chat_id: Optional[str], event: str) -> int:
        if not connection.is_authenticated or not chat_id:
            self.logger.debug(f"Ignored {event} from connection {connection.id}")
            return 0
        return await self.rooms.emit_to_room(
            self.rooms.chat_room(chat_id),
            event,
            protocol.typing_notice(connection.user_id, chat_id),
            exclude=connection.id,
        )
