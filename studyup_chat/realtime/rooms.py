# studyup_chat/realtime/rooms.py
import logging
from typing import Any, Dict, Iterable, Optional, Set

from studyup_chat.realtime.connection import Connection
from studyup_chat.realtime.presence import PresenceRegistry


class RoomManager:
    """Room membership index and fan-out.

    Keeps every live connection by id, a room -> connection ids index and the
    mirror set on each Connection. Every send goes through here.
    """

    def __init__(self, presence: PresenceRegistry, logger: logging.Logger):
        self.presence = presence
        self.logger = logger
        self.connections: Dict[str, Connection] = {}
        self.rooms: Dict[str, Set[str]] = {}

    @staticmethod
    def user_room(user_id: str) -> str:
        return f"user:{user_id}"

    @staticmethod
    def chat_room(chat_id: str) -> str:
        return f"chat:{chat_id}"

    def add_connection(self, connection: Connection) -> None:
        self.connections[connection.id] = connection

    def get_connection(self, connection_id: str) -> Optional[Connection]:
        return self.connections.get(connection_id)

    def discard(self, connection: Connection) -> None:
        """Forgets a connection and every membership it held."""
        for room in list(connection.rooms):
            self._remove_member(room, connection.id)
        connection.rooms.clear()
        self.connections.pop(connection.id, None)

    def join(self, connection: Connection, room: str) -> bool:
        if room in connection.rooms:
            return False
        connection.rooms.add(room)
        self.rooms.setdefault(room, set()).add(connection.id)
        self.logger.debug(f"Connection {connection.id} joined {room}")
        return True

    def leave(self, connection: Connection, room: str) -> bool:
        if room not in connection.rooms:
            return False
        connection.rooms.discard(room)
        self._remove_member(room, connection.id)
        self.logger.debug(f"Connection {connection.id} left {room}")
        return True

    def members(self, room: str) -> Set[str]:
        return set(self.rooms.get(room, ()))

    def _remove_member(self, room: str, connection_id: str) -> None:
        members = self.rooms.get(room)
        if not members:
            return
        members.discard(connection_id)
        if not members:
            del self.rooms[room]

    async def emit_to_room(
        self, room: str, event: str, data: Any, exclude: Optional[str] = None
    ) -> int:
        targets = [cid for cid in self.members(room) if cid != exclude]
        return await self._deliver(targets, event, data)

    async def emit_to_connection(self, connection_id: str, event: str, data: Any) -> int:
        return await self._deliver([connection_id], event, data)

    async def emit_to_user(self, user_id: str, event: str, data: Any) -> int:
        return await self.emit_to_room(self.user_room(user_id), event, data)

    async def emit_to_chat(self, chat_id: str, event: str, data: Any) -> int:
        return await self.emit_to_room(self.chat_room(chat_id), event, data)

    async def emit_to_chat_except(
        self, chat_id: str, user_id: str, event: str, data: Any
    ) -> int:
        return await self.emit_to_room(
            self.chat_room(chat_id), event, data, exclude=self.presence.lookup(user_id)
        )

    async def emit_to_authenticated(
        self, event: str, data: Any, exclude: Optional[str] = None
    ) -> int:
        targets = [
            cid
            for cid, connection in list(self.connections.items())
            if connection.is_authenticated and cid != exclude
        ]
        return await self._deliver(targets, event, data)

    async def _deliver(self, connection_ids: Iterable[str], event: str, data: Any) -> int:
        delivered = 0
        for connection_id in connection_ids:
            # the target may have gone away while an earlier send was awaited
            connection = self.connections.get(connection_id)
            if connection is None:
                continue
            try:
                await connection.send(event, data)
                delivered += 1
            except Exception as e:
                self.logger.warning(
                    f"Dropped {event} for connection {connection_id}: {e!r}"
                )
        self.logger.debug(f"Delivered {event} to {delivered} connection(s)")
        return delivered
