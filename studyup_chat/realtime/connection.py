# studyup_chat/realtime/connection.py
import enum
import uuid
from typing import Any, Optional, Set

from starlette.websockets import WebSocket


class ConnectionState(enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    DISCONNECTED = "disconnected"


class Connection:
    def __init__(self, websocket: WebSocket, connection_id: Optional[str] = None):
        self.websocket = websocket
        self.id = connection_id or str(uuid.uuid4())
        self.state = ConnectionState.UNAUTHENTICATED
        self.user_id: Optional[str] = None
        # maintained by RoomManager only
        self.rooms: Set[str] = set()

    @property
    def is_authenticated(self) -> bool:
        return self.state is ConnectionState.AUTHENTICATED

    def bind(self, user_id: str) -> None:
        self.user_id = user_id
        self.state = ConnectionState.AUTHENTICATED

    def close(self) -> None:
        self.state = ConnectionState.DISCONNECTED

    async def send(self, event: str, data: Any) -> None:
        await self.websocket.send_json({"event": event, "data": data})

    def __repr__(self) -> str:
        return f"<Connection {self.id} user={self.user_id} {self.state.value}>"
