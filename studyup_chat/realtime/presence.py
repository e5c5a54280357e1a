# studyup_chat/realtime/presence.py
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Dict, Optional, Set


@dataclass
class OnlinePresence:
    user_id: str
    connection_id: str
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class PresenceRegistry:
    """Maps each online user to the one connection that last authenticated as them.

    All operations are synchronous and run to completion on the event loop,
    so callers never observe a half-applied registration.
    """

    def __init__(self, logger: logging.Logger):
        self._entries: Dict[str, OnlinePresence] = {}
        self.logger = logger

    def register(self, user_id: str, connection_id: str) -> OnlinePresence:
        entry = OnlinePresence(user_id=user_id, connection_id=connection_id)
        self._entries[user_id] = entry
        self.logger.info(f"Online users: {len(self._entries)}")
        return entry

    def unregister(self, user_id: str, connection_id: Optional[str] = None) -> bool:
        """Removes the entry for user_id.

        With connection_id, the entry is only removed while that connection
        still owns it. Returns whether anything was removed.
        """
        entry = self._entries.get(user_id)
        if entry is None:
            return False
        if connection_id is not None and entry.connection_id != connection_id:
            return False
        del self._entries[user_id]
        self.logger.info(f"Online users: {len(self._entries)}")
        return True

    def is_online(self, user_id: str) -> bool:
        return user_id in self._entries

    def list_online(self) -> Set[str]:
        return set(self._entries)

    def lookup(self, user_id: str) -> Optional[str]:
        entry = self._entries.get(user_id)
        return entry.connection_id if entry else None

    def __len__(self) -> int:
        return len(self._entries)
