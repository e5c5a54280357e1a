# studyup_chat/gateways/interfaces.py
from abc import ABC, abstractmethod
from typing import List, Optional

from studyup_chat.infrastructure.uow import UoWModel


class IUserGateway(ABC):
    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UoWModel]:
        pass


class IChatGateway(ABC):
    @abstractmethod
    async def get_chat_for_participant(
        self, chat_id: str, user_id: str
    ) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def get_by_participants(
        self, user_id: str, other_user_id: str
    ) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def get_or_create(self, user_id: str, other_user_id: str) -> UoWModel:
        pass

    @abstractmethod
    async def get_all(self, user_id: str) -> List[UoWModel]:
        pass

    @abstractmethod
    async def load_messages(self, chat_id: str) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def touch(self, chat: UoWModel) -> None:
        pass


class IMessageGateway(ABC):
    @abstractmethod
    async def get_message(self, message_id: str, chat_id: str) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def get_all(self, chat_id: str) -> List[UoWModel]:
        pass

    @abstractmethod
    async def get_latest(self, chat_id: str) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def create_message(
        self, chat_id: str, sender_id: str, receiver_id: str, content: str
    ) -> UoWModel:
        pass

    @abstractmethod
    async def mark_read(self, message: UoWModel) -> bool:
        pass
