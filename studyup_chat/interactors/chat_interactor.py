# studyup_chat/interactors/chat_interactor.py
from typing import List, Optional

from studyup_chat.domain.errors import ChatAccessError
from studyup_chat.gateways.chat_gateway import ChatGateway
from studyup_chat.gateways.message_gateway import MessageGateway
from studyup_chat.gateways.user_gateway import UserGateway
from studyup_chat.infrastructure import schemas


class ChatInteractor:
    def __init__(
        self,
        chat_gateway: ChatGateway,
        user_gateway: UserGateway,
        message_gateway: MessageGateway,
    ):
        self.chat_gateway = chat_gateway
        self.user_gateway = user_gateway
        self.message_gateway = message_gateway

    async def get_chats(self, user_id: str) -> List[schemas.ChatSummary]:
        chats = await self.chat_gateway.get_all(user_id)
        summaries = []
        for chat in chats:
            other_user = chat.user2 if chat.user1_id == user_id else chat.user1
            last_message = await self.message_gateway.get_latest(chat.id)
            summaries.append(
                schemas.ChatSummary(
                    id=chat.id,
                    other_user=schemas.UserBasic.model_validate(other_user),
                    last_message=(
                        schemas.Message.model_validate(last_message)
                        if last_message
                        else None
                    ),
                    updated_at=chat.updated_at,
                )
            )
        return summaries

    async def get_or_create_chat(
        self, user_id: str, other_user_id: str
    ) -> Optional[schemas.ChatWithMessages]:
        """Returns the single conversation between two users, creating it on first use.

        Returns None when the other user does not exist.
        """
        if user_id == other_user_id:
            raise ChatAccessError("Cannot create chat with yourself")

        other_user = await self.user_gateway.get_user(other_user_id)
        if other_user is None:
            return None

        chat = await self.chat_gateway.get_or_create(user_id, other_user_id)
        loaded = await self.chat_gateway.load_messages(chat.id)
        return schemas.ChatWithMessages.model_validate(loaded)

    async def is_participant(self, chat_id: str, user_id: str) -> bool:
        chat = await self.chat_gateway.get_chat_for_participant(chat_id, user_id)
        return chat is not None
