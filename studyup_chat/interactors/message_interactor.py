# studyup_chat/interactors/message_interactor.py
from typing import List, Optional, Tuple

from studyup_chat.domain.errors import (
    ChatAccessError,
    ChatNotFoundError,
    InvalidMessageError,
)
from studyup_chat.gateways.chat_gateway import ChatGateway
from studyup_chat.gateways.message_gateway import MessageGateway
from studyup_chat.infrastructure import schemas


class MessageInteractor:
    def __init__(self, message_gateway: MessageGateway, chat_gateway: ChatGateway):
        self.message_gateway = message_gateway
        self.chat_gateway = chat_gateway

    async def get_messages(self, chat_id: str, user_id: str) -> List[schemas.Message]:
        chat = await self.chat_gateway.get_chat_for_participant(chat_id, user_id)
        if chat is None:
            raise ChatNotFoundError("Chat not found or access denied")
        messages = await self.message_gateway.get_all(chat_id)
        return [schemas.Message.model_validate(message) for message in messages]

    async def send_message(
        self,
        chat_id: str,
        sender_id: str,
        content: str,
        receiver_id: Optional[str] = None,
    ) -> schemas.Message:
        """Stores a message and bumps the conversation's activity timestamp.

        The receiver is always the other participant of the chat. A caller
        supplied receiver_id that disagrees with it is rejected rather than
        corrected.
        """
        text = (content or "").strip()
        if not text:
            raise InvalidMessageError("Message content is required")

        chat = await self.chat_gateway.get_chat_for_participant(chat_id, sender_id)
        if chat is None:
            raise ChatNotFoundError("Chat not found or access denied")

        expected_receiver = chat.other_participant(sender_id)
        if receiver_id and receiver_id != expected_receiver:
            raise ChatAccessError(
                f"User {receiver_id} is not the other participant of chat {chat_id}"
            )

        message = await self.message_gateway.create_message(
            chat_id=chat_id,
            sender_id=sender_id,
            receiver_id=expected_receiver,
            content=text,
        )
        await self.chat_gateway.touch(chat)
        return schemas.Message.model_validate(message)

    async def mark_read(
        self, chat_id: str, message_id: str, user_id: str
    ) -> Tuple[schemas.Message, bool]:
        """Marks a message read for its receiver.

        Returns the message and whether this call changed it; marking an
        already read message is a no-op.
        """
        message = await self.message_gateway.get_message(message_id, chat_id)
        if message is None or message.receiver_id != user_id:
            raise ChatNotFoundError("Message not found")
        changed = await self.message_gateway.mark_read(message)
        return schemas.Message.model_validate(message), changed
