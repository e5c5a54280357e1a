# studyup_chat/gateways/chat_gateway.py
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from studyup_chat.gateways.interfaces import IChatGateway
from studyup_chat.infrastructure import models
from studyup_chat.infrastructure.data_mappers import ChatMapper
from studyup_chat.infrastructure.uow import UnitOfWork, UoWModel


def canonical_pair(user_id: str, other_user_id: str) -> tuple[str, str]:
    first, second = sorted((user_id, other_user_id))
    return first, second


class ChatGateway(IChatGateway):
    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow
        uow.mappers[models.Chat] = ChatMapper(session)

    async def get_chat_for_participant(
        self, chat_id: str, user_id: str
    ) -> Optional[UoWModel]:
        stmt = select(models.Chat).filter(
            models.Chat.id == chat_id,
            or_(models.Chat.user1_id == user_id, models.Chat.user2_id == user_id),
        )
        result = await self.session.execute(stmt)
        chat = result.unique().scalar_one_or_none()
        return UoWModel(chat, self.uow) if chat else None

    async def get_by_participants(
        self, user_id: str, other_user_id: str
    ) -> Optional[UoWModel]:
        user1_id, user2_id = canonical_pair(user_id, other_user_id)
        stmt = select(models.Chat).filter(
            models.Chat.user1_id == user1_id, models.Chat.user2_id == user2_id
        )
        result = await self.session.execute(stmt)
        chat = result.unique().scalar_one_or_none()
        return UoWModel(chat, self.uow) if chat else None

    async def get_or_create(self, user_id: str, other_user_id: str) -> UoWModel:
        existing = await self.get_by_participants(user_id, other_user_id)
        if existing:
            return existing

        user1_id, user2_id = canonical_pair(user_id, other_user_id)
        uow_chat = self.uow.register_new(
            models.Chat(user1_id=user1_id, user2_id=user2_id)
        )
        try:
            await self.uow.commit()
        except IntegrityError:
            # another request created the pair between our read and our insert
            self.uow.rollback()
            await self.session.rollback()
            existing = await self.get_by_participants(user_id, other_user_id)
            if existing is None:
                raise
            return existing
        return uow_chat

    async def get_all(self, user_id: str) -> List[UoWModel]:
        stmt = (
            select(models.Chat)
            .filter(
                or_(models.Chat.user1_id == user_id, models.Chat.user2_id == user_id)
            )
            .order_by(models.Chat.updated_at.desc())
        )
        result = await self.session.execute(stmt)
        chats = result.unique().scalars().all()
        return [UoWModel(chat, self.uow) for chat in chats]

    async def load_messages(self, chat_id: str) -> Optional[UoWModel]:
        stmt = (
            select(models.Chat)
            .options(selectinload(models.Chat.messages))
            .filter(models.Chat.id == chat_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        chat = result.unique().scalar_one_or_none()
        return UoWModel(chat, self.uow) if chat else None

    async def touch(self, chat: UoWModel) -> None:
        chat.updated_at = models.utcnow()
        await self.uow.commit()
