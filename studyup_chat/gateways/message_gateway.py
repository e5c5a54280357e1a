# studyup_chat/gateways/message_gateway.py
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from studyup_chat.gateways.interfaces import IMessageGateway
from studyup_chat.infrastructure import models
from studyup_chat.infrastructure.data_mappers import MessageMapper
from studyup_chat.infrastructure.uow import UnitOfWork, UoWModel


class MessageGateway(IMessageGateway):
    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow
        uow.mappers[models.Message] = MessageMapper(session)

    async def get_message(self, message_id: str, chat_id: str) -> Optional[UoWModel]:
        stmt = select(models.Message).filter(
            models.Message.id == message_id, models.Message.chat_id == chat_id
        )
        result = await self.session.execute(stmt)
        message = result.scalar_one_or_none()
        return UoWModel(message, self.uow) if message else None

    async def get_all(self, chat_id: str) -> List[UoWModel]:
        stmt = (
            select(models.Message)
            .filter(models.Message.chat_id == chat_id)
            .order_by(models.Message.created_at.asc())
        )
        result = await self.session.execute(stmt)
        messages = result.scalars().all()
        return [UoWModel(message, self.uow) for message in messages]

    async def get_latest(self, chat_id: str) -> Optional[UoWModel]:
        stmt = (
            select(models.Message)
            .filter(models.Message.chat_id == chat_id)
            .order_by(models.Message.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        message = result.scalar_one_or_none()
        return UoWModel(message, self.uow) if message else None

    async def create_message(
        self, chat_id: str, sender_id: str, receiver_id: str, content: str
    ) -> UoWModel:
        db_message = models.Message(
            content=content,
            chat_id=chat_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
        )
        uow_message = self.uow.register_new(db_message)
        await self.uow.commit()
        return uow_message

    async def mark_read(self, message: UoWModel) -> bool:
        """Sets read_at once; returns False when the message was already read."""
        stmt = (
            update(models.Message)
            .where(
                models.Message.id == message.id,
                models.Message.read_at.is_(None),
            )
            .values(read_at=models.utcnow())
        )
        result = await self.session.execute(stmt)
        await self.session.refresh(message._model)
        return result.rowcount == 1
