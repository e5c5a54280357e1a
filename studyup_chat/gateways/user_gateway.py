# studyup_chat/gateways/user_gateway.py
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studyup_chat.gateways.interfaces import IUserGateway
from studyup_chat.infrastructure import models
from studyup_chat.infrastructure.data_mappers import UserMapper
from studyup_chat.infrastructure.uow import UnitOfWork, UoWModel


class UserGateway(IUserGateway):
    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow
        uow.mappers[models.User] = UserMapper(session)

    async def get_user(self, user_id: str) -> UoWModel | None:
        stmt = select(models.User).filter(models.User.id == user_id)
        result = await self.session.execute(stmt)
        user = result.scalar_one_or_none()
        return UoWModel(user, self.uow) if user else None
