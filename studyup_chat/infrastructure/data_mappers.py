# studyup_chat/infrastructure/data_mappers.py
from typing import Generic, Protocol, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from studyup_chat.infrastructure import models

ModelT = TypeVar("ModelT")
ModelT_contra = TypeVar("ModelT_contra", contravariant=True)


class DataMapper(Protocol[ModelT_contra]):
    async def insert(self, model: ModelT_contra):
        raise NotImplementedError

    async def update(self, model: ModelT_contra):
        raise NotImplementedError


class SessionMapper(Generic[ModelT]):
    """Writes one model type through an AsyncSession.

    Inserts are flushed immediately so that server side defaults and
    constraint violations surface inside the caller's transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(self, model: ModelT):
        self.session.add(model)
        await self.session.flush()

    async def update(self, model: ModelT):
        await self.session.merge(model)
        await self.session.flush()


class UserMapper(SessionMapper[models.User]):
    pass


class ChatMapper(SessionMapper[models.Chat]):
    pass


class MessageMapper(SessionMapper[models.Message]):
    pass
