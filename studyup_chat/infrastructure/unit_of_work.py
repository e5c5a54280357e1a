# studyup_chat/infrastructure/unit_of_work.py
from sqlalchemy.ext.asyncio import AsyncSession

from studyup_chat.gateways.chat_gateway import ChatGateway
from studyup_chat.gateways.message_gateway import MessageGateway
from studyup_chat.gateways.user_gateway import UserGateway
from studyup_chat.infrastructure.database import Database
from studyup_chat.infrastructure.uow import UnitOfWork
from studyup_chat.interactors.chat_interactor import ChatInteractor
from studyup_chat.interactors.message_interactor import MessageInteractor
from studyup_chat.interactors.user_interactor import UserInteractor


class StoreTransaction:
    """One database transaction with the interactors bound to it.

    Used by the realtime layer, which has no request scoped session::

        async with StoreTransaction(database) as store:
            message = await store.messages.send_message(...)

    Commits on a clean exit and rolls back when the block raises, including
    on cancellation.
    """

    users: UserInteractor
    chats: ChatInteractor
    messages: MessageInteractor

    def __init__(self, database: Database):
        self.database = database
        self.session: AsyncSession | None = None

    async def __aenter__(self) -> "StoreTransaction":
        self.session = self.database.SessionLocal()
        uow = UnitOfWork()
        user_gateway = UserGateway(self.session, uow)
        chat_gateway = ChatGateway(self.session, uow)
        message_gateway = MessageGateway(self.session, uow)
        self.users = UserInteractor(user_gateway)
        self.chats = ChatInteractor(chat_gateway, user_gateway, message_gateway)
        self.messages = MessageInteractor(message_gateway, chat_gateway)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type:
                await self.session.rollback()
            else:
                await self.session.commit()
        finally:
            await self.session.close()
