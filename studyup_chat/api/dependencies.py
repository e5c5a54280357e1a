# studyup_chat/api/dependencies.py
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from studyup_chat.gateways.chat_gateway import ChatGateway
from studyup_chat.gateways.message_gateway import MessageGateway
from studyup_chat.gateways.user_gateway import UserGateway
from studyup_chat.infrastructure import schemas
from studyup_chat.infrastructure.event_dispatcher import EventDispatcher
from studyup_chat.infrastructure.security import SecurityService
from studyup_chat.infrastructure.uow import UnitOfWork
from studyup_chat.interactors.chat_interactor import ChatInteractor
from studyup_chat.interactors.message_interactor import MessageInteractor
from studyup_chat.interactors.user_interactor import UserInteractor
from studyup_chat.realtime.delivery import MessageDeliveryPipeline

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


def get_security_service(request: Request) -> SecurityService:
    return request.app.state.security_service


def get_event_dispatcher(request: Request) -> EventDispatcher:
    return request.app.state.event_dispatcher


def get_delivery_pipeline(request: Request) -> MessageDeliveryPipeline:
    return request.app.state.delivery_pipeline


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_uow() -> UnitOfWork:
    return UnitOfWork()


async def get_user_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return UserGateway(session, uow)


async def get_chat_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return ChatGateway(session, uow)


async def get_message_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return MessageGateway(session, uow)


async def get_user_interactor(
    user_gateway: UserGateway = Depends(get_user_gateway),
):
    return UserInteractor(user_gateway)


async def get_chat_interactor(
    chat_gateway: ChatGateway = Depends(get_chat_gateway),
    user_gateway: UserGateway = Depends(get_user_gateway),
    message_gateway: MessageGateway = Depends(get_message_gateway),
):
    return ChatInteractor(chat_gateway, user_gateway, message_gateway)


async def get_message_interactor(
    message_gateway: MessageGateway = Depends(get_message_gateway),
    chat_gateway: ChatGateway = Depends(get_chat_gateway),
):
    return MessageInteractor(message_gateway, chat_gateway)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    security_service: SecurityService = Depends(get_security_service),
    user_interactor: UserInteractor = Depends(get_user_interactor),
) -> schemas.User:
    user_id = security_service.decode_access_token(token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await user_interactor.get_active_user(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
