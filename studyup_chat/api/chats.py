# studyup_chat/api/chats.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from studyup_chat.api.dependencies import (
    get_chat_interactor,
    get_current_user,
    get_delivery_pipeline,
    get_event_dispatcher,
    get_message_interactor,
    get_session,
)
from studyup_chat.domain.errors import ChatAccessError, ChatNotFoundError, InvalidMessageError
from studyup_chat.domain.events import MessageRead
from studyup_chat.infrastructure import schemas
from studyup_chat.infrastructure.event_dispatcher import EventDispatcher
from studyup_chat.interactors.chat_interactor import ChatInteractor
from studyup_chat.interactors.message_interactor import MessageInteractor
from studyup_chat.realtime.delivery import MessageDeliveryPipeline

router = APIRouter()


@router.get("/", response_model=list[schemas.ChatSummary])
async def read_chats(
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await chat_interactor.get_chats(current_user.id)


@router.get("/{user_id}", response_model=schemas.ChatWithMessages)
async def get_or_create_chat(
    user_id: str,
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    try:
        chat = await chat_interactor.get_or_create_chat(current_user.id, user_id)
    except ChatAccessError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if chat is None:
        raise HTTPException(status_code=404, detail="User not found")
    return chat


@router.get("/{chat_id}/messages", response_model=list[schemas.Message])
async def read_messages(
    chat_id: str,
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    try:
        return await message_interactor.get_messages(chat_id, current_user.id)
    except ChatNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{chat_id}/messages", response_model=schemas.Message, status_code=201)
async def send_message(
    chat_id: str,
    message: schemas.MessageCreate,
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    session: AsyncSession = Depends(get_session),
    pipeline: MessageDeliveryPipeline = Depends(get_delivery_pipeline),
    current_user: schemas.User = Depends(get_current_user),
):
    try:
        db_message = await message_interactor.send_message(
            chat_id, current_user.id, message.content
        )
    except InvalidMessageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (ChatNotFoundError, ChatAccessError) as e:
        raise HTTPException(status_code=404, detail=str(e))

    # clients must never see a message:new that a reload would not return
    await session.commit()
    await pipeline.broadcast_message(db_message)
    return db_message


@router.patch("/{chat_id}/messages/{message_id}/read", response_model=schemas.Message)
async def mark_message_read(
    chat_id: str,
    message_id: str,
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    session: AsyncSession = Depends(get_session),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
    current_user: schemas.User = Depends(get_current_user),
):
    try:
        db_message, changed = await message_interactor.mark_read(
            chat_id, message_id, current_user.id
        )
    except ChatNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if changed:
        await session.commit()
        await event_dispatcher.dispatch(MessageRead(**db_message.model_dump()))
    return db_message
