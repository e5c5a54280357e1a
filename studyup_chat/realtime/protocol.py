# studyup_chat/realtime/protocol.py
"""Wire format of the realtime channel.

Every frame in either direction is a JSON object ``{"event": ..., "data": ...}``.
Incoming frames are decoded into one of the ``ClientEvent`` models so the
handler dispatches on types rather than event name strings. Payload keys are
camelCase on the wire.
"""
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

# server -> client
USERS_ONLINE = "users:online"
USER_ONLINE = "user:online"
USER_OFFLINE = "user:offline"
MESSAGE_NEW = "message:new"
MESSAGE_ERROR = "message:error"
MESSAGE_READ = "message:read"
TYPING_START = "typing:start"
TYPING_STOP = "typing:stop"


class Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TypingPayload(Payload):
    chat_id: Optional[str] = None
    user_id: Optional[str] = None


class MessageSendPayload(Payload):
    # optional so that incomplete sends reach the pipeline's own checks
    chat_id: Optional[str] = None
    content: Optional[str] = None
    receiver_id: Optional[str] = None


class Authenticate(BaseModel):
    event: Literal["authenticate"]
    data: Optional[str] = None


class ChatJoin(BaseModel):
    event: Literal["chat:join"]
    data: Optional[str] = None


class ChatLeave(BaseModel):
    event: Literal["chat:leave"]
    data: Optional[str] = None


class TypingStart(BaseModel):
    event: Literal["typing:start"]
    data: TypingPayload = Field(default_factory=TypingPayload)


class TypingStop(BaseModel):
    event: Literal["typing:stop"]
    data: TypingPayload = Field(default_factory=TypingPayload)


class MessageSend(BaseModel):
    event: Literal["message:send"]
    data: MessageSendPayload = Field(default_factory=MessageSendPayload)


ClientEvent = Annotated[
    Union[Authenticate, ChatJoin, ChatLeave, TypingStart, TypingStop, MessageSend],
    Field(discriminator="event"),
]

_client_event_adapter = TypeAdapter(ClientEvent)


def parse_client_frame(frame: Any) -> ClientEvent:
    """Decodes one incoming frame; raises pydantic.ValidationError if malformed."""
    return _client_event_adapter.validate_python(frame)


def message_error(chat_id: Optional[str], error: str = "Failed to send message") -> dict:
    return {"error": error, "chatId": chat_id}


def typing_notice(user_id: str, chat_id: str) -> dict:
    return {"userId": user_id, "chatId": chat_id}
