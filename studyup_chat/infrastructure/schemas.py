# studyup_chat/infrastructure/schemas.py
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Schema(BaseModel):
    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )


class UserBasic(Schema):
    id: str
    username: str


class User(UserBasic):
    email: str
    created_at: datetime
    is_active: bool


class MessageCreate(Schema):
    content: str


class Message(Schema):
    id: str
    content: str
    chat_id: str
    sender_id: str
    receiver_id: str
    created_at: datetime
    read_at: datetime | None = None


class Chat(Schema):
    id: str
    user1_id: str
    user2_id: str
    created_at: datetime
    updated_at: datetime


class ChatWithMessages(Chat):
    messages: list[Message] = Field(default_factory=list)


class ChatSummary(Schema):
    id: str
    other_user: UserBasic
    last_message: Message | None = None
    updated_at: datetime

