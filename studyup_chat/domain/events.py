# studyup_chat/domain/events.py
from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Event(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class MessageEvent(Event):
    id: str
    chat_id: str
    sender_id: str
    receiver_id: str
    content: str
    created_at: datetime
    read_at: datetime | None = None


class MessageCreated(MessageEvent):
    pass


class MessageRead(MessageEvent):
    read_at: datetime
