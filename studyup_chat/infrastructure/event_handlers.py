# studyup_chat/infrastructure/event_handlers.py
from studyup_chat.domain.events import MessageCreated, MessageEvent, MessageRead
from studyup_chat.infrastructure.redis_client import RedisClient
from studyup_chat.realtime import protocol
from studyup_chat.realtime.rooms import RoomManager


class EventHandlers:
    def __init__(self, redis_client: RedisClient, rooms: RoomManager):
        self.redis_client = redis_client
        self.rooms = rooms

    async def broadcast_message_created(self, event: MessageCreated):
        await self.rooms.emit_to_chat(
            event.chat_id, protocol.MESSAGE_NEW, event.to_wire()
        )

    async def notify_message_read(self, event: MessageRead):
        await self.rooms.emit_to_user(
            event.sender_id, protocol.MESSAGE_READ, event.to_wire()
        )

    async def publish_message_event(self, event: MessageEvent, channel_name: str):
        await self.redis_client.publish_json(channel_name, event.to_wire())

    async def publish_message_created(self, event: MessageCreated):
        await self.publish_message_event(event, f"chat:{event.chat_id}")

    async def publish_message_read(self, event: MessageRead):
        await self.publish_message_event(event, f"chat:{event.chat_id}:status")
