# studyup_chat/infrastructure/models.py
import uuid
from datetime import UTC, datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studyup_chat.infrastructure.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(UTC)


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    username: Mapped[str] = mapped_column(String, unique=True, index=True)
    email: Mapped[str] = mapped_column(String, unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class Chat(Base):
    __tablename__ = "chats"

    # participants are stored sorted so that one row exists per unordered pair
    __table_args__ = (UniqueConstraint("user1_id", "user2_id", name="uq_chats_pair"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user1_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    user2_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )

    user1: Mapped[User] = relationship("User", foreign_keys=[user1_id], lazy="joined")
    user2: Mapped[User] = relationship("User", foreign_keys=[user2_id], lazy="joined")
    messages: Mapped[List["Message"]] = relationship(
        "Message",
        back_populates="chat",
        lazy="select",
        order_by="Message.created_at",
    )

    def other_participant(self, user_id: str) -> str:
        return self.user2_id if self.user1_id == user_id else self.user1_id


class Message(Base):
    __tablename__ = "messages"

    __table_args__ = (
        Index("ix_messages_chat_created", "chat_id", "created_at"),
        Index("ix_messages_receiver_read", "receiver_id", "read_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    content: Mapped[str] = mapped_column(String)
    chat_id: Mapped[str] = mapped_column(String(36), ForeignKey("chats.id"), index=True)
    sender_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
    receiver_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
    read_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    chat: Mapped[Chat] = relationship("Chat", back_populates="messages", lazy="select")
