"""
Conversation Models

Chat sessions with the taste assistant.

Tables:
-------
- conversations: one chat session per row, owned by a user
- messages: the turns of a conversation, in insertion order
"""

import enum

from sqlalchemy import ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import BaseModel, String255, str_enum


class MessageRole(str, enum.Enum):
    """Chat roles, matching the Anthropic Messages API roles."""

    USER = "user"
    ASSISTANT = "assistant"

    def __str__(self) -> str:
        return self.value


class Conversation(BaseModel):
    __tablename__ = "conversations"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owner of the conversation"
    )

    title: Mapped[str] = mapped_column(
        String255,
        nullable=False,
        default="New Conversation",
        comment="First 50 characters of the opening message"
    )

    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Message.id"
    )

    def __repr__(self) -> str:
        return (
            f"Conversation(id={self.id}, user_id={self.user_id}, "
            f"title='{self.title[:30]}')"
        )


class Message(BaseModel):
    __tablename__ = "messages"

    conversation_id: Mapped[int] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role: Mapped[MessageRole] = mapped_column(
        str_enum(MessageRole),
        nullable=False,
        comment="user or assistant"
    )

    content: Mapped[str] = mapped_column(Text, nullable=False)

    conversation: Mapped["Conversation"] = relationship(
        "Conversation",
        back_populates="messages",
    )

    def __repr__(self) -> str:
        preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        return (
            f"Message(id={self.id}, conversation_id={self.conversation_id}, "
            f"role={self.role.value}, content='{preview}')"
        )
