"""
Queue Models

A personal "up next" list. Friends can vote on items in each other's
queues; the owner sees who voted.
"""

import enum

from sqlalchemy import ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import BaseModel, str_enum
from app.models.media import MediaType


class QueuePriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def __str__(self) -> str:
        return self.value

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]


class QueueItem(BaseModel):
    __tablename__ = "queue_items"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owner"
    )

    media_type: Mapped[MediaType] = mapped_column(str_enum(MediaType), nullable=False)

    media_id: Mapped[int] = mapped_column(Integer, nullable=False)

    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    priority: Mapped[QueuePriority] = mapped_column(
        str_enum(QueuePriority),
        default=QueuePriority.MEDIUM,
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "media_type", "media_id", name="uq_queue_item_media"),
    )

    def __repr__(self) -> str:
        return f"<QueueItem(id={self.id}, user_id={self.user_id}, {self.media_type}:{self.media_id})>"


class QueueVote(BaseModel):
    __tablename__ = "queue_votes"

    queue_item_id: Mapped[int] = mapped_column(
        ForeignKey("queue_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Voter"
    )

    __table_args__ = (
        UniqueConstraint("queue_item_id", "user_id", name="uq_queue_vote"),
    )
