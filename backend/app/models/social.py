"""
Social Models

- friendships: one row per request; user_id sent it, friend_id received it
- notifications: in-app notifications (friend requests, acceptances, queue votes)
"""

import enum

from sqlalchemy import Boolean, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import BaseModel, String50, String255, String1000, str_enum


class FriendshipStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"

    def __str__(self) -> str:
        return self.value


class NotificationType(str, enum.Enum):
    FRIEND_REQUEST = "friend_request"
    FRIEND_ACCEPTED = "friend_accepted"
    QUEUE_VOTE = "queue_vote"
    SYSTEM = "system"

    def __str__(self) -> str:
        return self.value


class Friendship(BaseModel):
    __tablename__ = "friendships"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Requester"
    )

    friend_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Recipient"
    )

    status: Mapped[FriendshipStatus] = mapped_column(
        str_enum(FriendshipStatus),
        default=FriendshipStatus.PENDING,
        nullable=False,
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "friend_id", name="uq_friendship_pair"),
    )

    def __repr__(self) -> str:
        return f"<Friendship({self.user_id}->{self.friend_id}, {self.status})>"


class Notification(BaseModel):
    __tablename__ = "notifications"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Recipient"
    )

    type: Mapped[str] = mapped_column(String50, nullable=False)

    title: Mapped[str] = mapped_column(String255, nullable=False)

    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    link: Mapped[str | None] = mapped_column(String1000, nullable=True)

    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)

    actor_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="User whose action triggered the notification"
    )
