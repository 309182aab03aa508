"""
Library Model (user_media)

The polymorphic join between a user and a media item of any type, carrying
the personal data: rating (0-10), status, progress, favourite flag, tags and
when it was consumed.
"""

import enum
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import BaseModel, str_enum
from app.models.media import MediaType


class MediaStatus(str, enum.Enum):
    COMPLETED = "completed"
    WATCHING = "watching"
    READING = "reading"
    LISTENING = "listening"
    PLAN_TO_WATCH = "plan_to_watch"
    PLAN_TO_READ = "plan_to_read"
    PLAN_TO_LISTEN = "plan_to_listen"
    ON_HOLD = "on_hold"
    DROPPED = "dropped"

    def __str__(self) -> str:
        return self.value


class UserMedia(BaseModel):
    __tablename__ = "user_media"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    media_type: Mapped[MediaType] = mapped_column(
        str_enum(MediaType),
        nullable=False,
        index=True,
        comment="Which media table media_id points into"
    )

    media_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
        comment="Primary key in the table selected by media_type"
    )

    rating: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
        comment="Personal rating on a 0-10 scale"
    )

    status: Mapped[MediaStatus | None] = mapped_column(
        str_enum(MediaStatus),
        nullable=True,
    )

    progress: Mapped[int | None] = mapped_column(Integer, nullable=True)

    progress_total: Mapped[int | None] = mapped_column(Integer, nullable=True)

    is_favorite: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    tags: Mapped[list[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
        comment="Shelves, list statuses or Spotify origins (saved, top_track_short ...)"
    )

    consumed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the user read/watched/listened (UTC)"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "media_type", "media_id", name="uq_user_media_item"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserMedia(id={self.id}, user_id={self.user_id}, "
            f"{self.media_type}:{self.media_id}, rating={self.rating})>"
        )
