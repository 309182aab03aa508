"""
Comment Models

- media_comments: one comment per user per media item (posting again edits it)
- comment_likes: one like per user per comment; likes_count mirrors the rows
"""

from sqlalchemy import Boolean, Float, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import BaseModel, str_enum
from app.models.media import MediaType


class MediaComment(BaseModel):
    __tablename__ = "media_comments"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    media_type: Mapped[MediaType] = mapped_column(str_enum(MediaType), nullable=False)

    media_id: Mapped[int] = mapped_column(Integer, nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False)

    rating: Mapped[float | None] = mapped_column(Float, nullable=True)

    is_spoiler: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    likes_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "media_type", "media_id", name="uq_media_comment_author"),
    )


class CommentLike(BaseModel):
    __tablename__ = "comment_likes"

    comment_id: Mapped[int] = mapped_column(
        ForeignKey("media_comments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", name="uq_comment_like"),
    )
