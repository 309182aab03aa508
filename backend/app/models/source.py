"""
Source Model

A Source is a connected third-party account (Goodreads, Letterboxd,
MyAnimeList, Spotify). It stores whatever the import pipeline needs to pull
the user's list again: the remote user id/name and, for OAuth providers, the
token pair and its expiry.
"""

import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import BaseModel, String255, str_enum

if TYPE_CHECKING:
    from app.models.user import User


class SourceName(str, enum.Enum):
    """Supported import sources."""

    GOODREADS = "goodreads"
    LETTERBOXD = "letterboxd"
    MYANIMELIST = "myanimelist"
    SPOTIFY = "spotify"

    def __str__(self) -> str:
        return self.value


class Source(BaseModel):
    """One connected account per (user, source_name)."""

    __tablename__ = "sources"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owner of the connection"
    )

    source_name: Mapped[SourceName] = mapped_column(
        str_enum(SourceName),
        nullable=False,
        index=True,
        comment="Which service this account belongs to"
    )

    source_user_id: Mapped[str | None] = mapped_column(
        String255,
        nullable=True,
        comment="Username or numeric id on the remote service"
    )

    access_token: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="OAuth access token (MyAnimeList, Spotify)"
    )

    refresh_token: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="OAuth refresh token"
    )

    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Access token expiry (UTC)"
    )

    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the last import finished"
    )

    user: Mapped["User"] = relationship(
        "User",
        back_populates="sources",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "source_name", name="uq_source_user_name"),
    )

    def __repr__(self) -> str:
        return (
            f"<Source(id={self.id}, user_id={self.user_id}, "
            f"source_name='{self.source_name}')>"
        )
