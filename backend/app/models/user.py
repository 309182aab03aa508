"""
User Model

Tables:
-------
- users: account data for email/password and Google sign-in users

A user owns library rows (user_media), connected sources, collections,
conversations, friendships and notifications. Those rows reference users.id
with ON DELETE CASCADE, so removing a user removes everything they own.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import BaseModel, String50, String100, String255, String1000

if TYPE_CHECKING:
    from app.models.source import Source


class User(BaseModel):
    """
    User account.

    Google sign-in users have no password; hashed_password stays NULL and the
    password login path rejects them.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String255,
        unique=True,
        index=True,
        nullable=False,
        comment="Login email, unique per account"
    )

    username: Mapped[str] = mapped_column(
        String50,
        unique=True,
        index=True,
        nullable=False,
        comment="Public handle used in profile URLs"
    )

    name: Mapped[str | None] = mapped_column(
        String100,
        nullable=True,
        comment="Display name"
    )

    avatar: Mapped[str | None] = mapped_column(
        String1000,
        nullable=True,
        comment="Avatar image URL (Google picture or user supplied)"
    )

    bio: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Free-text profile bio"
    )

    hashed_password: Mapped[str | None] = mapped_column(
        String255,
        nullable=True,
        comment="bcrypt hash; NULL for Google-only accounts"
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="Inactive users cannot authenticate"
    )

    last_login: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Last successful login (UTC)"
    )

    # Connected accounts are few per user, so load them eagerly
    sources: Mapped[list["Source"]] = relationship(
        "Source",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"

    @property
    def display_name(self) -> str:
        return self.name or self.username
