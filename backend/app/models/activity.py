"""
Activity feed entries.

Clients post an entry when something worth sharing happens (finished a
book, rated a film); the feed shows public entries from the viewer and
their friends.
"""

from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import BaseModel, String50


class Activity(BaseModel):
    __tablename__ = "activity_feed"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    activity_type: Mapped[str] = mapped_column(
        String50,
        nullable=False,
        comment="Free-form kind, e.g. rated, completed, added_to_queue"
    )

    content: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    is_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Activity(id={self.id}, user_id={self.user_id}, type='{self.activity_type}')>"
