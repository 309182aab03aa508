"""
Collection Models

User-curated lists mixing any media types. Collaborative collections accept
items from any signed-in user; everything else is owner-only.
"""

from sqlalchemy import Boolean, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import BaseModel, String255, str_enum
from app.models.media import MediaType


class Collection(BaseModel):
    __tablename__ = "collections"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owner"
    )

    title: Mapped[str] = mapped_column(String255, nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    is_collaborative: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    item_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    follower_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    items: Mapped[list["CollectionItem"]] = relationship(
        "CollectionItem",
        back_populates="collection",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CollectionItem.position",
    )

    def __repr__(self) -> str:
        return f"<Collection(id={self.id}, title='{self.title}', user_id={self.user_id})>"


class CollectionItem(BaseModel):
    __tablename__ = "collection_items"

    collection_id: Mapped[int] = mapped_column(
        ForeignKey("collections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    media_type: Mapped[MediaType] = mapped_column(
        str_enum(MediaType),
        nullable=False,
    )

    media_id: Mapped[int] = mapped_column(Integer, nullable=False)

    added_by_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    collection: Mapped["Collection"] = relationship(
        "Collection",
        back_populates="items",
    )

    __table_args__ = (
        UniqueConstraint(
            "collection_id", "media_type", "media_id",
            name="uq_collection_item_media",
        ),
    )
