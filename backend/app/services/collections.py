"""
Collection Service

User-curated lists of media. Visibility rules:

- public collections are visible to everyone
- private collections only to their owner (others get 403)
- only the owner edits or deletes a collection
- items are added by the owner, or by anyone when the collection is
  collaborative; an item is removed by the owner or by whoever added it
"""

from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.collection import Collection, CollectionItem
from app.models.media import MediaItem, MediaType
from app.services.library import load_media_map, parse_media_type

logger = get_logger(__name__)

LIST_LIMIT = 50

UPDATABLE_FIELDS = ("title", "description", "is_public", "is_collaborative")


class CollectionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_collections(
        self,
        viewer_id: Optional[int] = None,
        owner_id: Optional[int] = None,
    ) -> list[Collection]:
        query = select(Collection)
        if owner_id is not None:
            query = query.where(Collection.user_id == owner_id)
            if owner_id != viewer_id:
                query = query.where(Collection.is_public.is_(True))
        elif viewer_id is not None:
            query = query.where(or_(Collection.user_id == viewer_id, Collection.is_public.is_(True)))
        else:
            query = query.where(Collection.is_public.is_(True))

        query = query.order_by(Collection.created_at.desc(), Collection.id.desc()).limit(LIST_LIMIT)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _get(self, collection_id: int) -> Collection:
        collection = await self.db.get(Collection, collection_id)
        if collection is None:
            raise NotFoundError("Collection", collection_id)
        return collection

    async def _get_owned(self, collection_id: int, user_id: int) -> Collection:
        collection = await self._get(collection_id)
        if collection.user_id != user_id:
            raise ForbiddenError("Only the owner can modify this collection")
        return collection

    async def get_collection(
        self,
        collection_id: int,
        viewer_id: Optional[int] = None,
    ) -> tuple[Collection, list[tuple[CollectionItem, Optional[MediaItem]]]]:
        """The collection and its items (by position) paired with their media."""
        collection = await self._get(collection_id)
        if not collection.is_public and collection.user_id != viewer_id:
            raise ForbiddenError("This collection is private")

        result = await self.db.execute(
            select(CollectionItem)
            .where(CollectionItem.collection_id == collection_id)
            .order_by(CollectionItem.position, CollectionItem.id)
        )
        items = list(result.scalars().all())
        media_map = await load_media_map(self.db, ((i.media_type, i.media_id) for i in items))
        return collection, [(item, media_map.get((item.media_type, item.media_id))) for item in items]

    async def create_collection(
        self,
        user_id: int,
        title: str,
        description: Optional[str] = None,
        is_public: bool = True,
        is_collaborative: bool = False,
    ) -> Collection:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title is required")

        collection = Collection(
            user_id=user_id,
            title=title,
            description=description.strip() if description else None,
            is_public=is_public,
            is_collaborative=is_collaborative,
        )
        self.db.add(collection)
        await self.db.commit()
        await self.db.refresh(collection)
        logger.info("collection_created", user_id=user_id, collection_id=collection.id)
        return collection

    async def update_collection(self, collection_id: int, user_id: int, changes: dict[str, Any]) -> Collection:
        collection = await self._get_owned(collection_id, user_id)

        for field in UPDATABLE_FIELDS:
            if field not in changes or changes[field] is None:
                continue
            value = changes[field]
            if field == "title":
                value = value.strip()
                if not value:
                    raise ValidationError("Title cannot be empty")
            setattr(collection, field, value)

        await self.db.commit()
        await self.db.refresh(collection)
        return collection

    async def delete_collection(self, collection_id: int, user_id: int) -> None:
        collection = await self._get_owned(collection_id, user_id)
        await self.db.delete(collection)
        await self.db.commit()
        logger.info("collection_deleted", user_id=user_id, collection_id=collection_id)

    async def add_item(
        self,
        collection_id: int,
        user_id: int,
        media_type: str | MediaType,
        media_id: int,
        notes: Optional[str] = None,
    ) -> CollectionItem:
        media_type = parse_media_type(media_type)
        collection = await self._get(collection_id)
        if collection.user_id != user_id and not collection.is_collaborative:
            raise ForbiddenError("You cannot add items to this collection")

        media = await load_media_map(self.db, [(media_type, media_id)])
        if not media:
            raise NotFoundError("Media", media_id)

        duplicate = await self.db.execute(
            select(CollectionItem.id).where(
                CollectionItem.collection_id == collection_id,
                CollectionItem.media_type == media_type,
                CollectionItem.media_id == media_id,
            )
        )
        if duplicate.scalar_one_or_none() is not None:
            raise ConflictError("Item already in collection")

        last_position = (
            await self.db.execute(
                select(func.max(CollectionItem.position)).where(
                    CollectionItem.collection_id == collection_id
                )
            )
        ).scalar_one_or_none()

        item = CollectionItem(
            collection_id=collection_id,
            media_type=media_type,
            media_id=media_id,
            added_by_user_id=user_id,
            position=(last_position or 0) + 1,
            notes=notes,
        )
        self.db.add(item)
        collection.item_count = (collection.item_count or 0) + 1
        await self.db.commit()
        await self.db.refresh(item)
        return item

    async def remove_item(self, collection_id: int, item_id: int, user_id: int) -> None:
        collection = await self._get(collection_id)
        result = await self.db.execute(
            select(CollectionItem).where(
                CollectionItem.id == item_id,
                CollectionItem.collection_id == collection_id,
            )
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFoundError("Collection item", item_id)
        if user_id not in (collection.user_id, item.added_by_user_id):
            raise ForbiddenError("You cannot remove this item")

        await self.db.delete(item)
        collection.item_count = max((collection.item_count or 0) - 1, 0)
        await self.db.commit()
