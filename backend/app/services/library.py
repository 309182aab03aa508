"""
Library Service

Manages a user's library (user_media rows) and resolves the polymorphic
(media_type, media_id) pointers into media rows.

Every mutation drops the user's cached library, recommendations and matches.
Errors are raised as AppError subclasses; routes let them propagate to the
registered exception handler.
"""

from collections import defaultdict
from typing import Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.library import MediaStatus, UserMedia
from app.models.media import MEDIA_MODELS, MediaItem, MediaType
from app.models.user import User
from app.services.cache import cache

logger = get_logger(__name__)

MediaKey = tuple[MediaType, int]

SEARCH_USER_LIMIT = 10
SEARCH_MEDIA_LIMIT = 5


def parse_media_type(value: str | MediaType) -> MediaType:
    """Validate a media type coming from a path/query parameter."""
    try:
        return MediaType(value)
    except ValueError:
        valid = ", ".join(t.value for t in MediaType)
        raise ValidationError(f"Invalid media type. Must be one of: {valid}")


def parse_status(value: str | MediaStatus) -> MediaStatus:
    try:
        return MediaStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in MediaStatus)
        raise ValidationError(f"Invalid status. Must be one of: {valid}")


async def load_media_map(
    db: AsyncSession,
    keys: Iterable[MediaKey],
) -> dict[MediaKey, MediaItem]:
    """
    Fetch the media rows for a set of (media_type, media_id) keys.

    One query per media type present; keys whose row is gone are simply
    absent from the result.
    """
    ids_by_type: dict[MediaType, set[int]] = defaultdict(set)
    for media_type, media_id in keys:
        ids_by_type[MediaType(media_type)].add(media_id)

    media_map: dict[MediaKey, MediaItem] = {}
    for media_type, ids in ids_by_type.items():
        model = MEDIA_MODELS[media_type]
        result = await db.execute(select(model).where(model.id.in_(ids)))
        for item in result.scalars().all():
            media_map[(media_type, item.id)] = item
    return media_map


async def load_library_rows(
    db: AsyncSession,
    user_id: int,
    media_type: Optional[MediaType] = None,
) -> list[tuple[UserMedia, Optional[MediaItem]]]:
    """A user's library rows, newest first, paired with their media rows."""
    query = select(UserMedia).where(UserMedia.user_id == user_id)
    if media_type is not None:
        query = query.where(UserMedia.media_type == media_type)
    query = query.order_by(UserMedia.created_at.desc(), UserMedia.id.desc())

    rows: Sequence[UserMedia] = (await db.execute(query)).scalars().all()
    media_map = await load_media_map(db, ((r.media_type, r.media_id) for r in rows))
    return [(row, media_map.get((row.media_type, row.media_id))) for row in rows]


class LibraryService:
    """
    Usage:
    ------
        service = LibraryService(db)
        entry = await service.add_item(user.id, MediaType.ANIME, 42, rating=9)
        await service.update_status(user.id, entry.id, "completed")
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ================================
    # Reads
    # ================================

    async def get_library(
        self,
        user_id: int,
        media_type: Optional[MediaType] = None,
    ) -> list[tuple[UserMedia, Optional[MediaItem]]]:
        return await load_library_rows(self.db, user_id, media_type)

    async def get_media(self, media_type: str | MediaType, media_id: int) -> MediaItem:
        media_type = parse_media_type(media_type)
        model = MEDIA_MODELS[media_type]
        item = await self.db.get(model, media_id)
        if item is None:
            raise NotFoundError("Media", media_id)
        return item

    async def search(self, query: str, search_type: str = "all") -> dict:
        """
        Username and title search.

        search_type is "all", "users" or "media". Queries shorter than two
        characters return nothing.
        """
        query = (query or "").strip()
        results: dict = {"users": [], "media": []}
        if len(query) < 2:
            return results

        if search_type in ("all", "users"):
            users = await self.db.execute(
                select(User)
                .where(User.username.icontains(query, autoescape=True))
                .order_by(User.username)
                .limit(SEARCH_USER_LIMIT)
            )
            results["users"] = list(users.scalars().all())

        if search_type in ("all", "media"):
            for media_type, model in MEDIA_MODELS.items():
                items = await self.db.execute(
                    select(model)
                    .where(model.title.icontains(query, autoescape=True))
                    .order_by(model.title)
                    .limit(SEARCH_MEDIA_LIMIT)
                )
                results["media"].extend(
                    (media_type, item) for item in items.scalars().all()
                )

        return results

    # ================================
    # Mutations
    # ================================

    async def _get_owned(self, user_id: int, item_id: int) -> UserMedia:
        result = await self.db.execute(
            select(UserMedia).where(
                UserMedia.id == item_id,
                UserMedia.user_id == user_id,
            )
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            raise NotFoundError("Item")
        return entry

    async def _commit(self, user_id: int, entry: Optional[UserMedia] = None) -> None:
        await self.db.commit()
        if entry is not None:
            await self.db.refresh(entry)
        await cache.invalidate_user(user_id)

    async def add_item(
        self,
        user_id: int,
        media_type: str | MediaType,
        media_id: int,
        rating: Optional[float] = None,
        status: Optional[str | MediaStatus] = None,
    ) -> UserMedia:
        media_type = parse_media_type(media_type)
        await self.get_media(media_type, media_id)

        existing = await self.db.execute(
            select(UserMedia.id).where(
                UserMedia.user_id == user_id,
                UserMedia.media_type == media_type,
                UserMedia.media_id == media_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("Item already in library")

        if rating is not None:
            self._check_rating(rating)

        entry = UserMedia(
            user_id=user_id,
            media_type=media_type,
            media_id=media_id,
            rating=rating,
            status=parse_status(status) if status else None,
            tags=[],
        )
        self.db.add(entry)
        await self._commit(user_id, entry)

        logger.info(
            "library_item_added",
            user_id=user_id,
            media_type=media_type.value,
            media_id=media_id,
        )
        return entry

    @staticmethod
    def _check_rating(rating: float) -> None:
        if rating < 1 or rating > 10:
            raise ValidationError("Rating must be between 1 and 10")

    async def update_rating(self, user_id: int, item_id: int, rating: Optional[float]) -> UserMedia:
        if rating is not None:
            self._check_rating(rating)
        entry = await self._get_owned(user_id, item_id)
        entry.rating = rating
        await self._commit(user_id, entry)
        return entry

    async def update_status(self, user_id: int, item_id: int, status: str) -> UserMedia:
        new_status = parse_status(status)
        entry = await self._get_owned(user_id, item_id)
        entry.status = new_status
        await self._commit(user_id, entry)
        return entry

    async def update_progress(
        self,
        user_id: int,
        item_id: int,
        progress: Optional[int],
        progress_total: Optional[int] = None,
    ) -> UserMedia:
        if progress is not None and progress < 0:
            raise ValidationError("Progress must be a non-negative number")
        if progress_total is not None and progress_total < 0:
            raise ValidationError("Progress total must be a non-negative number")

        entry = await self._get_owned(user_id, item_id)
        entry.progress = progress
        if progress_total is not None:
            entry.progress_total = progress_total
        await self._commit(user_id, entry)
        return entry

    async def set_favorite(self, user_id: int, item_id: int, is_favorite: bool) -> UserMedia:
        entry = await self._get_owned(user_id, item_id)
        entry.is_favorite = is_favorite
        await self._commit(user_id, entry)
        return entry

    async def remove_item(self, user_id: int, item_id: int) -> None:
        entry = await self._get_owned(user_id, item_id)
        await self.db.delete(entry)
        await self._commit(user_id)
        logger.info("library_item_removed", user_id=user_id, item_id=item_id)
