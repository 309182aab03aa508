"""
Import Pipeline

Every source (CSV uploads, scrapers, MyAnimeList, Spotify) turns its data
into ImportItem records and hands them to ImportPipeline, which:

1. upserts the user's Source row
2. finds media rows that already exist for (source, source_item_id)
3. optionally looks up covers for new books/movies
4. inserts the new media rows
5. upserts user_media in batches of 500, keyed on (user, media_type, media_id)
6. stamps Source.last_synced_at and drops the user's cached library,
   recommendations and matches

Usage:
------
    pipeline = ImportPipeline(db, user.id)
    await pipeline.ensure_source(SourceName.GOODREADS, source_user_id="12345")
    result = await pipeline.import_items(MediaType.BOOK, "goodreads", items)
    await pipeline.finalize(SourceName.GOODREADS)
"""

from datetime import datetime, timedelta
from typing import Any, Iterable, Optional, Sequence

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.db.base import utcnow
from app.models.library import MediaStatus, UserMedia
from app.models.media import MEDIA_MODELS, MediaType
from app.models.source import Source, SourceName
from app.services.cache import cache
from app.services.covers import COVER_MEDIA_TYPES, CoverImageService

logger = get_logger(__name__)

USER_MEDIA_BATCH_SIZE = 500
LOOKUP_CHUNK_SIZE = 500


class ImportItem(BaseModel):
    """One entry from an external list, normalised for the pipeline."""

    source_item_id: str
    title: str
    genre: list[str] = Field(default_factory=list)
    poster_url: Optional[str] = None
    # Per-type media columns: author/isbn, num_episodes, year, artist/album ...
    extra: dict[str, Any] = Field(default_factory=dict)

    rating: Optional[float] = None
    status: Optional[MediaStatus] = None
    tags: list[str] = Field(default_factory=list)
    consumed_at: Optional[datetime] = None
    progress: Optional[int] = None
    progress_total: Optional[int] = None


class ImportResult(BaseModel):
    imported: int = 0
    errors: list[str] = Field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)


class OAuthTokens(BaseModel):
    """Token endpoint response shared by MyAnimeList and Spotify."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int = 3600
    token_type: str = "Bearer"

    def expires_at(self) -> datetime:
        return utcnow() + timedelta(seconds=self.expires_in)


def _chunks(items: Sequence, size: int) -> Iterable[Sequence]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class ImportPipeline:
    def __init__(
        self,
        db: AsyncSession,
        user_id: int,
        covers: Optional[CoverImageService] = None,
    ):
        self.db = db
        self.user_id = user_id
        self.covers = covers

    # ================================
    # Source bookkeeping
    # ================================

    async def get_source(self, source_name: SourceName) -> Optional[Source]:
        result = await self.db.execute(
            select(Source).where(
                Source.user_id == self.user_id,
                Source.source_name == source_name,
            )
        )
        return result.scalar_one_or_none()

    async def ensure_source(
        self,
        source_name: SourceName,
        source_user_id: Optional[str] = None,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> Source:
        """Create or update the user's Source; only non-None values overwrite."""
        source = await self.get_source(source_name)
        if source is None:
            source = Source(user_id=self.user_id, source_name=source_name)
            self.db.add(source)

        if source_user_id is not None:
            source.source_user_id = source_user_id
        if access_token is not None:
            source.access_token = access_token
        if refresh_token is not None:
            source.refresh_token = refresh_token
        if expires_at is not None:
            source.expires_at = expires_at

        await self.db.commit()
        await self.db.refresh(source)
        return source

    async def finalize(self, source_name: SourceName) -> None:
        source = await self.get_source(source_name)
        if source is not None:
            source.last_synced_at = utcnow()
            await self.db.commit()
        await cache.invalidate_user(self.user_id)

    # ================================
    # Media + library import
    # ================================

    async def _existing_media(self, model, source: str, ids: list[str]) -> dict[str, Any]:
        found: dict[str, Any] = {}
        for chunk in _chunks(ids, LOOKUP_CHUNK_SIZE):
            result = await self.db.execute(
                select(model).where(
                    model.source == source,
                    model.source_item_id.in_(chunk),
                )
            )
            for media in result.scalars().all():
                found[media.source_item_id] = media
        return found

    async def _fill_covers(self, media_type: MediaType, items: list[ImportItem]) -> None:
        missing = [item for item in items if not item.poster_url]
        if not missing or media_type not in COVER_MEDIA_TYPES:
            return

        service = self.covers or CoverImageService()
        try:
            urls = await service.fetch_covers_batch(
                media_type,
                [{"title": item.title, **item.extra} for item in missing],
            )
        finally:
            if self.covers is None:
                await service.aclose()

        for item, url in zip(missing, urls):
            if url:
                item.poster_url = url

    async def import_items(
        self,
        media_type: MediaType,
        source: str,
        items: Sequence[ImportItem],
        fetch_covers: bool = False,
    ) -> ImportResult:
        result = ImportResult()
        if not items:
            return result

        model = MEDIA_MODELS[media_type]

        # Later duplicates of the same id win
        unique: dict[str, ImportItem] = {}
        for item in items:
            unique[item.source_item_id] = item
        ordered = list(unique.values())

        existing = await self._existing_media(model, source, list(unique))
        new_items = [item for item in ordered if item.source_item_id not in existing]

        if fetch_covers:
            await self._fill_covers(media_type, new_items)

        media_ids: dict[str, int] = {
            source_item_id: media.id for source_item_id, media in existing.items()
        }

        for item in ordered:
            media = existing.get(item.source_item_id)
            if media is not None and not media.poster_url and item.poster_url:
                media.poster_url = item.poster_url

        try:
            created = []
            for item in new_items:
                media = model(
                    source=source,
                    source_item_id=item.source_item_id,
                    title=item.title[:500],
                    genre=item.genre,
                    poster_url=item.poster_url,
                    **item.extra,
                )
                self.db.add(media)
                created.append((item.source_item_id, media))
            await self.db.flush()
            media_ids.update({source_item_id: media.id for source_item_id, media in created})
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(
                "media_insert_failed",
                user_id=self.user_id,
                media_type=media_type.value,
                error=str(e),
            )
            result.errors.append(f"Failed to save {media_type.value} items: {e}")
            return result

        for batch in _chunks(ordered, USER_MEDIA_BATCH_SIZE):
            try:
                result.imported += await self._upsert_user_media(media_type, batch, media_ids)
                await self.db.commit()
            except Exception as e:
                await self.db.rollback()
                logger.error(
                    "user_media_batch_failed",
                    user_id=self.user_id,
                    media_type=media_type.value,
                    batch_size=len(batch),
                    error=str(e),
                )
                result.errors.append(f"Failed to save {len(batch)} library entries: {e}")

        logger.info(
            "import_completed",
            user_id=self.user_id,
            media_type=media_type.value,
            source=source,
            imported=result.imported,
            new_media=len(new_items),
            errors=result.error_count,
        )
        return result

    async def _upsert_user_media(
        self,
        media_type: MediaType,
        batch: Sequence[ImportItem],
        media_ids: dict[str, int],
    ) -> int:
        ids = [media_ids[item.source_item_id] for item in batch if item.source_item_id in media_ids]
        if not ids:
            return 0

        rows = await self.db.execute(
            select(UserMedia).where(
                UserMedia.user_id == self.user_id,
                UserMedia.media_type == media_type,
                UserMedia.media_id.in_(ids),
            )
        )
        existing = {row.media_id: row for row in rows.scalars().all()}

        count = 0
        for item in batch:
            media_id = media_ids.get(item.source_item_id)
            if media_id is None:
                continue

            row = existing.get(media_id)
            if row is None:
                row = UserMedia(
                    user_id=self.user_id,
                    media_type=media_type,
                    media_id=media_id,
                )
                self.db.add(row)
                existing[media_id] = row

            row.rating = item.rating
            row.tags = list(item.tags)
            row.consumed_at = item.consumed_at
            if item.status is not None:
                row.status = item.status
            if item.progress is not None:
                row.progress = item.progress
            if item.progress_total is not None:
                row.progress_total = item.progress_total
            count += 1

        await self.db.flush()
        return count
