"""
Re-import a connected source.

Used by the Celery sync tasks. Each source is pulled again the same way it
was connected: MAL by username (with the OAuth token when one is held),
Spotify with its refreshed token, Letterboxd and Goodreads by scraping the
stored profile. Sources created from a CSV upload alone have no profile to
pull from and are skipped.
"""

from datetime import timedelta
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ValidationError
from app.core.logging import get_logger
from app.db.base import utcnow
from app.models.source import Source, SourceName
from app.services.integrations.myanimelist import MyAnimeListClient, sync_mal_data
from app.services.integrations.spotify import sync_spotify_data
from app.services.scrapers.goodreads import import_goodreads_profile
from app.services.scrapers.letterboxd import import_letterboxd_profile

logger = get_logger(__name__)


def is_syncable(source: Source) -> bool:
    if source.source_name == SourceName.SPOTIFY:
        return bool(source.refresh_token or source.access_token)
    return bool(source.source_user_id)


async def sync_source(db: AsyncSession, source: Source) -> dict[str, Any]:
    if not is_syncable(source):
        raise ValidationError(f"{source.source_name} has nothing to sync from")

    name = SourceName(source.source_name)
    logger.info("source_sync_started", user_id=source.user_id, source=name.value)

    if name == SourceName.MYANIMELIST:
        access_token = None
        if source.refresh_token or source.access_token:
            async with MyAnimeListClient() as mal:
                access_token = await mal.get_valid_access_token(db, source)
        return await sync_mal_data(db, source.user_id, source.source_user_id, access_token=access_token)

    if name == SourceName.SPOTIFY:
        return await sync_spotify_data(db, source.user_id, source)

    if name == SourceName.LETTERBOXD:
        return await import_letterboxd_profile(db, source.user_id, source.source_user_id)

    return await import_goodreads_profile(db, source.user_id, source.source_user_id)


async def find_due_sources(db: AsyncSession) -> list[Source]:
    """Sources not synced within SOURCE_SYNC_INTERVAL_HOURS that can be pulled again."""
    cutoff = utcnow() - timedelta(hours=settings.SOURCE_SYNC_INTERVAL_HOURS)
    result = await db.execute(
        select(Source)
        .where(or_(Source.last_synced_at.is_(None), Source.last_synced_at < cutoff))
        .order_by(Source.id)
    )
    return [source for source in result.scalars().all() if is_syncable(source)]
