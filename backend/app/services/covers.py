"""
Cover Image Service

- Books:  Open Library covers (by ISBN, then by search)
- Movies: TMDB search (needs TMDB_API_KEY)

Lookups never raise: a failed or empty lookup returns None and is logged.
Batches run COVER_FETCH_BATCH_SIZE lookups concurrently.
"""

import asyncio
import re
from typing import Any, Optional, Sequence

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger
from app.models.media import MEDIA_MODELS, MediaType
from app.services.http import HTTPClientOwner

logger = get_logger(__name__)

OPEN_LIBRARY_COVER_ISBN = "https://covers.openlibrary.org/b/isbn/{isbn}-L.jpg"
OPEN_LIBRARY_COVER_ID = "https://covers.openlibrary.org/b/id/{cover_id}-L.jpg"
OPEN_LIBRARY_SEARCH = "https://openlibrary.org/search.json"
TMDB_SEARCH_MOVIE = "https://api.themoviedb.org/3/search/movie"
TMDB_IMAGE = "https://image.tmdb.org/t/p/w500{path}"

COVER_MEDIA_TYPES = (MediaType.BOOK, MediaType.MOVIE)


def clean_isbn(isbn: str) -> str:
    return re.sub(r"[-\s]", "", isbn)


class CoverImageService(HTTPClientOwner):
    """
    Usage:
    ------
        async with CoverImageService() as covers:
            url = await covers.get_book_cover("Dune", "Frank Herbert")
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._init_client(client)

    async def _is_image(self, url: str) -> bool:
        try:
            response = await self.client.head(url)
        except httpx.HTTPError as e:
            logger.debug("cover_head_failed", url=url, error=str(e))
            return False
        content_type = response.headers.get("content-type", "")
        return response.status_code == 200 and content_type.startswith("image")

    async def get_book_cover(
        self,
        title: str,
        author: Optional[str] = None,
        isbn: Optional[str] = None,
    ) -> Optional[str]:
        try:
            if isbn:
                url = OPEN_LIBRARY_COVER_ISBN.format(isbn=clean_isbn(isbn))
                if await self._is_image(url):
                    return url

            if not title:
                return None

            query = f"{title} {author}" if author else title
            response = await self.client.get(OPEN_LIBRARY_SEARCH, params={"q": query, "limit": 1})
            if response.status_code != 200:
                return None

            docs = response.json().get("docs") or []
            if not docs:
                return None
            book = docs[0]

            isbns = book.get("isbn") or []
            if isbns:
                url = OPEN_LIBRARY_COVER_ISBN.format(isbn=clean_isbn(isbns[0]))
                if await self._is_image(url):
                    return url

            if book.get("cover_i"):
                return OPEN_LIBRARY_COVER_ID.format(cover_id=book["cover_i"])

            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("book_cover_lookup_failed", title=title, error=str(e))
            return None

    async def get_movie_poster(self, title: str, year: Optional[int] = None) -> Optional[str]:
        if not settings.TMDB_API_KEY:
            return None

        params: dict[str, Any] = {"api_key": settings.TMDB_API_KEY, "query": title}
        if year:
            params["year"] = year

        try:
            response = await self.client.get(TMDB_SEARCH_MOVIE, params=params)
            if response.status_code != 200:
                logger.warning("tmdb_search_failed", title=title, status=response.status_code)
                return None
            results = response.json().get("results") or []
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("movie_poster_lookup_failed", title=title, error=str(e))
            return None

        if results and results[0].get("poster_path"):
            return TMDB_IMAGE.format(path=results[0]["poster_path"])
        return None

    async def get_cover(self, media_type: MediaType, item: dict[str, Any]) -> Optional[str]:
        """Dispatch on media type; item carries title plus author/isbn or year."""
        if media_type == MediaType.BOOK:
            return await self.get_book_cover(item.get("title", ""), item.get("author"), item.get("isbn"))
        if media_type == MediaType.MOVIE:
            return await self.get_movie_poster(item.get("title", ""), item.get("year"))
        return None

    async def fetch_covers_batch(
        self,
        media_type: MediaType,
        items: Sequence[dict[str, Any]],
        batch_size: Optional[int] = None,
    ) -> list[Optional[str]]:
        """Cover URLs for items, in order, fetched batch_size at a time."""
        batch_size = batch_size or settings.COVER_FETCH_BATCH_SIZE
        covers: list[Optional[str]] = []
        for start in range(0, len(items), batch_size):
            batch = items[start:start + batch_size]
            results = await asyncio.gather(
                *(self.get_cover(media_type, item) for item in batch),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    logger.warning("cover_fetch_error", error=str(result))
                    covers.append(None)
                else:
                    covers.append(result)
        return covers


def _cover_lookup_fields(media_type: MediaType, media) -> dict[str, Any]:
    fields: dict[str, Any] = {"title": media.title}
    if media_type == MediaType.BOOK:
        fields.update(author=media.author, isbn=media.isbn)
    elif media_type == MediaType.MOVIE:
        fields["year"] = media.year
    return fields


async def update_missing_covers(
    db: AsyncSession,
    media_type: Optional[MediaType] = None,
    limit: int = 50,
    covers: Optional[CoverImageService] = None,
) -> dict[str, int]:
    """
    Fill poster_url for books/movies that have none.

    Returns {"updated", "failed", "total"}; failed counts items for which
    no cover could be found.
    """
    media_types = [media_type] if media_type else list(COVER_MEDIA_TYPES)
    service = covers or CoverImageService()
    updated = failed = total = 0

    try:
        for current_type in media_types:
            if current_type not in COVER_MEDIA_TYPES:
                continue
            model = MEDIA_MODELS[current_type]
            result = await db.execute(
                select(model).where(model.poster_url.is_(None)).order_by(model.id).limit(limit)
            )
            items = list(result.scalars().all())
            if not items:
                continue

            urls = await service.fetch_covers_batch(
                current_type,
                [_cover_lookup_fields(current_type, item) for item in items],
            )
            for item, url in zip(items, urls):
                total += 1
                if url:
                    item.poster_url = url
                    updated += 1
                else:
                    failed += 1

        await db.commit()
    finally:
        if covers is None:
            await service.aclose()

    logger.info("missing_covers_updated", updated=updated, failed=failed, total=total)
    return {"updated": updated, "failed": failed, "total": total}
