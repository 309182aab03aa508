"""
Goodreads public shelf scraper.

Reads https://www.goodreads.com/review/list/{user_id}?shelf=read in table
view (#booksBody tr). Profiles addressed by vanity name are first resolved
to the numeric id via /user/show/{name}.
"""

import re
from datetime import datetime
from typing import Any, Optional

import httpx
from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ExternalServiceError, NotFoundError
from app.core.logging import get_logger
from app.db.base import utcnow
from app.models.library import MediaStatus
from app.models.media import MediaType
from app.models.source import SourceName
from app.services.http import HTTPClientOwner
from app.services.integrations.base import ImportItem, ImportPipeline
from app.services.integrations.csv_utils import parse_date

logger = get_logger(__name__)

GOODREADS_URL = "https://www.goodreads.com"
SHELF_PAGE_SIZE = 100

USER_ID_PATTERN = re.compile(r"/user/show/(\d+)")
BOOK_ID_PATTERN = re.compile(r"/book/show/(\d+)")
# ._SX50_, ._SY75_, ._SX98_SY160_ ...
THUMBNAIL_SUFFIX = re.compile(r"\._S[XY]\d+_(?:S[XY]\d+_)?")

STAR_TITLES = {
    "did not like it": 1,
    "it was ok": 2,
    "liked it": 3,
    "really liked it": 4,
    "it was amazing": 5,
}


class GoodreadsBook(BaseModel):
    book_id: str
    title: str
    author: Optional[str] = None
    rating: Optional[int] = None  # stars, 1-5
    cover_url: Optional[str] = None
    date_read: Optional[datetime] = None


def full_size_cover(url: Optional[str]) -> Optional[str]:
    if not url or "nophoto" in url:
        return None
    return THUMBNAIL_SUFFIX.sub("", url)


def _text(node: Optional[Tag]) -> str:
    return node.get_text(" ", strip=True) if node is not None else ""


def _stars(row: Tag) -> Optional[int]:
    static = row.select_one(".rating .staticStars")
    if static is not None:
        lit = static.select("span.staticStar.p10")
        if lit:
            return len(lit)
        title = (static.get("title") or "").strip().lower()
        if title in STAR_TITLES:
            return STAR_TITLES[title]

    match = re.search(r"\d", _text(row.select_one(".rating .value")))
    if match and 1 <= int(match.group()) <= 5:
        return int(match.group())
    return None


def _book_id(link: Optional[Tag]) -> Optional[str]:
    if link is None:
        return None
    match = BOOK_ID_PATTERN.search(link.get("href", ""))
    return match.group(1) if match else None


def parse_shelf_page(html: str) -> list[GoodreadsBook]:
    soup = BeautifulSoup(html, "lxml")
    books: list[GoodreadsBook] = []

    for row in soup.select("#booksBody tr"):
        title_link = row.select_one(".title a")
        title = _text(title_link) or _text(row.select_one(".field.title .value"))
        book_id = _book_id(title_link)
        if not title or not book_id:
            continue

        author = _text(row.select_one(".author a")) or _text(row.select_one(".field.author .value"))
        img = row.select_one("img")

        books.append(
            GoodreadsBook(
                book_id=book_id,
                title=title,
                author=author or None,
                rating=_stars(row),
                cover_url=full_size_cover(img.get("src") if img else None),
                date_read=parse_date(_text(row.select_one(".date_read .value"))),
            )
        )

    if books:
        return books

    # Shelf rendered in cover/"bookalike" view
    for item in soup.select(".bookalike"):
        link = item.select_one("a.bookTitle") or item.select_one(".title a")
        book_id = _book_id(link)
        title = _text(link)
        if not title or not book_id:
            continue
        img = item.select_one("img")
        books.append(
            GoodreadsBook(
                book_id=book_id,
                title=title,
                author=_text(item.select_one(".authorName")) or _text(item.select_one(".author a")) or None,
                rating=_stars(item),
                cover_url=full_size_cover(img.get("src") if img else None),
            )
        )
    return books


class GoodreadsScraper(HTTPClientOwner):
    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._init_client(client, browser=True)

    async def _get(self, url: str, params: Optional[dict[str, Any]] = None) -> httpx.Response:
        try:
            response = await self.client.get(url, params=params)
        except httpx.HTTPError as e:
            raise ExternalServiceError("Goodreads", str(e)) from e
        if response.status_code >= 500:
            raise ExternalServiceError("Goodreads", f"{url} returned {response.status_code}")
        return response

    async def resolve_user_id(self, username_or_id: str) -> str:
        """Numeric ids pass through; vanity names are looked up."""
        value = username_or_id.strip().strip("/")
        if value.isdigit():
            return value

        match = USER_ID_PATTERN.search(value)
        if match:
            return match.group(1)

        response = await self._get(f"{GOODREADS_URL}/user/show/{value}")
        if response.status_code == 404:
            raise NotFoundError("Goodreads user", username_or_id)

        match = USER_ID_PATTERN.search(str(response.url)) or USER_ID_PATTERN.search(response.text)
        if not match:
            raise NotFoundError("Goodreads user", username_or_id)
        return match.group(1)

    async def scrape_read_shelf(self, user_id: str, max_pages: Optional[int] = None) -> list[GoodreadsBook]:
        max_pages = max_pages or settings.SCRAPER_MAX_PAGES
        books: list[GoodreadsBook] = []
        seen: set[str] = set()

        for page in range(1, max_pages + 1):
            response = await self._get(
                f"{GOODREADS_URL}/review/list/{user_id}",
                params={"shelf": "read", "per_page": SHELF_PAGE_SIZE, "page": page},
            )
            if response.status_code == 404:
                if page == 1:
                    raise NotFoundError("Goodreads user", user_id)
                break
            if response.status_code >= 400:
                raise ExternalServiceError("Goodreads", f"shelf request returned {response.status_code}")

            page_books = [book for book in parse_shelf_page(response.text) if book.book_id not in seen]
            if not page_books:
                break
            seen.update(book.book_id for book in page_books)
            books.extend(page_books)
            if len(page_books) < SHELF_PAGE_SIZE:
                break

        logger.info("goodreads_shelf_scraped", user_id=user_id, books=len(books))
        return books


def book_to_import_item(book: GoodreadsBook) -> ImportItem:
    return ImportItem(
        source_item_id=book.book_id,
        title=book.title,
        poster_url=book.cover_url,
        extra={"author": book.author},
        rating=float(book.rating * 2) if book.rating else None,
        status=MediaStatus.COMPLETED,
        tags=["read"],
        consumed_at=book.date_read or utcnow(),
    )


async def import_goodreads_profile(
    db: AsyncSession,
    user_id: int,
    username_or_id: str,
    max_pages: Optional[int] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> dict[str, Any]:
    async with GoodreadsScraper(client=client) as scraper:
        goodreads_id = await scraper.resolve_user_id(username_or_id)
        books = await scraper.scrape_read_shelf(goodreads_id, max_pages)

    pipeline = ImportPipeline(db, user_id)
    await pipeline.ensure_source(SourceName.GOODREADS, source_user_id=goodreads_id)
    result = await pipeline.import_items(
        MediaType.BOOK,
        SourceName.GOODREADS.value,
        [book_to_import_item(book) for book in books],
        fetch_covers=True,
    )
    await pipeline.finalize(SourceName.GOODREADS)

    return {
        "goodreads_user_id": goodreads_id,
        "books_found": len(books),
        "imported": result.imported,
        "errors": result.errors,
    }
