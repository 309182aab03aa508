"""
Goodreads CSV export import.

Goodreads exports (My Books -> Import and export) have, among others:

    Book Id, Title, Author, ISBN, ISBN13, My Rating, Date Read, Date Added,
    Bookshelves, Exclusive Shelf, My Review

ISBN cells are wrapped as ="0441172717" so spreadsheets keep leading zeros.
Ratings are 0-5 stars (0 = unrated) and are stored doubled on the 0-10 scale.
"""

import re
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.db.base import utcnow
from app.models.library import MediaStatus
from app.models.media import MediaType
from app.models.source import SourceName
from app.services.integrations.base import ImportItem, ImportPipeline, ImportResult
from app.services.integrations.csv_utils import parse_date, read_csv_rows, split_list

logger = get_logger(__name__)

SOURCE = SourceName.GOODREADS.value

SHELF_STATUS = {
    "read": MediaStatus.COMPLETED,
    "currently-reading": MediaStatus.READING,
    "to-read": MediaStatus.PLAN_TO_READ,
}


def clean_isbn(value: Optional[str]) -> Optional[str]:
    """'="9780441172719"' -> '9780441172719'; empty wrappers -> None."""
    if not value:
        return None
    cleaned = re.sub(r'^="?|"$', "", value.strip()).strip().strip('"')
    return cleaned or None


def parse_stars(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        stars = int(float(value))
    except ValueError:
        return None
    return stars if 0 <= stars <= 5 else None


def parse_goodreads_csv(text: str) -> list[ImportItem]:
    """
    Parse a Goodreads export into import items.

    Rows without a Book Id or Title are skipped. Raises ValidationError for
    a file without data rows.
    """
    items = []
    for row in read_csv_rows(text):
        book_id = row.get("Book Id", "")
        title = row.get("Title", "")
        if not book_id or not title:
            continue

        stars = parse_stars(row.get("My Rating"))
        rating = float(stars * 2) if stars else None

        consumed_at = (
            parse_date(row.get("Date Read"))
            or parse_date(row.get("Date Added"))
            or utcnow()
        )

        exclusive_shelf = row.get("Exclusive Shelf", "")
        tags = split_list(row.get("Bookshelves"))
        if exclusive_shelf and exclusive_shelf not in tags:
            tags.append(exclusive_shelf)

        isbn = clean_isbn(row.get("ISBN13")) or clean_isbn(row.get("ISBN"))

        items.append(
            ImportItem(
                source_item_id=book_id,
                title=title,
                extra={"author": row.get("Author") or None, "isbn": isbn},
                rating=rating,
                status=SHELF_STATUS.get(exclusive_shelf),
                tags=tags,
                consumed_at=consumed_at,
            )
        )
    return items


async def import_goodreads_csv(
    db: AsyncSession,
    user_id: int,
    text: str,
    profile_url: Optional[str] = None,
    fetch_covers: bool = True,
) -> ImportResult:
    items = parse_goodreads_csv(text)

    pipeline = ImportPipeline(db, user_id)
    await pipeline.ensure_source(SourceName.GOODREADS, source_user_id=profile_url or None)
    result = await pipeline.import_items(MediaType.BOOK, SOURCE, items, fetch_covers=fetch_covers)
    await pipeline.finalize(SourceName.GOODREADS)

    logger.info(
        "goodreads_csv_imported",
        user_id=user_id,
        rows=len(items),
        imported=result.imported,
        errors=result.error_count,
    )
    return result
