"""
Letterboxd CSV export import.

Letterboxd's data export ships several CSVs (watched.csv, ratings.csv,
diary.csv ...). Any of them works here; the columns used are:

    Name (or Title), Year, Rating (0.5-5 stars), Watched Date (or Date), Tags

Films are keyed as "Title (Year)" since the export carries no stable id.
"""

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

SOURCE = SourceName.LETTERBOXD.value

# First commercial film screening; anything earlier is a bad cell
MIN_FILM_YEAR = 1881


def parse_year(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        year = int(value)
    except ValueError:
        return None
    if MIN_FILM_YEAR <= year <= utcnow().year + 10:
        return year
    return None


def parse_star_rating(value: Optional[str]) -> Optional[float]:
    """0.5-5 stars -> 1-10, rounded; anything else -> None."""
    if not value:
        return None
    try:
        stars = float(value)
    except ValueError:
        return None
    if not 0.5 <= stars <= 5:
        return None
    return float(round(stars * 2))


def film_key(title: str, year: Optional[int]) -> str:
    return f"{title} ({year})" if year else title


def parse_letterboxd_csv(text: str) -> list[ImportItem]:
    items = []
    for row in read_csv_rows(text):
        title = row.get("Name") or row.get("Title") or ""
        if not title:
            continue

        year = parse_year(row.get("Year"))
        consumed_at = (
            parse_date(row.get("Watched Date"))
            or parse_date(row.get("Date"))
            or utcnow()
        )

        items.append(
            ImportItem(
                source_item_id=film_key(title, year),
                title=title,
                extra={"year": year},
                rating=parse_star_rating(row.get("Rating")),
                status=MediaStatus.COMPLETED,
                tags=split_list(row.get("Tags")),
                consumed_at=consumed_at,
            )
        )
    return items


async def import_letterboxd_csv(
    db: AsyncSession,
    user_id: int,
    text: str,
    username: Optional[str] = None,
    fetch_covers: bool = True,
) -> ImportResult:
    items = parse_letterboxd_csv(text)

    pipeline = ImportPipeline(db, user_id)
    await pipeline.ensure_source(SourceName.LETTERBOXD, source_user_id=username or None)
    result = await pipeline.import_items(MediaType.MOVIE, SOURCE, items, fetch_covers=fetch_covers)
    await pipeline.finalize(SourceName.LETTERBOXD)

    logger.info(
        "letterboxd_csv_imported",
        user_id=user_id,
        rows=len(items),
        imported=result.imported,
        errors=result.error_count,
    )
    return result
