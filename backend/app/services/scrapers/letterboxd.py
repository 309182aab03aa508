"""
Letterboxd public profile scraper.

Letterboxd has no public API, so connecting by username reads the HTML of
https://letterboxd.com/{username}/films/page/{n}/. The grid is rendered two
ways depending on the page version:

- current: div.react-component[data-component-class=LazyPoster] with
  data-item-slug and data-item-name ("Title (Year)")
- older:   li.poster-container > div[data-film-slug], title in img[alt]

Ratings come from p.poster-viewingdata span.rating.rated-N where N is half
stars (rated-7 = 3.5 stars).
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
from app.services.integrations.letterboxd_csv import film_key

logger = get_logger(__name__)

LETTERBOXD_URL = "https://letterboxd.com"

YEAR_SUFFIX = re.compile(r"\s*\((\d{4})\)$")
RATED_CLASS = re.compile(r"rated-(\d+)")


class LetterboxdFilm(BaseModel):
    slug: str
    title: str
    year: Optional[int] = None
    rating: Optional[float] = None  # stars, 0.5-5
    poster_url: Optional[str] = None
    watched_date: Optional[datetime] = None


class LetterboxdProfile(BaseModel):
    username: str
    display_name: str
    films: list[LetterboxdFilm]


def split_title_year(full_title: str) -> tuple[str, Optional[int]]:
    match = YEAR_SUFFIX.search(full_title)
    if not match:
        return full_title.strip(), None
    return full_title[:match.start()].strip(), int(match.group(1))


def _rating_from(node: Optional[Tag]) -> Optional[float]:
    if node is None:
        return None
    rating = node.select_one("span.rating")
    if rating is None:
        return None
    for cls in rating.get("class", []):
        match = RATED_CLASS.fullmatch(cls)
        if match:
            return int(match.group(1)) / 2
    return None


def _poster_from(node: Tag) -> Optional[str]:
    img = node.select_one("img.image") or node.select_one("img")
    if img is None:
        return None
    src = img.get("src")
    # Lazy-loaded grids ship a transparent placeholder
    if not src or "empty-poster" in src:
        return None
    return src


def parse_films_page(html: str) -> list[LetterboxdFilm]:
    soup = BeautifulSoup(html, "lxml")
    films: list[LetterboxdFilm] = []

    posters = soup.select("div.react-component[data-component-class=LazyPoster]")
    for poster in posters:
        slug = poster.get("data-item-slug") or poster.get("data-film-slug")
        if not slug:
            continue
        title, year = split_title_year(poster.get("data-item-name") or "")
        if not title:
            continue

        viewing = poster.find_next_sibling("p", class_="poster-viewingdata")
        if viewing is None and poster.parent is not None:
            viewing = poster.parent.select_one("p.poster-viewingdata")

        films.append(
            LetterboxdFilm(
                slug=slug,
                title=title,
                year=year,
                rating=_rating_from(viewing),
                poster_url=_poster_from(poster),
            )
        )

    if posters:
        return films

    for container in soup.select("li.poster-container"):
        poster = container.select_one("div[data-film-slug]")
        if poster is None:
            continue
        img = container.select_one("img")
        full_title = poster.get("data-film-name") or (img.get("alt") if img else "") or ""
        title, year = split_title_year(full_title)
        if not title:
            continue
        films.append(
            LetterboxdFilm(
                slug=poster["data-film-slug"],
                title=title,
                year=year,
                rating=_rating_from(container.select_one("p.poster-viewingdata") or container),
                poster_url=_poster_from(container),
            )
        )
    return films


def parse_diary_page(html: str) -> dict[str, datetime]:
    """Map film slug -> most recent watched date from a diary page."""
    soup = BeautifulSoup(html, "lxml")
    dates: dict[str, datetime] = {}
    for row in soup.select("tr.diary-entry-row"):
        time_tag = row.select_one("td.td-day a time[datetime]")
        link = row.select_one("td.td-film-details a[href]") or row.select_one("h3 a[href]")
        slug = None
        if link is not None:
            match = re.search(r"/film/([^/]+)/", link["href"])
            slug = match.group(1) if match else None
        if slug is None:
            holder = row.select_one("[data-film-slug]") or row.select_one("[data-item-slug]")
            if holder is not None:
                slug = holder.get("data-film-slug") or holder.get("data-item-slug")

        watched = parse_date(time_tag["datetime"]) if time_tag is not None else None
        if slug and watched:
            # Diary is newest first
            dates.setdefault(slug, watched)
    return dates


class LetterboxdScraper(HTTPClientOwner):
    """
    Usage:
    ------
        async with LetterboxdScraper() as scraper:
            films = await scraper.scrape_user_films("someone")
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._init_client(client, browser=True)

    async def _fetch(self, url: str) -> Optional[str]:
        """Page HTML, or None on 404."""
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            raise ExternalServiceError("Letterboxd", str(e)) from e
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise ExternalServiceError("Letterboxd", f"{url} returned {response.status_code}")
        return response.text

    async def scrape_profile(self, username: str) -> dict[str, Any]:
        html = await self._fetch(f"{LETTERBOXD_URL}/{username}/")
        if html is None:
            raise NotFoundError("Letterboxd user", username)
        soup = BeautifulSoup(html, "lxml")
        heading = soup.select_one(".profile-person h1") or soup.select_one("h1.section-heading")
        display_name = heading.get_text(strip=True) if heading else ""
        return {"username": username, "display_name": display_name or username}

    async def scrape_user_films(self, username: str, max_pages: Optional[int] = None) -> list[LetterboxdFilm]:
        max_pages = max_pages or settings.SCRAPER_MAX_PAGES
        films: list[LetterboxdFilm] = []
        seen: set[str] = set()

        for page in range(1, max_pages + 1):
            html = await self._fetch(f"{LETTERBOXD_URL}/{username}/films/page/{page}/")
            if html is None:
                if page == 1:
                    raise NotFoundError("Letterboxd user", username)
                break

            page_films = [film for film in parse_films_page(html) if film.slug not in seen]
            if not page_films:
                break
            seen.update(film.slug for film in page_films)
            films.extend(page_films)

        logger.info("letterboxd_films_scraped", username=username, films=len(films))
        return films

    async def scrape_diary_dates(self, username: str) -> dict[str, datetime]:
        html = await self._fetch(f"{LETTERBOXD_URL}/{username}/films/diary/")
        if html is None:
            return {}
        return parse_diary_page(html)

    async def scrape_film(self, slug: str) -> dict[str, Any]:
        html = await self._fetch(f"{LETTERBOXD_URL}/film/{slug}/")
        if html is None:
            raise NotFoundError("Letterboxd film", slug)
        soup = BeautifulSoup(html, "lxml")

        heading = soup.select_one("h1.headline-1")
        title = ""
        if heading is not None:
            title = heading.find(string=True, recursive=False) or heading.get_text(" ", strip=True)
            title = title.strip()

        year_text = ""
        year_link = soup.select_one("h1.headline-1 small a") or soup.select_one("div.releaseyear a")
        if year_link is not None:
            year_text = year_link.get_text(strip=True)

        og_image = soup.select_one('meta[property="og:image"]')
        poster = og_image.get("content") if og_image else None

        return {
            "slug": slug,
            "title": title,
            "year": int(year_text) if year_text.isdigit() else None,
            "genres": [a.get_text(strip=True) for a in soup.select('#tab-genres a[href*="/films/genre/"]')],
            "poster_url": poster,
        }

    async def scrape_user(self, username: str, max_pages: Optional[int] = None) -> LetterboxdProfile:
        """Films plus diary dates; a diary failure leaves dates empty."""
        films = await self.scrape_user_films(username, max_pages)

        try:
            dates = await self.scrape_diary_dates(username)
        except ExternalServiceError as e:
            logger.warning("letterboxd_diary_failed", username=username, error=e.message)
            dates = {}
        for film in films:
            film.watched_date = dates.get(film.slug)

        try:
            profile = await self.scrape_profile(username)
            display_name = profile["display_name"]
        except ExternalServiceError:
            display_name = username

        return LetterboxdProfile(username=username, display_name=display_name, films=films)


def film_to_import_item(film: LetterboxdFilm) -> ImportItem:
    return ImportItem(
        source_item_id=film_key(film.title, film.year),
        title=film.title,
        poster_url=film.poster_url,
        extra={"year": film.year},
        rating=round(film.rating * 2) if film.rating else None,
        status=MediaStatus.COMPLETED,
        consumed_at=film.watched_date or utcnow(),
    )


async def import_letterboxd_profile(
    db: AsyncSession,
    user_id: int,
    username: str,
    max_pages: Optional[int] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> dict[str, Any]:
    async with LetterboxdScraper(client=client) as scraper:
        profile = await scraper.scrape_user(username, max_pages)

    pipeline = ImportPipeline(db, user_id)
    await pipeline.ensure_source(SourceName.LETTERBOXD, source_user_id=username)
    result = await pipeline.import_items(
        MediaType.MOVIE,
        SourceName.LETTERBOXD.value,
        [film_to_import_item(film) for film in profile.films],
        fetch_covers=True,
    )
    await pipeline.finalize(SourceName.LETTERBOXD)

    return {
        "username": username,
        "display_name": profile.display_name,
        "films_found": len(profile.films),
        "imported": result.imported,
        "errors": result.errors,
    }
