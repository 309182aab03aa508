"""
Tests for the Letterboxd and Goodreads profile scrapers.

Parsers are fed small HTML fixtures shaped like the live pages; the import
flows run against httpx.MockTransport.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.models.library import UserMedia
from app.models.media import Book, Movie
from app.models.source import Source
from app.services.covers import CoverImageService
from app.services.scrapers.goodreads import (
    GoodreadsScraper,
    full_size_cover,
    import_goodreads_profile,
    parse_shelf_page,
)
from app.services.scrapers.letterboxd import (
    LetterboxdScraper,
    import_letterboxd_profile,
    parse_diary_page,
    parse_films_page,
    split_title_year,
)

LETTERBOXD_FILMS = """
<html><body><ul class="poster-list">
  <li class="poster-container">
    <div class="react-component" data-component-class="LazyPoster"
         data-item-slug="alien" data-item-name="Alien (1979)">
      <div><img class="image" src="https://a.ltrbxd.com/alien-150.jpg" alt="Alien"></div>
    </div>
    <p class="poster-viewingdata"><span class="rating -micro rated-9"> ★★★★½ </span></p>
  </li>
  <li class="poster-container">
    <div class="react-component" data-component-class="LazyPoster"
         data-item-slug="heat" data-item-name="Heat (1995)">
      <div><img class="image" src="https://s.ltrbxd.com/empty-poster-150.png" alt="Heat"></div>
    </div>
    <p class="poster-viewingdata"></p>
  </li>
</ul></body></html>
"""

LETTERBOXD_LEGACY = """
<html><body><ul>
  <li class="poster-container">
    <div class="film-poster" data-film-slug="heat" data-film-name="Heat (1995)">
      <img src="https://a.ltrbxd.com/heat-150.jpg" alt="Heat">
    </div>
    <p class="poster-viewingdata"><span class="rating rated-8"></span></p>
  </li>
</ul></body></html>
"""

LETTERBOXD_DIARY = """
<html><body><table>
  <tr class="diary-entry-row">
    <td class="td-day"><a href="/cinephile/films/diary/for/2024/03/02/"><time datetime="2024-03-02">2</time></a></td>
    <td class="td-film-details"><h3><a href="/cinephile/film/alien/">Alien</a></h3></td>
  </tr>
  <tr class="diary-entry-row">
    <td class="td-day"><a href="/cinephile/films/diary/for/2023/05/01/"><time datetime="2023-05-01">1</time></a></td>
    <td class="td-film-details"><h3><a href="/cinephile/film/alien/">Alien</a></h3></td>
  </tr>
</table></body></html>
"""

LETTERBOXD_FILM = """
<html><head>
  <meta property="og:image" content="https://a.ltrbxd.com/resized/alien-1200.jpg">
</head><body>
  <section class="film-header">
    <h1 class="headline-1 filmtitle">Alien <small class="number"><a href="/films/year/1979/">1979</a></small></h1>
  </section>
  <div id="tab-genres">
    <div class="text-sluglist"><p>
      <a class="text-slug" href="/films/genre/horror/">Horror</a>
      <a class="text-slug" href="/films/genre/science-fiction/">Science Fiction</a>
      <a class="text-slug" href="/films/theme/alien-terror/">Alien terror</a>
    </p></div>
  </div>
</body></html>
"""

GOODREADS_SHELF = """
<html><body><table><tbody id="booksBody">
  <tr class="bookalike review">
    <td class="field cover"><img src="https://i.gr-assets.com/books/1555447414l/44767458._SY75_.jpg"></td>
    <td class="field title"><div class="value"><a href="/book/show/44767458-dune">Dune</a></div></td>
    <td class="field author"><div class="value"><a href="/author/show/58.Frank_Herbert">Herbert, Frank</a></div></td>
    <td class="field rating"><div class="value">
      <span class="staticStars notranslate" title="it was amazing">
        <span class="staticStar p10"></span><span class="staticStar p10"></span><span class="staticStar p10"></span><span class="staticStar p10"></span><span class="staticStar p10"></span>
      </span>
    </div></td>
    <td class="field date_read"><div class="value"><span>Jan 15, 2024</span></div></td>
  </tr>
  <tr class="bookalike review">
    <td class="field cover"><img src="https://s.gr-assets.com/assets/nophoto/book/50x75.png"></td>
    <td class="field title"><div class="value"><a href="/book/show/77566.Hyperion">Hyperion</a></div></td>
    <td class="field author"><div class="value"><a href="/author/show/2687.Dan_Simmons">Simmons, Dan</a></div></td>
    <td class="field rating"><div class="value">
      <span class="staticStars notranslate" title="liked it"><span class="staticStar p0"></span></span>
    </div></td>
    <td class="field date_read"><div class="value"><span>not set</span></div></td>
  </tr>
</tbody></table></body></html>
"""


@pytest.fixture
def no_cover_lookups(monkeypatch):
    monkeypatch.setattr(CoverImageService, "fetch_covers_batch", AsyncMock(return_value=[None, None]))


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ========================================
# Letterboxd
# ========================================

class TestLetterboxdParsing:

    def test_split_title_year(self):
        assert split_title_year("Alien (1979)") == ("Alien", 1979)
        assert split_title_year("Nine (2009) (2009)") == ("Nine (2009)", 2009)
        assert split_title_year("Untitled") == ("Untitled", None)

    def test_films_page(self):
        films = parse_films_page(LETTERBOXD_FILMS)

        assert [f.slug for f in films] == ["alien", "heat"]
        alien, heat = films
        assert alien.title == "Alien"
        assert alien.year == 1979
        assert alien.rating == 4.5
        assert alien.poster_url == "https://a.ltrbxd.com/alien-150.jpg"
        assert heat.rating is None
        assert heat.poster_url is None

    def test_legacy_films_page(self):
        films = parse_films_page(LETTERBOXD_LEGACY)

        assert len(films) == 1
        assert films[0].title == "Heat"
        assert films[0].year == 1995
        assert films[0].rating == 4.0

    def test_diary_keeps_most_recent_date(self):
        dates = parse_diary_page(LETTERBOXD_DIARY)

        assert dates == {"alien": datetime(2024, 3, 2, tzinfo=timezone.utc)}


class TestLetterboxdImport:

    async def test_import_profile(self, db_session: AsyncSession, test_user, no_cover_lookups):
        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path == "/cinephile/films/page/1/":
                return httpx.Response(200, text=LETTERBOXD_FILMS)
            if path == "/cinephile/films/diary/":
                return httpx.Response(200, text=LETTERBOXD_DIARY)
            if path == "/cinephile/":
                return httpx.Response(200, text='<div class="profile-person"><h1>Cine Phile</h1></div>')
            return httpx.Response(200, text="<html><body></body></html>")

        summary = await import_letterboxd_profile(
            db_session, test_user.id, "cinephile", max_pages=3, client=mock_client(handler)
        )

        assert summary["display_name"] == "Cine Phile"
        assert summary["films_found"] == 2
        assert summary["imported"] == 2

        alien = (await db_session.execute(select(Movie).where(Movie.title == "Alien"))).scalar_one()
        assert alien.source_item_id == "Alien (1979)"
        entry = (
            await db_session.execute(select(UserMedia).where(UserMedia.media_id == alien.id))
        ).scalar_one()
        assert entry.rating == 9
        assert entry.consumed_at.date().isoformat() == "2024-03-02"

        source = (await db_session.execute(select(Source))).scalar_one()
        assert source.source_user_id == "cinephile"

    async def test_unknown_user(self, db_session: AsyncSession, test_user):
        client = mock_client(lambda request: httpx.Response(404))

        with pytest.raises(NotFoundError):
            await import_letterboxd_profile(db_session, test_user.id, "ghost", client=client)


class TestLetterboxdFilmPage:

    async def test_scrape_film(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/film/alien/"
            return httpx.Response(200, text=LETTERBOXD_FILM)

        async with LetterboxdScraper(client=mock_client(handler)) as scraper:
            film = await scraper.scrape_film("alien")

        assert film == {
            "slug": "alien",
            "title": "Alien",
            "year": 1979,
            "genres": ["Horror", "Science Fiction"],
            "poster_url": "https://a.ltrbxd.com/resized/alien-1200.jpg",
        }

    async def test_unknown_film(self):
        async with LetterboxdScraper(client=mock_client(lambda request: httpx.Response(404))) as scraper:
            with pytest.raises(NotFoundError):
                await scraper.scrape_film("no-such-film")


# ========================================
# Goodreads
# ========================================

class TestGoodreadsParsing:

    def test_shelf_page(self):
        books = parse_shelf_page(GOODREADS_SHELF)

        assert [b.book_id for b in books] == ["44767458", "77566"]
        dune, hyperion = books
        assert dune.title == "Dune"
        assert dune.author == "Herbert, Frank"
        assert dune.rating == 5
        assert dune.cover_url == "https://i.gr-assets.com/books/1555447414l/44767458.jpg"
        assert dune.date_read == datetime(2024, 1, 15, tzinfo=timezone.utc)

        assert hyperion.rating == 3
        assert hyperion.cover_url is None
        assert hyperion.date_read is None

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://i.gr-assets.com/x/123._SX98_SY160_.jpg", "https://i.gr-assets.com/x/123.jpg"),
            ("https://i.gr-assets.com/x/123.jpg", "https://i.gr-assets.com/x/123.jpg"),
            ("https://s.gr-assets.com/assets/nophoto/book/50x75.png", None),
            (None, None),
        ],
    )
    def test_full_size_cover(self, url, expected):
        assert full_size_cover(url) == expected


class TestGoodreadsScraper:

    @pytest.mark.parametrize(
        "value",
        ["12345", "https://www.goodreads.com/user/show/12345-someone", "https://www.goodreads.com/user/show/12345"],
    )
    async def test_resolve_without_lookup(self, value):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        assert await GoodreadsScraper(client=mock_client(handler)).resolve_user_id(value) == "12345"

    async def test_resolve_vanity_name(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/user/show/someone"
            return httpx.Response(200, text='<a href="/user/show/777-someone">profile</a>')

        assert await GoodreadsScraper(client=mock_client(handler)).resolve_user_id("someone") == "777"

    async def test_resolve_unknown_name(self):
        client = mock_client(lambda request: httpx.Response(404))

        with pytest.raises(NotFoundError):
            await GoodreadsScraper(client=client).resolve_user_id("ghost")

    async def test_import_profile(self, db_session: AsyncSession, test_user, no_cover_lookups):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/review/list/777"
            assert request.url.params["shelf"] == "read"
            return httpx.Response(200, text=GOODREADS_SHELF)

        summary = await import_goodreads_profile(
            db_session, test_user.id, "777", client=mock_client(handler)
        )

        assert summary == {
            "goodreads_user_id": "777",
            "books_found": 2,
            "imported": 2,
            "errors": [],
        }
        dune = (await db_session.execute(select(Book).where(Book.title == "Dune"))).scalar_one()
        assert dune.author == "Herbert, Frank"
        entry = (
            await db_session.execute(select(UserMedia).where(UserMedia.media_id == dune.id))
        ).scalar_one()
        assert entry.rating == 10
        assert entry.tags == ["read"]
