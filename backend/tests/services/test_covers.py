"""
Tests for cover image lookups.
"""

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.media import Book, MediaType, Movie
from app.services.covers import CoverImageService, update_missing_covers


def open_library(docs=None, isbn_ok=False):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "covers.openlibrary.org":
            if isbn_ok:
                return httpx.Response(200, headers={"content-type": "image/jpeg"})
            return httpx.Response(404)
        if request.url.path == "/search.json":
            return httpx.Response(200, json={"docs": docs or []})
        return httpx.Response(404)

    return CoverImageService(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestBookCovers:

    async def test_isbn_cover(self):
        url = await open_library(isbn_ok=True).get_book_cover("Dune", isbn="978-0441172719")

        assert url == "https://covers.openlibrary.org/b/isbn/9780441172719-L.jpg"

    async def test_search_cover_id(self):
        covers = open_library(docs=[{"title": "Dune", "cover_i": 12345}])

        url = await covers.get_book_cover("Dune", "Frank Herbert")

        assert url == "https://covers.openlibrary.org/b/id/12345-L.jpg"

    async def test_nothing_found(self):
        assert await open_library().get_book_cover("Nonexistent") is None

    async def test_network_error_returns_none(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down")

        covers = CoverImageService(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        assert await covers.get_book_cover("Dune") is None


class TestMoviePosters:

    async def test_without_tmdb_key(self, monkeypatch):
        monkeypatch.setattr("app.services.covers.settings.TMDB_API_KEY", "")

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        covers = CoverImageService(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        assert await covers.get_movie_poster("Alien", 1979) is None

    async def test_tmdb_search(self, monkeypatch):
        monkeypatch.setattr("app.services.covers.settings.TMDB_API_KEY", "tmdb-key")

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["query"] == "Alien"
            assert request.url.params["year"] == "1979"
            return httpx.Response(200, json={"results": [{"poster_path": "/alien.jpg"}]})

        covers = CoverImageService(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        assert await covers.get_movie_poster("Alien", 1979) == "https://image.tmdb.org/t/p/w500/alien.jpg"


class TestBatch:

    async def test_batch_keeps_order(self):
        covers = open_library(docs=[{"cover_i": 1}])

        urls = await covers.fetch_covers_batch(
            MediaType.BOOK,
            [{"title": "A"}, {"title": "B"}, {"title": "C"}],
            batch_size=2,
        )

        assert urls == ["https://covers.openlibrary.org/b/id/1-L.jpg"] * 3

    async def test_unsupported_type(self):
        urls = await open_library().fetch_covers_batch(MediaType.ANIME, [{"title": "Bebop"}])

        assert urls == [None]

    async def test_update_missing_covers(self, db_session: AsyncSession, monkeypatch):
        monkeypatch.setattr("app.services.covers.settings.TMDB_API_KEY", "")
        db_session.add_all([
            Book(source="goodreads", source_item_id="1", title="Dune"),
            Book(source="goodreads", source_item_id="2", title="Has Cover", poster_url="https://x/y.jpg"),
            Movie(source="letterboxd", source_item_id="Alien (1979)", title="Alien", year=1979),
        ])
        await db_session.commit()

        summary = await update_missing_covers(
            db_session, covers=open_library(docs=[{"cover_i": 9}])
        )

        assert summary == {"updated": 1, "failed": 1, "total": 2}

    async def test_update_single_type(self, db_session: AsyncSession):
        db_session.add(Book(source="goodreads", source_item_id="1", title="Dune"))
        await db_session.commit()

        summary = await update_missing_covers(
            db_session, media_type=MediaType.BOOK, covers=open_library()
        )

        assert summary == {"updated": 0, "failed": 1, "total": 1}
