"""
Tests for the MyAnimeList client and list import.

HTTP is served by httpx.MockTransport; nothing leaves the process.
"""

import base64
import hashlib
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ExternalServiceError, NotFoundError
from app.db.base import utcnow
from app.models.library import MediaStatus, UserMedia
from app.models.media import Anime, MediaType
from app.models.source import Source, SourceName
from app.services.integrations.myanimelist import (
    MyAnimeListClient,
    generate_pkce,
    sync_mal_data,
    to_import_item,
)

ANIME_ENTRY = {
    "node": {
        "id": 1,
        "title": "Cowboy Bebop",
        "main_picture": {"medium": "https://cdn.myanimelist.net/1m.jpg", "large": "https://cdn.myanimelist.net/1l.jpg"},
        "genres": [{"id": 1, "name": "Action"}, {"id": 24, "name": "Sci-Fi"}],
        "num_episodes": 26,
    },
    "list_status": {
        "score": 9,
        "status": "completed",
        "num_episodes_watched": 26,
        "updated_at": "2024-01-15T10:00:00+00:00",
    },
}

MANGA_ENTRY = {
    "node": {"id": 2, "title": "Berserk", "num_chapters": 0, "genres": []},
    "list_status": {"score": 0, "status": "reading", "num_chapters_read": 120},
}


@pytest.fixture(autouse=True)
def no_retry_delay(monkeypatch):
    monkeypatch.setattr(MyAnimeListClient, "retry_delay_seconds", 0)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestPkce:

    def test_challenge_is_s256_of_verifier(self):
        verifier, challenge = generate_pkce()

        digest = hashlib.sha256(verifier.encode()).digest()
        expected = base64.urlsafe_b64encode(digest).rstrip(b"=").decode()
        assert challenge == expected
        assert 43 <= len(verifier) <= 128

    def test_auth_url(self):
        url = MyAnimeListClient.get_auth_url("state-123", "challenge-abc")

        query = parse_qs(urlparse(url).query)
        assert query["state"] == ["state-123"]
        assert query["code_challenge"] == ["challenge-abc"]
        assert query["code_challenge_method"] == ["S256"]


class TestToImportItem:

    def test_anime_entry(self):
        item = to_import_item(ANIME_ENTRY, MediaType.ANIME)

        assert item.source_item_id == "1"
        assert item.rating == 9
        assert item.status == MediaStatus.COMPLETED
        assert item.tags == ["completed"]
        assert item.genre == ["Action", "Sci-Fi"]
        assert item.poster_url == "https://cdn.myanimelist.net/1m.jpg"
        assert item.extra == {"num_episodes": 26}
        assert item.progress == 26
        assert item.consumed_at.year == 2024

    def test_manga_entry_without_score(self):
        item = to_import_item(MANGA_ENTRY, MediaType.MANGA)

        assert item.rating is None
        assert item.status == MediaStatus.READING
        assert item.extra == {"num_chapters": None}
        assert item.progress == 120
        assert item.poster_url is None


class TestMyAnimeListClient:

    async def test_pages_through_list(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            offset = int(request.url.params["offset"])
            if offset == 0:
                return httpx.Response(200, json={"data": [ANIME_ENTRY], "paging": {"next": "more"}})
            return httpx.Response(200, json={"data": [{"node": {"id": 5, "title": "Trigun"}}], "paging": {}})

        async with MyAnimeListClient(client=mock_client(handler)) as mal:
            entries = await mal.get_all_anime("spike")

        assert [e["node"]["id"] for e in entries] == [1, 5]
        assert calls[0].url.path == "/v2/users/spike/animelist"
        assert "X-MAL-CLIENT-ID" in calls[0].headers

    async def test_bearer_token_when_connected(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"data": [], "paging": {}})

        async with MyAnimeListClient(access_token="tok", client=mock_client(handler)) as mal:
            await mal.get_manga_list("spike")

        assert seen["auth"] == "Bearer tok"

    async def test_unknown_user_is_not_found(self):
        client = mock_client(lambda request: httpx.Response(404))

        with pytest.raises(NotFoundError):
            await MyAnimeListClient(client=client).get_anime_list("nobody")

    async def test_server_errors_are_retried(self):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            return httpx.Response(500, text="boom")

        with pytest.raises(ExternalServiceError):
            await MyAnimeListClient(client=mock_client(handler)).get_anime_list("spike")

        assert len(attempts) == 3

    async def test_refresh_expiring_token(self, db_session: AsyncSession, test_user):
        source = Source(
            user_id=test_user.id,
            source_name=SourceName.MYANIMELIST,
            access_token="old",
            refresh_token="refresh-1",
            expires_at=utcnow() + timedelta(minutes=1),
        )
        db_session.add(source)
        await db_session.commit()

        def handler(request: httpx.Request) -> httpx.Response:
            form = parse_qs(request.content.decode())
            assert form["grant_type"] == ["refresh_token"]
            return httpx.Response(200, json={"access_token": "new", "refresh_token": "refresh-2", "expires_in": 3600})

        token = await MyAnimeListClient(client=mock_client(handler)).get_valid_access_token(db_session, source)

        assert token == "new"
        assert source.refresh_token == "refresh-2"

    async def test_valid_token_is_reused(self, db_session: AsyncSession, test_user):
        source = Source(
            user_id=test_user.id,
            source_name=SourceName.MYANIMELIST,
            access_token="current",
            expires_at=utcnow() + timedelta(hours=1),
        )

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        token = await MyAnimeListClient(client=mock_client(handler)).get_valid_access_token(db_session, source)

        assert token == "current"


class TestSyncMalData:

    async def test_imports_both_lists(self, db_session: AsyncSession, test_user):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/animelist"):
                return httpx.Response(200, json={"data": [ANIME_ENTRY], "paging": {}})
            return httpx.Response(200, json={"data": [MANGA_ENTRY], "paging": {}})

        summary = await sync_mal_data(db_session, test_user.id, "spike", client=mock_client(handler))

        assert summary == {"anime_imported": 1, "manga_imported": 1, "errors": []}
        anime = (await db_session.execute(select(Anime))).scalar_one()
        assert anime.title == "Cowboy Bebop"
        assert anime.num_episodes == 26
        entries = (await db_session.execute(select(UserMedia))).scalars().all()
        assert {e.media_type for e in entries} == {MediaType.ANIME, MediaType.MANGA}

    async def test_failed_list_is_reported(self, db_session: AsyncSession, test_user):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/animelist"):
                return httpx.Response(200, json={"data": [ANIME_ENTRY], "paging": {}})
            return httpx.Response(503)

        summary = await sync_mal_data(db_session, test_user.id, "spike", client=mock_client(handler))

        assert summary["anime_imported"] == 1
        assert summary["manga_imported"] == 0
        assert len(summary["errors"]) == 1
        assert "manga" in summary["errors"][0]
