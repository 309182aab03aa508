"""
Tests for the integration endpoints: CSV uploads, sources, OAuth and sync.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import create_oauth_state
from app.models.library import UserMedia
from app.models.source import Source, SourceName
from app.services.covers import CoverImageService

INTEGRATIONS = "/api/v1/integrations"

GOODREADS_CSV = '''Book Id,Title,Author,ISBN,ISBN13,My Rating,Date Read,Date Added,Bookshelves,Exclusive Shelf,My Review
234225,Dune,Frank Herbert,"=""0441172717""","=""9780441172719""",5,2024/01/15,2023/12/01,,read,
77566,Hyperion,Dan Simmons,,,0,,2024/02/10,,to-read,
'''

LETTERBOXD_CSV = '''Date,Name,Year,Letterboxd URI,Rating
2024-03-01,Alien,1979,https://boxd.it/2a9q,4.5
'''


@pytest.fixture(autouse=True)
def no_cover_lookups(monkeypatch):
    monkeypatch.setattr(
        CoverImageService,
        "fetch_covers_batch",
        AsyncMock(side_effect=lambda media_type, items, **kwargs: [None] * len(items)),
    )


async def add_source(db: AsyncSession, user, name: SourceName, **fields) -> Source:
    source = Source(user_id=user.id, source_name=name, **fields)
    db.add(source)
    await db.commit()
    await db.refresh(source)
    return source


class TestCsvUploads:

    async def test_goodreads_upload(self, client: AsyncClient, auth_headers: dict, db_session: AsyncSession, test_user):
        response = await client.post(
            f"{INTEGRATIONS}/goodreads/upload",
            files={"file": ("goodreads_library_export.csv", GOODREADS_CSV, "text/csv")},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json() == {"source": "goodreads", "imported": 2, "errors": []}

        rows = (await db_session.execute(select(UserMedia).where(UserMedia.user_id == test_user.id))).scalars().all()
        assert sorted(row.rating or 0 for row in rows) == [0, 10]

        sources = (await client.get(INTEGRATIONS, headers=auth_headers)).json()["sources"]
        assert [s["source_name"] for s in sources] == ["goodreads"]
        assert sources[0]["last_synced_at"] is not None

    async def test_letterboxd_upload_with_username(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            f"{INTEGRATIONS}/letterboxd/upload",
            files={"file": ("ratings.csv", LETTERBOXD_CSV, "text/csv")},
            data={"username": "cinephile"},
            headers=auth_headers,
        )

        assert response.json()["imported"] == 1
        sources = (await client.get(INTEGRATIONS, headers=auth_headers)).json()["sources"]
        assert sources[0]["source_user_id"] == "cinephile"

    async def test_rejects_non_csv(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            f"{INTEGRATIONS}/goodreads/upload",
            files={"file": ("library.json", "{}", "application/json")},
            headers=auth_headers,
        )

        assert response.status_code == 400

    async def test_rejects_empty_file(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            f"{INTEGRATIONS}/letterboxd/upload",
            files={"file": ("ratings.csv", "  \n", "text/csv")},
            headers=auth_headers,
        )

        assert response.status_code == 400

    async def test_requires_auth(self, client: AsyncClient):
        response = await client.post(
            f"{INTEGRATIONS}/goodreads/upload",
            files={"file": ("export.csv", GOODREADS_CSV, "text/csv")},
        )

        assert response.status_code == 401


class TestSources:

    async def test_delete_source_keeps_library(
        self, client: AsyncClient, auth_headers: dict, db_session: AsyncSession, test_user, books, add_to_library
    ):
        source = await add_source(db_session, test_user, SourceName.GOODREADS)
        await add_to_library(test_user, books[0], rating=8)

        response = await client.delete(f"{INTEGRATIONS}/{source.id}", headers=auth_headers)

        assert response.status_code == 204
        assert (await client.get(INTEGRATIONS, headers=auth_headers)).json() == {"sources": []}
        assert (await client.get("/api/v1/library", headers=auth_headers)).json()["total"] == 1

    async def test_cannot_delete_other_users_source(
        self, client: AsyncClient, other_auth_headers: dict, db_session: AsyncSession, test_user
    ):
        source = await add_source(db_session, test_user, SourceName.GOODREADS)

        response = await client.delete(f"{INTEGRATIONS}/{source.id}", headers=other_auth_headers)

        assert response.status_code == 404


class TestScrapeConnect:

    async def test_letterboxd_connect(self, client: AsyncClient, auth_headers: dict, test_user):
        scrape = AsyncMock(return_value={"imported": 4, "errors": []})

        with patch("app.api.routes.integrations.import_letterboxd_profile", scrape):
            response = await client.post(
                f"{INTEGRATIONS}/letterboxd/connect", json={"username": " cinephile "}, headers=auth_headers
            )

        assert response.json() == {"source": "letterboxd", "imported": 4, "errors": []}
        assert scrape.await_args.args[1:] == (test_user.id, "cinephile")

    async def test_goodreads_connect_validates_body(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(f"{INTEGRATIONS}/goodreads/connect", json={"username": ""}, headers=auth_headers)

        assert response.status_code == 422


class TestOAuth:

    async def test_mal_not_configured(self, client: AsyncClient, auth_headers: dict, monkeypatch):
        monkeypatch.setattr("app.api.routes.integrations.settings.MAL_CLIENT_ID", None)

        response = await client.get(f"{INTEGRATIONS}/myanimelist/authorize", headers=auth_headers)

        assert response.status_code == 501

    async def test_mal_authorize_sets_verifier_cookie(self, client: AsyncClient, auth_headers: dict, monkeypatch):
        monkeypatch.setattr("app.api.routes.integrations.settings.MAL_CLIENT_ID", "mal-client")

        response = await client.get(f"{INTEGRATIONS}/myanimelist/authorize", headers=auth_headers)

        assert response.status_code == 200
        assert "code_challenge=" in response.json()["authorization_url"]
        assert "mal_code_verifier" in response.cookies

    async def test_mal_callback_without_verifier(self, client: AsyncClient, test_user):
        state = create_oauth_state(test_user.id, SourceName.MYANIMELIST.value)

        response = await client.get(
            f"{INTEGRATIONS}/myanimelist/callback", params={"code": "abc", "state": state}
        )

        assert response.status_code == 302
        assert response.headers["location"].endswith("/settings?error=invalid_state")

    async def test_spotify_authorize(self, client: AsyncClient, auth_headers: dict, monkeypatch):
        monkeypatch.setattr("app.api.routes.integrations.settings.SPOTIFY_CLIENT_ID", "spotify-client")
        monkeypatch.setattr("app.api.routes.integrations.settings.SPOTIFY_CLIENT_SECRET", "secret")

        response = await client.get(f"{INTEGRATIONS}/spotify/authorize", headers=auth_headers)

        assert response.json()["authorization_url"].startswith("https://accounts.spotify.com/authorize?")

    async def test_spotify_callback_denied(self, client: AsyncClient):
        response = await client.get(f"{INTEGRATIONS}/spotify/callback", params={"error": "access_denied"})

        assert response.status_code == 302
        assert response.headers["location"].endswith("/settings?error=spotify_access_denied")

    async def test_spotify_callback_rejects_state_for_other_provider(self, client: AsyncClient, test_user):
        state = create_oauth_state(test_user.id, SourceName.MYANIMELIST.value)

        response = await client.get(f"{INTEGRATIONS}/spotify/callback", params={"code": "abc", "state": state})

        assert response.headers["location"].endswith("error=invalid_state")


class TestSyncEndpoint:

    async def test_queues_sync(self, client: AsyncClient, auth_headers: dict, db_session: AsyncSession, test_user):
        await add_source(db_session, test_user, SourceName.LETTERBOXD, source_user_id="cinephile")

        with patch("app.tasks.source_tasks.sync_source_task.delay", return_value=MagicMock(id="task-123")) as delay:
            response = await client.post(f"{INTEGRATIONS}/letterboxd/sync", headers=auth_headers)

        assert response.status_code == 202
        assert response.json() == {"source": "letterboxd", "task_id": "task-123", "status": "queued"}
        delay.assert_called_once_with(test_user.id, "letterboxd")

    async def test_unknown_source(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(f"{INTEGRATIONS}/netflix/sync", headers=auth_headers)

        assert response.status_code == 400

    async def test_not_connected(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(f"{INTEGRATIONS}/goodreads/sync", headers=auth_headers)

        assert response.status_code == 404

    async def test_csv_only_source(self, client: AsyncClient, auth_headers: dict, db_session: AsyncSession, test_user):
        await add_source(db_session, test_user, SourceName.GOODREADS)

        response = await client.post(f"{INTEGRATIONS}/goodreads/sync", headers=auth_headers)

        assert response.status_code == 400


async def test_update_covers(client: AsyncClient, auth_headers: dict):
    with patch(
        "app.api.routes.integrations.update_missing_covers",
        AsyncMock(return_value={"updated": 2, "failed": 1, "total": 3}),
    ) as update:
        response = await client.post(f"{INTEGRATIONS}/covers/update", params={"limit": 10}, headers=auth_headers)

    assert response.json() == {"updated": 2, "failed": 1, "total": 3}
    assert update.await_args.kwargs == {"media_type": None, "limit": 10}
