"""
Tests for user profile and user search endpoints.
"""

from httpx import AsyncClient


class TestProfileEndpoint:

    async def test_public_profile(self, client: AsyncClient, test_user, books, add_to_library):
        await add_to_library(test_user, books[0], rating=9)

        response = await client.get("/api/v1/users/alice")

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["username"] == "alice"
        assert "email" not in data["user"]
        assert data["stats"]["total"] == 1
        assert data["stats"]["by_type"]["book"] == 1
        assert data["top_rated"][0]["title"] == "Dune"
        assert data["compatibility"] is None

    async def test_viewer_gets_compatibility(
        self, client: AsyncClient, auth_headers: dict, test_user, other_user, books, add_to_library
    ):
        for book in books[:2]:
            await add_to_library(test_user, book, rating=8)
            await add_to_library(other_user, book, rating=8)

        response = await client.get("/api/v1/users/bob", headers=auth_headers)

        assert response.json()["compatibility"] == 100

    async def test_own_profile_has_no_compatibility(self, client: AsyncClient, auth_headers: dict):
        response = await client.get("/api/v1/users/alice", headers=auth_headers)

        assert response.json()["compatibility"] is None

    async def test_unknown_user(self, client: AsyncClient):
        response = await client.get("/api/v1/users/nobody")

        assert response.status_code == 404


class TestSearchEndpoint:

    async def test_search(self, client: AsyncClient, auth_headers: dict, other_user, inactive_user):
        response = await client.get("/api/v1/users/search", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert [entry["user"]["username"] for entry in data["users"]] == ["bob"]
        assert data["total"] == 1
        assert data["total_pages"] == 1

    async def test_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/v1/users/search")

        assert response.status_code == 401

    async def test_invalid_sort(self, client: AsyncClient, auth_headers: dict):
        response = await client.get("/api/v1/users/search", params={"sort": "age"}, headers=auth_headers)

        assert response.status_code == 400

    async def test_similarity_sort_includes_scores(self, client: AsyncClient, auth_headers: dict, other_user):
        response = await client.get("/api/v1/users/search", params={"sort": "similarity"}, headers=auth_headers)

        assert response.json()["users"][0]["compatibility"] == 0


class TestUpdateMe:

    async def test_update(self, client: AsyncClient, auth_headers: dict):
        response = await client.patch(
            "/api/v1/users/me", json={"bio": "Reader of old books", "username": "alice_l"}, headers=auth_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["bio"] == "Reader of old books"
        assert data["username"] == "alice_l"

    async def test_username_taken(self, client: AsyncClient, auth_headers: dict, other_user):
        response = await client.patch("/api/v1/users/me", json={"username": "bob"}, headers=auth_headers)

        assert response.status_code == 409

    async def test_invalid_username(self, client: AsyncClient, auth_headers: dict):
        response = await client.patch("/api/v1/users/me", json={"username": "no spaces!"}, headers=auth_headers)

        assert response.status_code == 422
