"""
Tests for the chat endpoints.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient

CHAT = "/api/v1/chat"


@pytest.fixture
def llm(monkeypatch):
    mock = MagicMock()
    mock.complete = AsyncMock(return_value="You might enjoy Hyperion.")
    monkeypatch.setattr("app.services.chat.get_llm_client", lambda: mock)
    return mock


class TestChatEndpoints:

    async def test_unconfigured(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(CHAT, json={"message": "Hello"}, headers=auth_headers)

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"
        assert (await client.get(f"{CHAT}/conversations", headers=auth_headers)).json() == {"conversations": []}

    async def test_requires_auth(self, client: AsyncClient):
        response = await client.post(CHAT, json={"message": "Hello"})

        assert response.status_code == 401

    async def test_empty_message(self, client: AsyncClient, auth_headers: dict, llm):
        response = await client.post(CHAT, json={"message": ""}, headers=auth_headers)

        assert response.status_code == 422

    async def test_conversation_flow(self, client: AsyncClient, auth_headers: dict, other_auth_headers: dict, llm):
        first = await client.post(CHAT, json={"message": "Recommend a book"}, headers=auth_headers)
        assert first.status_code == 200
        assert first.json()["message"] == "You might enjoy Hyperion."
        conversation_id = first.json()["conversation_id"]

        await client.post(
            CHAT, json={"message": "Why?", "conversation_id": conversation_id}, headers=auth_headers
        )

        listing = (await client.get(f"{CHAT}/conversations", headers=auth_headers)).json()
        assert [c["title"] for c in listing["conversations"]] == ["Recommend a book"]

        detail = (await client.get(f"{CHAT}/conversations/{conversation_id}", headers=auth_headers)).json()
        assert [m["role"] for m in detail["messages"]] == ["user", "assistant", "user", "assistant"]

        messages = await client.get(f"{CHAT}/conversations/{conversation_id}/messages", headers=auth_headers)
        assert len(messages.json()) == 4

        hidden = await client.get(f"{CHAT}/conversations/{conversation_id}", headers=other_auth_headers)
        assert hidden.status_code == 404

        deleted = await client.delete(f"{CHAT}/conversations/{conversation_id}", headers=auth_headers)
        assert deleted.status_code == 204
        assert (await client.get(f"{CHAT}/conversations", headers=auth_headers)).json() == {"conversations": []}
