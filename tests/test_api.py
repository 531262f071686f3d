"""Tests for the HTTP API."""

import json

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from backend.api.chat_router import get_chat_client
from backend.chat.client import ChatClient
from backend.config import settings
from backend.main import app


def _api() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_health_check(db) -> None:
    async with _api() as client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_deck_and_card_crud(db) -> None:
    async with _api() as client:
        response = await client.post("/api/decks", params={"user_id": "u1"}, json={"name": "Bio"})
        assert response.status_code == 201
        deck_id = response.json()["id"]

        response = await client.post(
            "/api/cards",
            params={"user_id": "u1"},
            json={"deck_id": deck_id, "front": "ATP?", "back": "Energy"},
        )
        assert response.status_code == 201
        card = response.json()
        assert card["easiness"] == 2.5
        assert card["repetitions"] == 0

        response = await client.get("/api/cards", params={"user_id": "u1", "deck_id": deck_id})
        assert [c["id"] for c in response.json()] == [card["id"]]

        # Other users can't see or touch the deck
        response = await client.get("/api/decks", params={"user_id": "u2"})
        assert response.json() == []
        response = await client.delete(f"/api/decks/{deck_id}", params={"user_id": "u2"})
        assert response.status_code == 404

        response = await client.delete(f"/api/cards/{card['id']}", params={"user_id": "u1"})
        assert response.status_code == 204
        response = await client.delete(f"/api/decks/{deck_id}", params={"user_id": "u1"})
        assert response.status_code == 204


@pytest.mark.asyncio
async def test_blank_deck_name_rejected(db) -> None:
    async with _api() as client:
        response = await client.post("/api/decks", params={"user_id": "u1"}, json={"name": "  "})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_study_flow(db) -> None:
    async with _api() as client:
        deck_id = (
            await client.post("/api/decks", params={"user_id": "u1"}, json={"name": "Geo"})
        ).json()["id"]
        await client.post(
            "/api/cards",
            params={"user_id": "u1"},
            json={"deck_id": deck_id, "front": "Capital of France?", "back": "Paris"},
        )

        response = await client.post("/api/study/start", params={"user_id": "u1"})
        assert response.status_code == 200
        session_id = response.json()["session_id"]
        assert response.json()["total_cards"] == 1

        card = (await client.get(f"/api/study/next/{session_id}")).json()
        assert card["back"] == "Paris"

        response = await client.post(
            f"/api/study/answer/{session_id}", json={"card_id": card["card_id"], "quality": 9}
        )
        assert response.status_code == 422

        response = await client.post(
            f"/api/study/answer/{session_id}", json={"card_id": card["card_id"], "quality": 4}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["interval"] == 1
        assert body["repetitions"] == 1
        assert body["session_complete"]

        assert (await client.get(f"/api/study/next/{session_id}")).status_code == 410

        stats = (await client.get("/api/stats/u1")).json()
        assert stats["total_cards"] == 1
        assert stats["cards_due"] == 0
        assert stats["decks"] == [{"deck_id": deck_id, "name": "Geo", "total": 1, "due": 0}]

        response = await client.post(f"/api/study/end/{session_id}")
        assert response.json()["cards_reviewed"] == 1


@pytest.mark.asyncio
async def test_study_start_without_cards(db) -> None:
    async with _api() as client:
        response = await client.post("/api/study/start", params={"user_id": "nobody"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_chat_relays_snapshots() -> None:
    async def body():
        for content in ["Ans", "wer"]:
            yield ("data: " + json.dumps({"choices": [{"delta": {"content": content}}]}) + "\n").encode()
        yield b"data: [DONE]\n"

    proxy = httpx.MockTransport(lambda request: httpx.Response(200, content=body()))
    app.dependency_overrides[get_chat_client] = lambda: ChatClient(
        url="https://proxy.test/chat", access_token="t", max_retries=1, transport=proxy
    )
    try:
        async with _api() as client:
            response = await client.post(
                "/api/chat", json={"messages": [{"role": "user", "content": "q"}]}
            )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.text == (
        'data: {"content": "Ans"}\n\n'
        'data: {"content": "Answer"}\n\n'
        "data: [DONE]\n\n"
    )


@pytest.mark.asyncio
async def test_chat_error_event() -> None:
    app.dependency_overrides[get_chat_client] = lambda: ChatClient(
        url="https://proxy.test/chat", access_token=""
    )
    try:
        async with _api() as client:
            response = await client.post(
                "/api/chat", json={"messages": [{"role": "user", "content": "q"}]}
            )
    finally:
        app.dependency_overrides.clear()

    assert response.text.startswith("event: error\n")
    assert "log in" in response.text


@pytest.mark.asyncio
async def test_chat_without_bearer_token_does_not_use_server_token(monkeypatch) -> None:
    monkeypatch.setattr(settings, "chat_access_token", "server-secret")

    assert get_chat_client(authorization=None).access_token == ""
    assert get_chat_client(authorization="Bearer user-token").access_token == "user-token"

    async with _api() as client:
        response = await client.post("/api/chat", json={"messages": [{"role": "user", "content": "q"}]})

    assert response.status_code == 200
    assert response.text.startswith("event: error\n")
    assert "log in" in response.text
