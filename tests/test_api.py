"""Tests for the FastAPI endpoints."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from langchain_core.messages import AIMessage

from travel_agent.errors import TurnInProgressError
from travel_agent.prompts import ERROR_APOLOGY, WELCOME_MESSAGE
from travel_agent.server import app
from travel_agent.session import ChatController, create_session


@pytest.fixture
def fake_llm():
    llm = MagicMock()
    llm.ainvoke = AsyncMock(return_value=AIMessage(content="Olá! Em que posso ajudar?"))
    return llm


@pytest.fixture
def controller(mock_registry, fake_llm):
    """Attach a controller to app state (mirrors the lifespan)."""
    controller = ChatController(
        mock_registry, session_factory=lambda: create_session(mock_registry, llm=fake_llm),
    )
    app.state.controller = controller
    yield controller
    app.state.controller = None


@pytest.fixture
def client(controller):
    return TestClient(app)


class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "travel-agent"}

    def test_root(self, client):
        data = client.get("/").json()
        assert data["service"] == "Travel Agent"
        assert data["health"] == "/api/health"
        assert data["chat"] == "/api/chat"


class TestChatEndpoint:
    def test_chat_returns_reply(self, client):
        response = client.post("/api/chat", json={"message": "Oi"})
        assert response.status_code == 200
        data = response.json()
        assert data["reply"]["role"] == "model"
        assert data["reply"]["content"] == "Olá! Em que posso ajudar?"
        assert data["error"] is None

    def test_chat_forwards_location(self, client, fake_llm):
        client.post(
            "/api/chat",
            json={"message": "Hotéis perto?", "location": {"latitude": -21.0, "longitude": -47.8}},
        )
        system = fake_llm.ainvoke.await_args.args[0][0]
        assert "longitude -47.80000" in system.content

    def test_chat_accepts_attachment_only(self, client, fake_llm):
        response = client.post(
            "/api/chat",
            json={"attachment": {"name": "voucher.pdf", "mime_type": "application/pdf", "base64": "JVBERi0xLjQK"}},
        )
        assert response.status_code == 200
        user_turn = fake_llm.ainvoke.await_args.args[0][-1]
        assert user_turn.content[0]["type"] == "document"

    def test_empty_message_rejected(self, client):
        response = client.post("/api/chat", json={"message": "   "})
        assert response.status_code == 422

    def test_non_pdf_attachment_rejected(self, client):
        response = client.post(
            "/api/chat",
            json={"message": "Veja", "attachment": {"name": "a.png", "mime_type": "image/png", "base64": "AAAA"}},
        )
        assert response.status_code == 422

    def test_failed_turn_returns_apology(self, client, fake_llm):
        fake_llm.ainvoke.side_effect = RuntimeError("model unavailable")
        response = client.post("/api/chat", json={"message": "Oi"})
        assert response.status_code == 200
        assert response.json() == {"reply": None, "error": ERROR_APOLOGY}

    def test_overlapping_turn_returns_409(self, client):
        busy = MagicMock()
        busy.submit = AsyncMock(side_effect=TurnInProgressError("A message is already being processed"))
        app.state.controller = busy
        response = client.post("/api/chat", json={"message": "Oi"})
        assert response.status_code == 409
        assert "already being processed" in response.json()["detail"]

    def test_request_id_is_echoed(self, client):
        response = client.post("/api/chat", json={"message": "Oi"}, headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    def test_request_id_is_generated(self, client):
        assert client.get("/api/health").headers["X-Request-ID"]

    def test_session_id_header_follows_reset(self, client, controller):
        before = client.get("/api/health").headers["X-Session-ID"]
        assert before == controller.session.id

        after = client.post("/api/reset").headers["X-Session-ID"]

        assert after != before
        assert after == controller.session.id


class TestTranscriptEndpoints:
    def test_messages_start_with_welcome(self, client, controller):
        data = client.get("/api/messages").json()
        assert data["session_id"] == controller.session.id
        assert [m["content"] for m in data["messages"]] == [WELCOME_MESSAGE]
        assert data["is_loading"] is False

    def test_messages_after_a_turn(self, client):
        client.post("/api/chat", json={"message": "Oi"})
        roles = [m["role"] for m in client.get("/api/messages").json()["messages"]]
        assert roles == ["model", "user", "model"]

    def test_failure_is_visible_in_transcript(self, client, fake_llm):
        fake_llm.ainvoke.side_effect = RuntimeError("model unavailable")
        client.post("/api/chat", json={"message": "Oi"})
        data = client.get("/api/messages").json()
        assert data["error"] == ERROR_APOLOGY
        assert [m["role"] for m in data["messages"]] == ["model", "user"]

    def test_reset_starts_over(self, client, controller):
        client.post("/api/chat", json={"message": "Oi"})
        old_session = controller.session.id

        data = client.post("/api/reset").json()

        assert data["session_id"] != old_session
        assert len(data["messages"]) == 1
        assert data["error"] is None


class TestMetricsEndpoint:
    def test_metrics_snapshot(self, client):
        client.post("/api/chat", json={"message": "Oi"})
        data = client.get("/api/metrics").json()
        assert data["services"]["anthropic"]["success"] >= 1


def test_controller_not_ready_returns_503():
    app.state.controller = None
    response = TestClient(app).get("/api/messages")
    assert response.status_code == 503
    assert "X-Session-ID" not in response.headers
