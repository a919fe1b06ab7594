"""Tests for the FastAPI server using in-memory collaborators."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import FakeGenerator

from mia.config import Settings
from mia.interface.server import create_app
from mia.models import SummaryRecord


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(MIA_DATA_DIR=str(tmp_path), OPENAI_API_KEY="", MIA_LLM_API_KEY="")


@pytest.fixture
def make_client(settings, session, make_pipeline):
    def _make(**overrides) -> TestClient:
        app = create_app(
            settings=settings,
            session=session,
            pipeline=make_pipeline(**overrides),
            start_monitor=False,
        )
        return TestClient(app)

    return _make


class TestChatEndpoint:

    def test_reply(self, make_client, session):
        with make_client() as client:
            resp = client.post("/chat", json={"message": "tengo un mal día"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["ok"] is True
        assert body["sentiment"] == "negativo"
        assert body["replyEmotion"] == "tristeza"
        message = body["messages"][0]
        assert message["facialExpression"] == "sad"
        assert message["animation"] == "Talking_1"
        assert message["lipsync"]["mouthCues"]
        assert session.turns.count() == 1

    def test_greeting_without_message(self, make_client, session):
        with make_client() as client:
            resp = client.post("/chat", json={})
        assert resp.status_code == 200
        assert resp.json()["messages"][0]["text"].startswith("Estoy aquí")
        assert session.turns.count() == 0

    def test_essential_failure_is_500(self, make_client, session):
        with make_client(generator=FakeGenerator(fail=True)) as client:
            resp = client.post("/chat", json={"message": "hola"})
        assert resp.status_code == 500
        assert resp.json() == {"ok": False, "error": "model down", "stage": "generation"}
        assert session.turns.count() == 0

    def test_unexpected_exception_is_500(self, settings, session):
        class Exploding:
            def submit(self, message):
                raise RuntimeError("boom")

        app = create_app(settings=settings, session=session, pipeline=Exploding(),
                         start_monitor=False)
        with TestClient(app) as client:
            resp = client.post("/chat", json={"message": "hola"})
        assert resp.status_code == 500
        assert resp.json()["error"] == "boom"

    def test_expired_session_notice(self, make_client, session, fakes):
        session.expire()
        with make_client() as client:
            resp = client.post("/chat", json={"message": "hola"})
        assert resp.status_code == 200
        assert resp.json()["expired"] is True
        assert fakes.all_calls() == 0


class TestResetEndpoint:

    def test_reset_with_reason(self, make_client, session):
        session.ensure_dirs()
        session.turns.append("hola", "neutral", "default", "¡Hola!")
        session.summary.save(SummaryRecord(abstract="algo"))
        with make_client() as client:
            resp = client.post("/reset", json={"reason": "user_pressed_reset"})
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "reset": True}
        assert session.turns.count() == 0
        assert session.summary.load() is None

    def test_reset_without_body(self, make_client):
        with make_client() as client:
            resp = client.post("/reset")
        assert resp.status_code == 200
        assert resp.json()["reset"] is True

    def test_reset_twice(self, make_client):
        with make_client() as client:
            assert client.post("/reset").status_code == 200
            assert client.post("/reset").status_code == 200


class TestHealthEndpoint:

    def test_health(self, make_client, session):
        with make_client() as client:
            client.post("/chat", json={"message": "hola"})
            resp = client.get("/health")
        body = resp.json()
        assert body["status"] == "ok"
        assert body["session_turns"] == 1
        assert body["expired"] is False
        assert body["monitor_running"] is False
        assert body["generation_available"] is False

    def test_lifespan_creates_directories(self, make_client, session):
        with make_client():
            assert session.audio_dir.is_dir()
            assert session.turns.path.parent.is_dir()
