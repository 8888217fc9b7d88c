"""Tests for the REST API routes over a MentorSystem with a scripted provider."""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from apps.api import app, get_system


@pytest.fixture
def client(system):
    app.dependency_overrides[get_system] = lambda: system
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_dashboard_and_chapter_start(client):
    summary = client.get("/dashboard").json()
    assert summary["coverage_percent"] == 0
    assert len(summary["topics"]) == 16

    started = client.post("/chapters/2/start")
    assert started.status_code == 200
    assert started.json()["title"] == summary["topics"][2]
    assert client.post("/chapters/40/start").status_code == 404


def test_chat_returns_reply_and_history(client):
    response = client.post("/chat/COACH", json={"text": "What is Box?"})
    assert response.status_code == 200
    body = response.json()
    assert body["reply"] == "Ownership moves values."
    assert [message["role"] for message in body["messages"]] == ["user", "model"]
    assert client.post("/chat/OTHER", json={"text": "x"}).status_code == 422


def test_chat_streams_plain_text(client, backend):
    backend.chunks = ["Hello", " world"]
    response = client.post("/chat/FEYNMAN", json={"text": "explain", "stream": True})
    assert response.status_code == 200
    assert response.text == "Hello world"
    history = client.get("/chat/FEYNMAN").json()["messages"]
    assert history[-1]["text"] == "Hello world"


def test_artifact_routes(client):
    assert client.post("/artifacts/COACH").status_code == 400
    client.post("/chat/COACH", json={"text": "teach me"})
    created = client.post("/artifacts/COACH")
    assert created.status_code == 200
    assert created.json()["local"] is None
    listed = client.get("/artifacts").json()
    assert listed[0]["id"] == created.json()["artifact"]["id"]


def test_quiz_flow_hides_answers_until_submit(client, backend, make_quiz_payload):
    backend.completions.append(json.dumps(make_quiz_payload(3, correct_index=1)))
    quiz = client.post("/quiz").json()
    assert quiz["status"] == "presented"
    assert "correct_index" not in json.dumps(quiz)

    result = client.post("/quiz/submit", json={"answers": [1, 1, 1]}).json()
    assert result["passed"] is True
    assert client.get("/dashboard").json()["current_chapter_index"] == 1


def test_quiz_cannot_complete_a_chapter_started_afterwards(client, backend, make_quiz_payload):
    backend.completions.append(json.dumps(make_quiz_payload(3, correct_index=1)))
    client.post("/quiz")
    client.post("/chapters/5/start")

    assert client.post("/quiz/submit", json={"answers": [1, 1, 1]}).status_code == 400
    summary = client.get("/dashboard").json()
    assert summary["completed_chapters"] == []
    assert summary["current_chapter_index"] == 5


def test_quiz_generation_failure_is_bad_gateway(client, backend):
    backend.completions.append("nope")
    assert client.post("/quiz").status_code == 502


def test_curriculum_upload_and_reset(client, backend):
    backend.completions.append('["Alpha", "Beta"]')
    response = client.post(
        "/curriculum",
        files={"file": ("course.md", b"# Alpha\n# Beta", "text/markdown")},
    )
    assert response.status_code == 200
    assert response.json()["topics"] == ["Alpha", "Beta"]
    assert client.delete("/curriculum").json()["topics"][0].startswith("Getting Started")


def test_llm_settings_validation(client):
    assert client.put("/settings/llm", json={"provider": "bogus"}).status_code == 400
    updated = client.put("/settings/llm", json={"provider": "grok", "model": "grok-4"}).json()
    assert updated["provider"] == "grok"


def test_speech_returns_pcm(client, backend):
    response = client.post("/speech", json={"text": "hello"})
    assert response.content == backend.speech
    assert response.headers["x-sample-rate"] == "24000"


def test_reset(client):
    client.post("/chat/COACH", json={"text": "hi"})
    assert client.post("/reset").json() == {"status": "reset"}
    assert client.get("/chat/COACH").json()["messages"] == []
