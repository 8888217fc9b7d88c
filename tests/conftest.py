"""Shared fixtures: a scripted fake provider and a MentorSystem on temporary storage."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest

from rust_mentor.config.schema import PathsConfig, Settings
from rust_mentor.data_models import Message
from rust_mentor.errors import ProviderError
from rust_mentor.llm.base import LLMProvider
from rust_mentor.storage import HandleStore, KeyValueStore, StateRepository
from rust_mentor.system import MentorSystem


class FakeBackend:
    """Scripted replies shared by every provider instance the gateway builds."""

    def __init__(self) -> None:
        self.chunks: List[str] = ["Ownership ", "moves ", "values."]
        self.fail_after: Optional[int] = None
        self.completions: List[str] = []
        self.complete_error: Optional[Exception] = None
        self.document_reply: Optional[str] = None
        self.speech = b"\x01\x00" * 8
        self.calls: List[Dict[str, Any]] = []
        self.built: List[Dict[str, Any]] = []


class FakeProvider(LLMProvider):
    name = "fake"
    default_model = "fake-1"

    def __init__(self, backend: FakeBackend, model: str, api_key: str, **kwargs: Any):
        super().__init__(model, api_key, **kwargs)
        self.backend = backend
        backend.built.append({"model": self.model, "api_key": api_key, **kwargs})

    def stream_chat(self, messages: Sequence[Message], system_instruction: str):
        self.backend.calls.append({"kind": "stream", "messages": list(messages), "system": system_instruction})
        for index, chunk in enumerate(self.backend.chunks):
            if self.backend.fail_after is not None and index >= self.backend.fail_after:
                raise ProviderError(self.name, "connection reset")
            yield chunk

    def complete(self, messages, system_instruction, response_schema=None) -> str:
        self.backend.calls.append(
            {"kind": "complete", "messages": list(messages), "system": system_instruction, "schema": response_schema}
        )
        if self.backend.complete_error is not None:
            raise self.backend.complete_error
        if self.backend.completions:
            return self.backend.completions.pop(0)
        return "## Summary\n\nOwnership recap."

    def extract_document(self, data, mime_type, prompt, response_schema=None) -> str:
        if self.backend.document_reply is None:
            return super().extract_document(data, mime_type, prompt, response_schema)
        self.backend.calls.append({"kind": "document", "mime_type": mime_type, "prompt": prompt})
        return self.backend.document_reply

    def synthesize_speech(self, text: str) -> bytes:
        self.backend.calls.append({"kind": "speech", "text": text})
        return self.backend.speech


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def registry(backend):
    """Every supported provider name resolves to the fake backend."""

    def factory(model: str, api_key: str, **kwargs: Any) -> FakeProvider:
        return FakeProvider(backend, model, api_key, **kwargs)

    return {name: factory for name in ("gemini", "openai", "claude", "grok", "custom")}


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        paths=PathsConfig(
            state_file=tmp_path / "data" / "state.json",
            handle_file=tmp_path / "data" / "handles.json",
            export_dir=tmp_path / "exports",
            logs_dir=tmp_path / "logs",
        )
    )


@pytest.fixture
def repository(settings) -> StateRepository:
    return StateRepository(KeyValueStore(settings.paths.state_file), HandleStore(settings.paths.handle_file))


@pytest.fixture
def system(settings, repository, registry, monkeypatch) -> MentorSystem:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    return MentorSystem(settings, repository, registry=registry)


def quiz_payload(count: int = 3, correct_index: int = 1) -> List[Dict[str, Any]]:
    return [
        {
            "question": f"Question {number}?",
            "options": ["a", "b", "c", "d"],
            "correctAnswerIndex": correct_index,
            "explanation": f"Because {number}.",
        }
        for number in range(count)
    ]


@pytest.fixture
def make_quiz_payload():
    return quiz_payload
