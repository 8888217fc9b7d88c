"""Tests for settings loading and environment overrides."""

from __future__ import annotations

from pathlib import Path

import pytest

from rust_mentor.config import load_settings
from rust_mentor.utils.audio import pcm_to_wav

REPO_CONFIG = Path(__file__).resolve().parents[1] / "config" / "default.yaml"


def test_repository_default_config_loads():
    settings = load_settings(REPO_CONFIG)
    assert settings.model.provider == "gemini"
    assert settings.quiz.num_questions == 3
    assert settings.speech.sample_rate == 24000


def test_missing_explicit_path_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "absent.yaml")


def test_env_overrides_are_deep_merged(tmp_path, monkeypatch):
    config = tmp_path / "config.yaml"
    config.write_text("model:\n  provider: openai\n  name: gpt-4o\n", encoding="utf-8")
    monkeypatch.setenv("RUST_MENTOR_CONFIG_OVERRIDES", '{"model": {"temperature": 0.2}}')
    settings = load_settings(config)
    assert settings.model.provider == "openai"
    assert settings.model.temperature == 0.2


@pytest.mark.parametrize(
    "body",
    ["model:\n  provider: skynet\n", "default_language: fr\n", "quiz:\n  num_questions: 0\n"],
)
def test_invalid_values_raise_value_error(tmp_path, body):
    config = tmp_path / "config.yaml"
    config.write_text(body, encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(config)


def test_bad_override_json_raises(tmp_path, monkeypatch):
    config = tmp_path / "config.yaml"
    config.write_text("{}\n", encoding="utf-8")
    monkeypatch.setenv("RUST_MENTOR_CONFIG_OVERRIDES", "{nope")
    with pytest.raises(ValueError):
        load_settings(config)


def test_pcm_to_wav_header():
    wav = pcm_to_wav(b"\x00\x00" * 10, sample_rate=24000)
    assert wav[:4] == b"RIFF"
    assert wav[8:12] == b"WAVE"
    assert len(wav) == 44 + 20
