from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, validator

SUPPORTED_PROVIDERS = ("gemini", "openai", "claude", "grok", "custom")
SUPPORTED_LANGUAGES = ("en", "zh")


class ModelConfig(BaseModel):
    """Default model settings used until the learner saves their own provider config."""

    provider: str = Field("gemini", description="Provider backend to use.")
    name: str = Field("gemini-3-pro-preview", description="LLM identifier.")
    temperature: float = Field(0.7, ge=0, le=2)
    max_output_tokens: int = Field(4096, ge=64)
    base_url: Optional[str] = Field(None, description="Endpoint for the 'custom' provider.")
    timeout_seconds: float = Field(120.0, gt=0)

    @validator("provider")
    def provider_is_known(cls, value: str) -> str:
        if value not in SUPPORTED_PROVIDERS:
            raise ValueError(f"provider must be one of {', '.join(SUPPORTED_PROVIDERS)}")
        return value


class SpeechConfig(BaseModel):
    """Text-to-speech model and voice per provider."""

    gemini_model: str = Field("gemini-2.5-flash-preview-tts")
    gemini_voice: str = Field("Kore")
    openai_model: str = Field("gpt-4o-mini-tts")
    openai_voice: str = Field("alloy")
    sample_rate: int = Field(24000, ge=8000)


class QuizConfig(BaseModel):
    """Quiz sizing."""

    num_questions: int = Field(3, ge=1, le=10)
    options_per_question: int = Field(4, ge=2)


class SyncConfig(BaseModel):
    """Endpoints and timeouts for artifact mirroring."""

    gist_api_url: str = Field("https://api.github.com/gists")
    gist_description: str = Field("Rust Mentor knowledge artifacts")
    timeout_seconds: float = Field(20.0, gt=0)


class PathsConfig(BaseModel):
    """Filesystem layout for persisted state and logs."""

    state_file: Path = Field(Path("data/state.json"))
    handle_file: Path = Field(Path("data/handles.json"))
    export_dir: Path = Field(Path("data/exports"))
    logs_dir: Path = Field(Path("logs"))


class LoggingConfig(BaseModel):
    """Controls for logging output and format."""

    level: str = Field("INFO")
    use_json: bool = False


class Settings(BaseModel):
    """Top-level project configuration aggregating all sub-settings."""

    project_name: str = Field("Rust Mentor")
    default_language: str = Field("en")
    model: ModelConfig = Field(default_factory=ModelConfig)
    speech: SpeechConfig = Field(default_factory=SpeechConfig)
    quiz: QuizConfig = Field(default_factory=QuizConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @validator("default_language")
    def language_is_supported(cls, value: str) -> str:
        """Reject display languages the curriculum and prompts are not written in."""
        if value not in SUPPORTED_LANGUAGES:
            raise ValueError(f"default_language must be one of {', '.join(SUPPORTED_LANGUAGES)}")
        return value
