from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from rust_mentor.data_models import Message
from rust_mentor.errors import ProviderError
from rust_mentor.llm.base import LLMProvider

logger = logging.getLogger(__name__)

# the SDK raises APIError for HTTP error responses and lets httpx transport failures through
GEMINI_ERRORS = (genai_errors.APIError, httpx.HTTPError)


def to_gemini_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a JSON schema fragment to Gemini's OpenAPI flavour (upper-case type names)."""
    converted: Dict[str, Any] = {}
    for key, value in schema.items():
        if key == "type" and isinstance(value, str):
            converted[key] = value.upper()
        elif key == "items" and isinstance(value, dict):
            converted[key] = to_gemini_schema(value)
        elif key == "properties" and isinstance(value, dict):
            converted[key] = {name: to_gemini_schema(prop) for name, prop in value.items()}
        elif key in {"minItems", "maxItems", "additionalProperties"}:
            continue
        else:
            converted[key] = value
    return converted


class GeminiProvider(LLMProvider):
    """Google Gemini through the `google-genai` SDK."""

    name = "gemini"
    default_model = "gemini-3-pro-preview"

    def __init__(self, model: str, api_key: str, client: Optional[genai.Client] = None, **kwargs: Any):
        super().__init__(model, api_key, **kwargs)
        self.client = client or genai.Client(api_key=api_key)

    @staticmethod
    def _contents(messages: Sequence[Message]) -> List[Dict[str, Any]]:
        return [
            {"role": "model" if message.role == "model" else "user", "parts": [{"text": message.text}]}
            for message in messages
        ]

    def _config(
        self, system_instruction: str, response_schema: Optional[Dict[str, Any]] = None
    ) -> types.GenerateContentConfig:
        params: Dict[str, Any] = {
            "system_instruction": system_instruction or None,
            "temperature": self.temperature,
            "max_output_tokens": self.max_output_tokens,
        }
        if response_schema is not None:
            params["response_mime_type"] = "application/json"
            params["response_schema"] = to_gemini_schema(response_schema)
        return types.GenerateContentConfig(**params)

    def stream_chat(self, messages: Sequence[Message], system_instruction: str) -> Iterator[str]:
        try:
            stream = self.client.models.generate_content_stream(
                model=self.model,
                contents=self._contents(messages),
                config=self._config(system_instruction),
            )
            for chunk in stream:
                if chunk.text:
                    yield chunk.text
        except GEMINI_ERRORS as exc:
            raise ProviderError(self.name, str(exc)) from exc

    def complete(
        self,
        messages: Sequence[Message],
        system_instruction: str,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=self._contents(messages),
                config=self._config(system_instruction, response_schema),
            )
        except GEMINI_ERRORS as exc:
            raise ProviderError(self.name, str(exc)) from exc
        return response.text or ""

    def extract_document(
        self,
        data: bytes,
        mime_type: str,
        prompt: str,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=[types.Part.from_bytes(data=data, mime_type=mime_type), prompt],
                config=self._config("", response_schema),
            )
        except GEMINI_ERRORS as exc:
            raise ProviderError(self.name, str(exc)) from exc
        return response.text or ""

    def synthesize_speech(self, text: str) -> bytes:
        voice = types.VoiceConfig(
            prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=self.speech.gemini_voice)
        )
        try:
            response = self.client.models.generate_content(
                model=self.speech.gemini_model,
                contents=text,
                config=types.GenerateContentConfig(
                    response_modalities=["AUDIO"],
                    speech_config=types.SpeechConfig(voice_config=voice),
                ),
            )
        except GEMINI_ERRORS as exc:
            raise ProviderError(self.name, str(exc)) from exc
        try:
            audio = response.candidates[0].content.parts[0].inline_data.data
        except (AttributeError, IndexError, TypeError) as exc:
            raise ProviderError(self.name, "Speech response contained no audio.") from exc
        if not audio:
            raise ProviderError(self.name, "Speech response contained no audio.")
        logger.debug("Synthesized %d bytes of PCM audio", len(audio))
        return audio
