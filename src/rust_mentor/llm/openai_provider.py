from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Sequence

from openai import OpenAI, OpenAIError

from rust_mentor.data_models import Message
from rust_mentor.errors import ProviderError
from rust_mentor.llm.base import LLMProvider, schema_instruction


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions; also the base for OpenAI-compatible endpoints."""

    name = "openai"
    default_model = "gpt-4o"
    default_base_url: Optional[str] = None
    supports_speech = True

    def __init__(self, model: str, api_key: str, client: Optional[OpenAI] = None, **kwargs: Any):
        super().__init__(model, api_key, **kwargs)
        self.client = client or OpenAI(
            api_key=api_key,
            base_url=self.base_url or self.default_base_url,
            timeout=self.timeout,
        )

    @staticmethod
    def _messages(messages: Sequence[Message], system_instruction: str) -> List[Dict[str, str]]:
        payload: List[Dict[str, str]] = []
        if system_instruction:
            payload.append({"role": "system", "content": system_instruction})
        for message in messages:
            role = "assistant" if message.role == "model" else "user"
            payload.append({"role": role, "content": message.text})
        return payload

    def stream_chat(self, messages: Sequence[Message], system_instruction: str) -> Iterator[str]:
        try:
            stream = self.client.chat.completions.create(
                model=self.model,
                messages=self._messages(messages, system_instruction),
                temperature=self.temperature,
                max_tokens=self.max_output_tokens,
                stream=True,
            )
            try:
                for chunk in stream:
                    if not chunk.choices:
                        continue
                    delta = chunk.choices[0].delta.content
                    if delta:
                        yield delta
            finally:
                close = getattr(stream, "close", None)
                if close is not None:
                    close()
        except OpenAIError as exc:
            raise ProviderError(self.name, str(exc)) from exc

    def complete(
        self,
        messages: Sequence[Message],
        system_instruction: str,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        instruction = system_instruction
        if response_schema is not None:
            instruction = f"{system_instruction}\n\n{schema_instruction(response_schema)}".strip()
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=self._messages(messages, instruction),
                temperature=self.temperature,
                max_tokens=self.max_output_tokens,
            )
        except OpenAIError as exc:
            raise ProviderError(self.name, str(exc)) from exc
        return response.choices[0].message.content or ""

    def synthesize_speech(self, text: str) -> bytes:
        if not self.supports_speech:
            return super().synthesize_speech(text)
        try:
            response = self.client.audio.speech.create(
                model=self.speech.openai_model,
                voice=self.speech.openai_voice,
                input=text,
                response_format="pcm",
            )
        except OpenAIError as exc:
            raise ProviderError(self.name, str(exc)) from exc
        return response.read()


class GrokProvider(OpenAIProvider):
    """xAI Grok through its OpenAI-compatible API."""

    name = "grok"
    default_model = "grok-4"
    default_base_url = "https://api.x.ai/v1"
    supports_speech = False


class CustomProvider(OpenAIProvider):
    """Any OpenAI-compatible endpoint; `base_url` is the API root (e.g. `http://localhost:8000/v1`)."""

    name = "custom"
    default_model = ""
    supports_speech = False

    def __init__(self, model: str, api_key: str, client: Optional[OpenAI] = None, **kwargs: Any):
        if client is None and not kwargs.get("base_url"):
            raise ProviderError(self.name, "A base URL is required for the custom provider.")
        if not (model or self.default_model):
            raise ProviderError(self.name, "The custom provider needs an explicit model name.")
        super().__init__(model, api_key, client=client, **kwargs)
