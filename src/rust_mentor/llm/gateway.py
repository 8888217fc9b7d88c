from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Type

from rust_mentor import prompts
from rust_mentor.config.schema import ModelConfig, SpeechConfig
from rust_mentor.data_models import Message, ProviderConfig
from rust_mentor.errors import ProviderError, StructuredOutputError, UnsupportedOperationError
from rust_mentor.ingestion import extract_text
from rust_mentor.learning.curriculum import normalize_topics
from rust_mentor.llm.base import LLMProvider, conversation_turns, parse_json_reply
from rust_mentor.llm.cancellation import CancellationToken
from rust_mentor.llm.claude_provider import ClaudeProvider
from rust_mentor.llm.gemini_provider import GeminiProvider
from rust_mentor.llm.openai_provider import CustomProvider, GrokProvider, OpenAIProvider

logger = logging.getLogger(__name__)

PROVIDER_REGISTRY: Dict[str, Type[LLMProvider]] = {
    "gemini": GeminiProvider,
    "openai": OpenAIProvider,
    "claude": ClaudeProvider,
    "grok": GrokProvider,
    "custom": CustomProvider,
}

API_KEY_ENV: Dict[str, Sequence[str]] = {
    "gemini": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    "openai": ("OPENAI_API_KEY",),
    "claude": ("ANTHROPIC_API_KEY",),
    "grok": ("XAI_API_KEY",),
    "custom": ("CUSTOM_LLM_API_KEY", "OPENAI_API_KEY"),
}

CURRICULUM_SCHEMA: Dict[str, Any] = {"type": "array", "items": {"type": "string"}}

# Upper bound on document text sent to providers that cannot read files natively.
MAX_DOCUMENT_CHARS = 60_000

ProviderFactory = Callable[..., LLMProvider]


def resolve_api_key(provider: str, configured: str) -> str:
    """Use the learner's saved key, else the provider's conventional environment variable."""
    if configured:
        return configured
    for env_name in API_KEY_ENV.get(provider, ()):
        value = os.getenv(env_name)
        if value:
            return value
    return ""


class LLMGateway:
    """
    Uniform entry point for every model call the mentor makes.

    The provider configuration is read through `config_source` on each call and a fresh
    provider is built from it, so switching provider or model in settings takes effect
    on the very next request. The gateway never retries; provider failures surface as
    `ProviderError` and malformed structured replies as `StructuredOutputError`.
    """

    def __init__(
        self,
        model_config: ModelConfig,
        config_source: Callable[[], ProviderConfig],
        speech_config: Optional[SpeechConfig] = None,
        registry: Optional[Dict[str, ProviderFactory]] = None,
    ):
        self.model_config = model_config
        self.config_source = config_source
        self.speech_config = speech_config or SpeechConfig()
        self.registry: Dict[str, ProviderFactory] = dict(registry or PROVIDER_REGISTRY)

    def resolve_provider(self) -> LLMProvider:
        config = self.config_source()
        name = config.provider or self.model_config.provider
        factory = self.registry.get(name)
        if factory is None:
            raise ProviderError(name, "Unknown provider.")
        api_key = resolve_api_key(name, config.api_key)
        if not api_key:
            raise ProviderError(name, "No API key configured.")
        model = config.model
        if not model and name == self.model_config.provider:
            model = self.model_config.name
        return factory(
            model,
            api_key,
            temperature=self.model_config.temperature,
            max_output_tokens=self.model_config.max_output_tokens,
            timeout=self.model_config.timeout_seconds,
            base_url=config.base_url or self.model_config.base_url,
            speech=self.speech_config,
        )

    def chat_stream(
        self,
        history: Sequence[Message],
        system_instruction: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Iterator[str]:
        """
        Yield response deltas for `history` in arrival order.

        The cancellation token is checked before every chunk is handed out; once it is
        cancelled the provider stream is closed, which releases the HTTP connection.
        """
        provider = self.resolve_provider()
        stream = provider.stream_chat(conversation_turns(history), system_instruction)
        try:
            for delta in stream:
                if cancel_token is not None and cancel_token.cancelled:
                    logger.info("Stream from %s cancelled by caller", provider.name)
                    break
                yield delta
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()

    def chat_once(self, history: Sequence[Message], system_instruction: str) -> str:
        provider = self.resolve_provider()
        return provider.complete(conversation_turns(history), system_instruction)

    def complete_json(self, prompt: str, schema: Dict[str, Any], system_instruction: str = "") -> Any:
        provider = self.resolve_provider()
        raw = provider.complete([Message(role="user", text=prompt)], system_instruction, response_schema=schema)
        return parse_json_reply(raw)

    def extract_curriculum(self, data: bytes, mime_type: str, language: str) -> List[str]:
        """
        Ask the model for the ordered chapter titles of an uploaded document.

        Providers that read the document natively get the raw bytes; the rest get the
        extracted text. The reply must be a non-empty JSON array of strings.
        """
        provider = self.resolve_provider()
        prompt = prompts.curriculum_prompt(language)
        try:
            raw = provider.extract_document(data, mime_type, prompt, CURRICULUM_SCHEMA)
        except UnsupportedOperationError:
            try:
                text = extract_text(data, mime_type)
            except ValueError as exc:
                raise StructuredOutputError(str(exc)) from exc
            if not text.strip():
                raise StructuredOutputError("The document contains no extractable text.")
            document_prompt = f"{prompt}\n\nDocument:\n{text[:MAX_DOCUMENT_CHARS]}"
            raw = provider.complete(
                [Message(role="user", text=document_prompt)],
                prompts.CURRICULUM_SYSTEM,
                response_schema=CURRICULUM_SCHEMA,
            )
        payload = parse_json_reply(raw)
        if not isinstance(payload, list):
            raise StructuredOutputError("Curriculum reply was not a JSON array.")
        topics = normalize_topics(payload)
        if not topics:
            raise StructuredOutputError("Curriculum reply contained no chapter titles.")
        logger.info("Extracted %d chapters with %s", len(topics), provider.name)
        return topics

    def synthesize_speech(self, text: str) -> bytes:
        """Raw 16-bit mono PCM for `text` from the selected provider."""
        return self.resolve_provider().synthesize_speech(text)
