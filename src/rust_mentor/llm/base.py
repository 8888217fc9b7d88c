from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional, Sequence

from rust_mentor.config.schema import SpeechConfig
from rust_mentor.data_models import Message
from rust_mentor.errors import StructuredOutputError, UnsupportedOperationError

_JSON_SPAN = re.compile(r"(\[.*\]|\{.*\})", re.DOTALL)


def conversation_turns(messages: Sequence[Message]) -> List[Message]:
    """Drop local system notes and empty turns; providers only ever see user and model text."""
    return [message for message in messages if message.role != "system" and message.text]


def clean_json_payload(raw: str) -> str:
    """Strip a surrounding markdown code fence from a model reply."""
    text = raw.strip()
    if text.startswith("```"):
        fence_end = text.find("```", 3)
        if fence_end != -1:
            text = text[3:fence_end].strip()
        if text.startswith("json"):
            text = text[4:].strip()
    return text


def schema_instruction(schema: Dict[str, Any]) -> str:
    """Prompt suffix for providers that cannot constrain decoding to a schema."""
    return (
        "Respond with JSON only, without markdown fences, matching this JSON schema:\n"
        + json.dumps(schema, indent=2)
    )


def parse_json_reply(raw: str) -> Any:
    """
    Decode JSON from a model reply.

    Providers without schema-constrained decoding sometimes wrap the payload in prose,
    so when the cleaned text is not valid JSON the first array or object span is tried.
    """
    cleaned = clean_json_payload(raw)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass
    match = _JSON_SPAN.search(cleaned)
    if match:
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            pass
    raise StructuredOutputError("Model reply did not contain valid JSON.")


class LLMProvider(ABC):
    """One model backend. Instances are built per call from the current provider config."""

    name: str = "base"
    default_model: str = ""

    def __init__(
        self,
        model: str,
        api_key: str,
        *,
        temperature: float = 0.7,
        max_output_tokens: int = 4096,
        timeout: float = 120.0,
        base_url: Optional[str] = None,
        speech: Optional[SpeechConfig] = None,
    ):
        self.model = model or self.default_model
        self.api_key = api_key
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout
        self.base_url = base_url
        self.speech = speech or SpeechConfig()

    @abstractmethod
    def stream_chat(self, messages: Sequence[Message], system_instruction: str) -> Iterator[str]:
        """Yield response text deltas in arrival order."""
        raise NotImplementedError

    @abstractmethod
    def complete(
        self,
        messages: Sequence[Message],
        system_instruction: str,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        raise NotImplementedError

    def extract_document(
        self,
        data: bytes,
        mime_type: str,
        prompt: str,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Run a structured prompt against a raw document. Only some providers accept files natively."""
        raise UnsupportedOperationError(f"{self.name} cannot read {mime_type} documents directly.")

    def synthesize_speech(self, text: str) -> bytes:
        raise UnsupportedOperationError(f"{self.name} does not offer speech synthesis.")
