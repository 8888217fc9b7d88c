from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

import requests

from rust_mentor.data_models import Message
from rust_mentor.errors import ProviderError
from rust_mentor.llm.base import LLMProvider, schema_instruction

logger = logging.getLogger(__name__)

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


class ClaudeProvider(LLMProvider):
    """Anthropic Messages API over plain HTTP."""

    name = "claude"
    default_model = "claude-sonnet-4-5"

    def __init__(
        self,
        model: str,
        api_key: str,
        session: Optional[requests.Session] = None,
        **kwargs: Any,
    ):
        super().__init__(model, api_key, **kwargs)
        self.url = self.base_url or ANTHROPIC_MESSAGES_URL
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

    def _body(self, messages: List[Dict[str, Any]], system_instruction: str, stream: bool = False) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_output_tokens,
            "temperature": self.temperature,
            "messages": messages,
        }
        if system_instruction:
            body["system"] = system_instruction
        if stream:
            body["stream"] = True
        return body

    @staticmethod
    def _messages(messages: Sequence[Message]) -> List[Dict[str, Any]]:
        return [
            {"role": "assistant" if message.role == "model" else "user", "content": message.text}
            for message in messages
        ]

    def _post(self, body: Dict[str, Any], stream: bool = False) -> requests.Response:
        try:
            response = self.session.post(
                self.url,
                headers=self._headers(),
                json=body,
                timeout=self.timeout,
                stream=stream,
            )
        except requests.RequestException as exc:
            raise ProviderError(self.name, str(exc)) from exc
        if response.status_code >= 400:
            detail = response.text[:500]
            response.close()
            raise ProviderError(self.name, f"HTTP {response.status_code}: {detail}")
        return response

    def _text_of(self, response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError(self.name, "Response body was not JSON.") from exc
        if not isinstance(payload, dict):
            raise ProviderError(self.name, "Response body was not a message object.")
        return "".join(
            block.get("text", "")
            for block in payload.get("content", [])
            if block.get("type") == "text"
        )

    def stream_chat(self, messages: Sequence[Message], system_instruction: str) -> Iterator[str]:
        response = self._post(self._body(self._messages(messages), system_instruction, stream=True), stream=True)
        try:
            for line in response.iter_lines(decode_unicode=True):
                if not line or not line.startswith("data:"):
                    continue
                try:
                    event = json.loads(line[len("data:"):].strip())
                except json.JSONDecodeError:
                    logger.debug("Skipping undecodable stream line: %s", line)
                    continue
                event_type = event.get("type")
                if event_type == "content_block_delta":
                    delta = event.get("delta", {})
                    if delta.get("type") == "text_delta" and delta.get("text"):
                        yield delta["text"]
                elif event_type == "error":
                    message = event.get("error", {}).get("message", "stream error")
                    raise ProviderError(self.name, message)
                elif event_type == "message_stop":
                    break
        except requests.RequestException as exc:
            raise ProviderError(self.name, str(exc)) from exc
        finally:
            response.close()

    def complete(
        self,
        messages: Sequence[Message],
        system_instruction: str,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        instruction = system_instruction
        if response_schema is not None:
            instruction = f"{system_instruction}\n\n{schema_instruction(response_schema)}".strip()
        response = self._post(self._body(self._messages(messages), instruction))
        return self._text_of(response)

    def extract_document(
        self,
        data: bytes,
        mime_type: str,
        prompt: str,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        if mime_type != "application/pdf":
            return super().extract_document(data, mime_type, prompt, response_schema)
        if response_schema is not None:
            prompt = f"{prompt}\n\n{schema_instruction(response_schema)}"
        content = [
            {
                "type": "document",
                "source": {
                    "type": "base64",
                    "media_type": mime_type,
                    "data": base64.b64encode(data).decode("ascii"),
                },
            },
            {"type": "text", "text": prompt},
        ]
        response = self._post(self._body([{"role": "user", "content": content}], ""))
        return self._text_of(response)
