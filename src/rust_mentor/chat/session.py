from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, List, Optional

from rust_mentor import prompts
from rust_mentor.data_models import ChatMode, Message
from rust_mentor.errors import MentorError, SessionBusyError
from rust_mentor.llm.cancellation import CancellationToken

if TYPE_CHECKING:
    from rust_mentor.llm.gateway import LLMGateway

logger = logging.getLogger(__name__)

DeltaCallback = Callable[[str], None]


class ChatSession:
    """
    Ordered message log for one chat mode plus its single in-flight generation.

    The log is append-only; the only in-place mutation is the trailing model message
    growing while its response streams in. At most one request runs at a time.
    """

    def __init__(
        self,
        mode: ChatMode,
        gateway: "LLMGateway",
        language: str = "en",
        messages: Optional[List[Message]] = None,
    ):
        self.mode = mode
        self.gateway = gateway
        self.language = language
        self.messages: List[Message] = list(messages or [])
        self.in_flight = False
        self.cancel_token: Optional[CancellationToken] = None

    def system_instruction(self, chapter_title: Optional[str] = None) -> str:
        return prompts.build_system_instruction(self.language, self.mode, chapter_title)

    def send(
        self,
        text: str,
        chapter_title: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
        on_delta: Optional[DeltaCallback] = None,
    ) -> Optional[Message]:
        """
        Append `text` as a user turn and stream the model reply into a new trailing message.

        Returns the model message (possibly partial when cancelled or failed), or `None`
        when `text` is blank. A provider failure appends one system note and keeps any
        partial reply; the caller may simply send again.
        """
        if not text.strip():
            return None
        if self.in_flight:
            raise SessionBusyError(f"{self.mode.value} session is already waiting for a reply.")

        self.in_flight = True
        self.cancel_token = cancel_token or CancellationToken()
        self.messages.append(Message(role="user", text=text))
        history = list(self.messages)
        reply = Message(role="model", text="")
        self.messages.append(reply)
        try:
            for delta in self.gateway.chat_stream(history, self.system_instruction(chapter_title), self.cancel_token):
                reply.text += delta
                if on_delta is not None:
                    on_delta(delta)
        except MentorError as exc:
            logger.error("LLM error in %s session: %s", self.mode.value, exc)
            self._drop_empty_reply(reply)
            self.messages.append(Message(role="system", text=prompts.localized(self.language, "chat_error")))
        finally:
            # cancelled or interrupted before the first chunk, or the model said nothing
            self._drop_empty_reply(reply)
            self.in_flight = False
            self.cancel_token = None
        return reply

    def _drop_empty_reply(self, reply: Message) -> None:
        if not reply.text and self.messages and self.messages[-1] is reply:
            self.messages.pop()

    def cancel(self) -> None:
        """Abandon the in-flight request, if any."""
        if self.cancel_token is not None:
            self.cancel_token.cancel()

    def clear(self) -> None:
        self.messages.clear()
