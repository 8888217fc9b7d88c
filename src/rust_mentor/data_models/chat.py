from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ChatMode(str, Enum):
    """Chat flavours, each with its own message log."""

    COACH = "COACH"
    FEYNMAN = "FEYNMAN"


class Message(BaseModel):
    """Single chat entry. `system` entries are local error notes never sent to a provider."""

    role: Literal["user", "model", "system"]
    text: str = ""
    timestamp: datetime = Field(default_factory=_now)
