from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class Artifact(BaseModel):
    """Markdown summary of one learning session."""

    id: str
    title: str
    date: str
    content: str
    tags: List[str] = Field(default_factory=list)
    remote_url: Optional[str] = None
