from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class ProviderConfig(BaseModel):
    """Learner-chosen LLM provider. An empty `api_key` falls back to the environment."""

    provider: str = "gemini"
    model: str = ""
    api_key: str = ""
    base_url: Optional[str] = None


class GistConfig(BaseModel):
    """Cloud backup settings; `gist_id` remembers the document updated on the next sync."""

    enabled: bool = False
    token: str = ""
    gist_id: Optional[str] = None
