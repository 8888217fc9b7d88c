from __future__ import annotations

import re
from typing import Sequence

from rust_mentor.data_models import Artifact, Message

_FORBIDDEN = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_SEPARATORS = re.compile(r"[\s_]+")
_DASH_RUNS = re.compile(r"-{2,}")


def slugify(title: str) -> str:
    """Filesystem-safe slug; keeps non-ASCII letters so Chinese titles stay readable."""
    cleaned = _FORBIDDEN.sub(" ", title).strip().lower()
    slug = _DASH_RUNS.sub("-", _SEPARATORS.sub("-", cleaned)).strip("-.")
    return slug or "artifact"


def artifact_filename(artifact: Artifact) -> str:
    date = _FORBIDDEN.sub("-", artifact.date)
    return f"{date}-{slugify(artifact.title)}.md"


def render_artifact_markdown(artifact: Artifact) -> str:
    tags = ", ".join(artifact.tags)
    return f"# {artifact.title}\n\nDate: {artifact.date}\nTags: {tags}\n\n---\n\n{artifact.content}"


def render_transcript(messages: Sequence[Message]) -> str:
    return "\n\n".join(f"**{message.role.upper()}**: {message.text}" for message in messages)
