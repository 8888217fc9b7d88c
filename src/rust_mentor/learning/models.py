from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Set


@dataclass
class UserProgress:
    """Learner position in the active curriculum."""

    current_chapter_index: int = 0
    completed_chapters: Set[int] = field(default_factory=set)
    total_sessions: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_chapter_index": self.current_chapter_index,
            "completed_chapters": sorted(self.completed_chapters),
            "total_sessions": self.total_sessions,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProgress":
        return cls(
            current_chapter_index=max(0, int(data.get("current_chapter_index", 0))),
            completed_chapters={int(idx) for idx in data.get("completed_chapters", [])},
            total_sessions=max(0, int(data.get("total_sessions", 0))),
        )
