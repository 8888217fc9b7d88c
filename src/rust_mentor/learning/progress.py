from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence

from rust_mentor.errors import ChapterIndexError
from rust_mentor.learning.curriculum import normalize_topics
from rust_mentor.learning.models import UserProgress

logger = logging.getLogger(__name__)

INTERMEDIATE_THRESHOLD = 5


class ProgressTracker:
    """
    Apply curriculum progress transitions to a learner's `UserProgress`.

    All operations are pure local-state transitions: they mutate the given progress
    object in place and return it for chaining. Persisting the result is the
    caller's job (the application facade saves state after every mutation).

    Invariants
    ----------
    - `completed_chapters` only ever grows, except on curriculum replacement.
    - `complete_chapter` moves `current_chapter_index` forward by exactly one.
    - `replace_curriculum` resets the index to 0 and empties the completed set.

    Examples
    --------
    >>> tracker = ProgressTracker()
    >>> progress = UserProgress()
    >>> progress = tracker.start_chapter(progress, 0, topic_count=16)
    >>> progress = tracker.complete_chapter(progress)
    >>> progress.current_chapter_index, sorted(progress.completed_chapters)
    (1, [0])
    >>> tracker.coverage_percent(progress, 16)
    6
    """

    def start_chapter(self, progress: UserProgress, index: int, topic_count: int) -> UserProgress:
        """
        Select the chapter the next lesson and quiz are about.

        Parameters
        ----------
        progress : UserProgress
            Progress record to update (modified in place).
        index : int
            Zero-based chapter position in the active curriculum.
        topic_count : int
            Length of the active curriculum.

        Raises
        ------
        ChapterIndexError
            If `index` is not a position of the active curriculum.
        """
        if not 0 <= index < topic_count:
            raise ChapterIndexError(f"Chapter {index} is outside the curriculum (0..{topic_count - 1}).")
        progress.current_chapter_index = index
        return progress

    def complete_chapter(self, progress: UserProgress) -> UserProgress:
        """Mark the current chapter as passed and advance to the next one."""
        completed = progress.current_chapter_index
        progress.completed_chapters.add(completed)
        progress.current_chapter_index = completed + 1
        logger.info("Chapter %d completed; now on chapter %d", completed, progress.current_chapter_index)
        return progress

    def replace_curriculum(
        self, progress: UserProgress, new_topics: Sequence[object]
    ) -> Optional[List[str]]:
        """
        Reset progress for a new curriculum and return the list that should replace the old one.

        Returns `None` when `new_topics` holds no usable titles, meaning the built-in
        default curriculum becomes active again. Progress is reset either way, since
        chapter indices of the old list mean nothing in the new one.
        """
        topics = normalize_topics(new_topics)
        progress.current_chapter_index = 0
        progress.completed_chapters.clear()
        logger.info("Curriculum replaced with %d chapters", len(topics))
        return topics or None

    def record_session(self, progress: UserProgress) -> UserProgress:
        progress.total_sessions += 1
        return progress

    @staticmethod
    def coverage_percent(progress: UserProgress, topic_count: int) -> int:
        """Completed share of the curriculum as a whole percentage in [0, 100]; 0 for an empty list."""
        if topic_count <= 0:
            return 0
        ratio = 100 * len(progress.completed_chapters) / topic_count
        return max(0, min(100, math.floor(ratio + 0.5)))

    @staticmethod
    def level_label(progress: UserProgress) -> str:
        if len(progress.completed_chapters) > INTERMEDIATE_THRESHOLD:
            return "Intermediate"
        return "Beginner"
