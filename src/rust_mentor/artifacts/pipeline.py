from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence

from rust_mentor import prompts
from rust_mentor.artifacts.export import artifact_filename, render_artifact_markdown, render_transcript
from rust_mentor.artifacts.gist import GistSync
from rust_mentor.data_models import Artifact, ChatMode, Message
from rust_mentor.errors import SyncError
from rust_mentor.storage.folder import FolderSink, WriteOutcome

if TYPE_CHECKING:
    from rust_mentor.llm.gateway import LLMGateway

logger = logging.getLogger(__name__)

MIN_MESSAGES = 2

MODE_TAGS = {ChatMode.FEYNMAN: "Feynman", ChatMode.COACH: "Mentorship"}


@dataclass
class ArtifactResult:
    """Saved artifact plus what happened to each mirror; `None` means the mirror was not attempted."""

    artifact: Artifact
    local: Optional[WriteOutcome] = None
    cloud: Optional[WriteOutcome] = None
    errors: List[str] = field(default_factory=list)


class ArtifactPipeline:
    """
    Turn a finished chat into a persisted knowledge artifact.

    The artifact is saved to the in-memory list and persisted first. Mirroring to the
    local folder and to the gist happen afterwards, independently of each other, and a
    failure in either is only reported in the result: it never removes the saved record.
    """

    def __init__(
        self,
        gateway: "LLMGateway",
        artifacts: List[Artifact],
        persist: Callable[[], None],
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.gateway = gateway
        self.artifacts = artifacts
        self.persist = persist
        self.clock = clock

    def build_artifact(self, content: str, mode: ChatMode, language: str) -> Artifact:
        now = self.clock()
        date = now.date().isoformat()
        return Artifact(
            id=str(int(now.timestamp() * 1000)),
            title=f"{prompts.localized(language, 'artifact_title')}: {date}",
            date=date,
            content=content,
            tags=["Rust", "Session", MODE_TAGS[mode]],
        )

    def generate(
        self,
        messages: Sequence[Message],
        mode: ChatMode,
        language: str,
        folder: Optional[FolderSink] = None,
        gist: Optional[GistSync] = None,
    ) -> Optional[ArtifactResult]:
        """
        Summarize `messages` into a new artifact and mirror it where configured.

        Returns `None` without calling the model when fewer than two messages exist.
        Model failures propagate: nothing has been saved at that point.
        """
        if len(messages) < MIN_MESSAGES:
            logger.info("Not enough messages (%d) to build an artifact", len(messages))
            return None

        transcript = render_transcript(messages)
        content = self.gateway.chat_once([Message(role="user", text=transcript)], prompts.artifact_prompt(language))
        artifact = self.build_artifact(content, mode, language)

        self.artifacts.insert(0, artifact)
        self.persist()
        logger.info("Saved artifact %s", artifact.id)

        result = ArtifactResult(artifact=artifact)
        if folder is not None:
            result.local = folder.write(artifact_filename(artifact), render_artifact_markdown(artifact))
            if result.local is not WriteOutcome.SUCCESS:
                result.errors.append(f"Local sync {result.local.value} for {folder.folder}")
        if gist is not None:
            result.cloud = self._push_to_gist(artifact, gist, result)
        return result

    def _push_to_gist(self, artifact: Artifact, gist: GistSync, result: ArtifactResult) -> WriteOutcome:
        try:
            ref = gist.upsert({artifact_filename(artifact): render_artifact_markdown(artifact)})
        except SyncError as exc:
            logger.error("Gist sync failed for artifact %s: %s", artifact.id, exc)
            result.errors.append(str(exc))
            # a stale id may have been cleared before the failed create
            self.persist()
            return WriteOutcome.ERROR
        artifact.remote_url = ref.html_url or None
        self.persist()
        return WriteOutcome.SUCCESS

    def sync_all(self, folder: FolderSink) -> Dict[str, WriteOutcome]:
        """Write every stored artifact into `folder`; used by the manual "sync now" action."""
        outcomes: Dict[str, WriteOutcome] = {}
        for artifact in self.artifacts:
            outcomes[artifact.id] = folder.write(artifact_filename(artifact), render_artifact_markdown(artifact))
        logger.info(
            "Pushed %d artifacts to %s (%d ok)",
            len(outcomes),
            folder.folder,
            sum(1 for outcome in outcomes.values() if outcome is WriteOutcome.SUCCESS),
        )
        return outcomes


