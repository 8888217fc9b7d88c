from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from rust_mentor.artifacts import ArtifactPipeline, ArtifactResult, GistClient, GistSync
from rust_mentor.chat import ChatSession
from rust_mentor.config import Settings, load_settings
from rust_mentor.config.schema import SUPPORTED_LANGUAGES, SUPPORTED_PROVIDERS
from rust_mentor.data_models import ChatMode, Message, ProviderConfig
from rust_mentor.errors import ChapterIndexError
from rust_mentor.learning import ProgressTracker, QuizAttempt, QuizEvaluation, QuizService, topics_to_show
from rust_mentor.llm import CancellationToken, LLMGateway
from rust_mentor.storage.folder import FolderSink, WriteOutcome
from rust_mentor.storage.handle_store import HandleStore
from rust_mentor.storage.kv_store import KeyValueStore
from rust_mentor.storage.state import MentorState, StateRepository
from rust_mentor.utils.logging import configure_logging

logger = logging.getLogger(__name__)


class AppMode(str, Enum):
    DASHBOARD = "DASHBOARD"
    LEARN = "LEARN"
    FEYNMAN = "FEYNMAN"
    QUIZ = "QUIZ"
    ARTIFACTS = "ARTIFACTS"
    SETTINGS = "SETTINGS"


CHAT_VIEWS: Dict[AppMode, ChatMode] = {AppMode.LEARN: ChatMode.COACH, AppMode.FEYNMAN: ChatMode.FEYNMAN}


class MentorSystem:
    """
    Main facade coordinating every mentor component.

    The system owns the single `MentorState` for the process and is the only place
    that mutates it; each public mutation ends with a save through the
    `StateRepository`. The CLI, the Streamlit UI and the REST API are thin layers
    over this class.

    Attributes
    ----------
    settings : Settings
        Static configuration loaded from YAML.
    repository : StateRepository
        Persistence boundary for learner state.
    state : MentorState
        In-memory learner state, loaded once at start-up.
    gateway : LLMGateway
        Provider-agnostic model access; reads `state.llm` on every call.
    sessions : Dict[ChatMode, ChatSession]
        One chat log per mode, backed by the lists in `state.histories`.
    mode : AppMode
        Current navigation view.
    """

    def __init__(
        self,
        settings: Settings,
        repository: StateRepository,
        registry: Optional[Dict[str, Callable[..., Any]]] = None,
        gist_session: Optional[Any] = None,
    ):
        self.settings = settings
        self.repository = repository
        self.state: MentorState = repository.load()
        self.gateway = LLMGateway(settings.model, lambda: self.state.llm, settings.speech, registry=registry)
        self.tracker = ProgressTracker()
        self.quiz_service = QuizService(self.gateway, num_questions=settings.quiz.num_questions)
        self.gist_session = gist_session
        self.mode = AppMode.DASHBOARD
        self.quiz_attempt: Optional[QuizAttempt] = None
        self.sessions: Dict[ChatMode, ChatSession] = {}
        self.pipeline = ArtifactPipeline(self.gateway, self.state.artifacts, self.save)
        self._bind_sessions()

    @classmethod
    def from_config(
        cls,
        config_path: str | Path | None = None,
        registry: Optional[Dict[str, Callable[..., Any]]] = None,
        gist_session: Optional[Any] = None,
    ) -> "MentorSystem":
        """
        Factory method to construct a MentorSystem from a configuration file.

        Parameters
        ----------
        config_path : str | Path | None, default=None
            Path to a YAML configuration file. If None, `config/default.yaml` is used
            when present, otherwise the built-in defaults.
        registry : Optional[Dict[str, Callable]], default=None
            Provider factories by name; defaults to the built-in provider registry.
        gist_session : Optional[requests.Session], default=None
            HTTP session used for gist calls.

        Returns
        -------
        MentorSystem
            System with state loaded from the configured state file.

        Raises
        ------
        FileNotFoundError
            If `config_path` is given but doesn't exist.
        ValueError
            If the configuration fails validation.
        """
        settings = load_settings(config_path)
        configure_logging(settings.logging.level, settings.logging.use_json, logs_dir=settings.paths.logs_dir)

        settings.paths.state_file.parent.mkdir(parents=True, exist_ok=True)
        settings.paths.handle_file.parent.mkdir(parents=True, exist_ok=True)

        repository = StateRepository(
            KeyValueStore(settings.paths.state_file),
            HandleStore(settings.paths.handle_file),
            default_language=settings.default_language,
        )
        return cls(settings, repository, registry=registry, gist_session=gist_session)

    def _bind_sessions(self) -> None:
        self.sessions = {}
        for chat_mode in ChatMode:
            session = ChatSession(chat_mode, self.gateway, language=self.state.language)
            # share the persisted list so appends land in state directly
            session.messages = self.state.histories[chat_mode]
            self.sessions[chat_mode] = session

    def save(self) -> None:
        self.repository.save(self.state)

    # ------------------------------------------------------------------ navigation

    def navigate(self, mode: AppMode) -> AppMode:
        """Switch view, abandoning the in-flight reply of a chat view being left."""
        leaving = CHAT_VIEWS.get(self.mode)
        if leaving is not None and mode is not self.mode:
            self.sessions[leaving].cancel()
        self.mode = mode
        return self.mode

    # ------------------------------------------------------------------ curriculum

    @property
    def topics(self) -> List[str]:
        return topics_to_show(self.state.custom_topics, self.state.language)

    @property
    def current_chapter_title(self) -> Optional[str]:
        index = self.state.progress.current_chapter_index
        topics = self.topics
        return topics[index] if 0 <= index < len(topics) else None

    def dashboard(self) -> Dict[str, Any]:
        progress = self.state.progress
        topics = self.topics
        return {
            "topics": topics,
            "current_chapter_index": progress.current_chapter_index,
            "current_chapter_title": self.current_chapter_title,
            "completed_chapters": sorted(progress.completed_chapters),
            "coverage_percent": self.tracker.coverage_percent(progress, len(topics)),
            "level": self.tracker.level_label(progress),
            "artifact_count": len(self.state.artifacts),
            "total_sessions": progress.total_sessions,
            "custom_curriculum": bool(self.state.custom_topics),
            "language": self.state.language,
        }

    def start_chapter(self, index: int) -> str:
        self.tracker.start_chapter(self.state.progress, index, len(self.topics))
        # a quiz belongs to the chapter it was generated for
        self.quiz_attempt = None
        self.save()
        self.navigate(AppMode.LEARN)
        return self.topics[index]

    def upload_curriculum(self, data: bytes, mime_type: str) -> List[str]:
        """
        Replace the curriculum with chapters extracted from an uploaded document.

        Extraction errors propagate and leave state untouched. On success progress
        restarts at chapter 0 and both chat histories are cleared.
        """
        extracted = self.gateway.extract_curriculum(data, mime_type, self.state.language)
        self._replace_curriculum(extracted)
        return self.topics

    def reset_curriculum(self) -> List[str]:
        self._replace_curriculum([])
        return self.topics

    def _replace_curriculum(self, topics: Sequence[str]) -> None:
        self.state.custom_topics = self.tracker.replace_curriculum(self.state.progress, topics)
        for session in self.sessions.values():
            session.cancel()
            session.clear()
        self.quiz_attempt = None
        self.save()
        self.navigate(AppMode.DASHBOARD)

    # ------------------------------------------------------------------ chat

    def send_message(
        self,
        mode: ChatMode,
        text: str,
        on_delta: Optional[Callable[[str], None]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Optional[Message]:
        session = self.sessions[mode]
        first_message = not session.messages
        reply = session.send(text, self.current_chapter_title, cancel_token=cancel_token, on_delta=on_delta)
        if reply is None:
            return None
        if first_message:
            self.tracker.record_session(self.state.progress)
        self.save()
        return reply

    def history(self, mode: ChatMode) -> List[Message]:
        return list(self.sessions[mode].messages)

    # ------------------------------------------------------------------ artifacts

    def _folder_sink(self) -> Optional[FolderSink]:
        folder = self.repository.handles.get()
        return FolderSink(folder) if folder is not None else None

    def _gist_sync(self) -> Optional[GistSync]:
        gist = self.state.gist
        token = gist.token or os.getenv("GITHUB_TOKEN", "")
        if not gist.enabled or not token:
            return None
        client = GistClient(
            token,
            api_url=self.settings.sync.gist_api_url,
            timeout=self.settings.sync.timeout_seconds,
            session=self.gist_session,
        )
        return GistSync(client, gist, description=self.settings.sync.gist_description)

    def generate_artifact(self, mode: ChatMode) -> Optional[ArtifactResult]:
        """Summarize the chat of `mode` into a saved artifact; `None` when the chat is too short."""
        folder = self._folder_sink() if self.state.auto_sync else None
        return self.pipeline.generate(
            self.sessions[mode].messages,
            mode,
            self.state.language,
            folder=folder,
            gist=self._gist_sync(),
        )

    def sync_all_artifacts(self) -> Dict[str, WriteOutcome]:
        folder = self._folder_sink()
        if folder is None:
            raise ValueError("No sync folder has been selected.")
        return self.pipeline.sync_all(folder)

    # ------------------------------------------------------------------ quiz

    def start_quiz(self) -> QuizAttempt:
        title = self.current_chapter_title
        if title is None:
            raise ChapterIndexError("Every chapter is complete; there is nothing left to quiz.")
        self.navigate(AppMode.QUIZ)
        self.quiz_attempt = QuizAttempt(
            self.quiz_service,
            title,
            self.state.language,
            chapter_index=self.state.progress.current_chapter_index,
        ).load()
        return self.quiz_attempt

    def submit_quiz(self, answers: Sequence[int]) -> QuizEvaluation:
        """
        Score the active attempt; a perfect score completes the chapter and returns to the dashboard.

        Raises
        ------
        RuntimeError
            If no quiz is presented or an answer is missing, or the quiz was
            generated for a chapter that is no longer current.
        ValueError
            If an answer index does not exist or the answer count is wrong.
        """
        attempt = self.quiz_attempt
        if attempt is None:
            raise RuntimeError("No quiz has been started.")
        if attempt.chapter_index != self.state.progress.current_chapter_index:
            raise RuntimeError("This quiz belongs to a chapter that is no longer current; start a new quiz.")
        if attempt.quiz is not None and len(answers) != len(attempt.quiz.questions):
            raise ValueError("Answer count must match number of quiz questions.")
        for question_index, option_index in enumerate(answers):
            attempt.select(question_index, option_index)
        evaluation = attempt.submit()
        if evaluation.passed:
            self.tracker.complete_chapter(self.state.progress)
            self.save()
            self.navigate(AppMode.DASHBOARD)
        return evaluation

    def retry_quiz(self) -> QuizAttempt:
        attempt = self.quiz_attempt
        if attempt is None or attempt.chapter_index != self.state.progress.current_chapter_index:
            return self.start_quiz()
        return attempt.retry()

    # ------------------------------------------------------------------ settings

    def update_llm_config(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> ProviderConfig:
        """Change the provider config; the next model call uses it. Switching provider drops the old credentials."""
        current = self.state.llm
        name = provider or current.provider
        if name not in SUPPORTED_PROVIDERS:
            raise ValueError(f"provider must be one of {', '.join(SUPPORTED_PROVIDERS)}")
        switched = name != current.provider
        self.state.llm = ProviderConfig(
            provider=name,
            model=model if model is not None else ("" if switched else current.model),
            api_key=api_key if api_key is not None else ("" if switched else current.api_key),
            base_url=base_url if base_url is not None else (None if switched else current.base_url),
        )
        self.save()
        logger.info("LLM provider set to %s (%s)", name, self.state.llm.model or "default model")
        return self.state.llm

    def configure_gist(self, token: Optional[str] = None, enabled: Optional[bool] = None) -> None:
        if token is not None:
            self.state.gist.token = token
        if enabled is not None:
            self.state.gist.enabled = enabled
        self.save()

    def set_sync_folder(self, folder: str | Path) -> bool:
        """Remember `folder` for artifact mirroring if it can be written; returns whether access was granted."""
        sink = FolderSink(Path(folder).expanduser())
        if not (sink.query_permission() or sink.request_permission()):
            logger.warning("Sync folder %s is not writable", folder)
            return False
        self.repository.handles.save(sink.folder)
        return True

    def clear_sync_folder(self) -> None:
        self.repository.handles.clear()

    @property
    def sync_folder(self) -> Optional[Path]:
        return self.repository.handles.get()

    def set_auto_sync(self, enabled: bool) -> None:
        self.state.auto_sync = enabled
        self.save()

    def set_auto_speak(self, enabled: bool) -> None:
        self.state.auto_speak = enabled
        self.save()

    def set_language(self, language: str) -> str:
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"language must be one of {', '.join(SUPPORTED_LANGUAGES)}")
        self.state.language = language
        for session in self.sessions.values():
            session.language = language
        self.save()
        return language

    def toggle_language(self) -> str:
        return self.set_language("zh" if self.state.language == "en" else "en")

    def speak(self, text: str) -> bytes:
        """Raw PCM speech for `text`; raises `UnsupportedOperationError` for providers without TTS."""
        return self.gateway.synthesize_speech(text)

    def reset_all(self) -> None:
        """Wipe every persisted key and the folder handle, then start from defaults."""
        for session in self.sessions.values():
            session.cancel()
        self.repository.clear()
        self.state = self.repository.load()
        self.pipeline.artifacts = self.state.artifacts
        self.quiz_attempt = None
        self._bind_sessions()
        self.navigate(AppMode.DASHBOARD)
