from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from rust_mentor.data_models import Artifact, ChatMode, GistConfig, Message, ProviderConfig
from rust_mentor.learning.curriculum import normalize_topics
from rust_mentor.learning.models import UserProgress
from rust_mentor.storage.handle_store import HandleStore
from rust_mentor.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

LLM_CONFIG_KEY = "rust_llm_config"
GIST_CONFIG_KEY = "rust_gist_config"
PROGRESS_KEY = "rust_user_progress"
CUSTOM_TOPICS_KEY = "rust_custom_topics"
ARTIFACTS_KEY = "rust_artifacts"
LANGUAGE_KEY = "rust_mentor_lang"
AUTO_SYNC_KEY = "rust_auto_sync"
AUTO_SPEAK_KEY = "rust_auto_speak"
CHAT_HISTORY_PREFIX = "rust_chat_history_"

ModelT = TypeVar("ModelT", bound=BaseModel)


def chat_history_key(mode: ChatMode) -> str:
    return f"{CHAT_HISTORY_PREFIX}{mode.value}"


@dataclass
class MentorState:
    """Everything the mentor remembers between runs."""

    language: str = "en"
    llm: ProviderConfig = field(default_factory=ProviderConfig)
    gist: GistConfig = field(default_factory=GistConfig)
    auto_sync: bool = False
    auto_speak: bool = False
    progress: UserProgress = field(default_factory=UserProgress)
    custom_topics: Optional[List[str]] = None
    artifacts: List[Artifact] = field(default_factory=list)
    histories: Dict[ChatMode, List[Message]] = field(
        default_factory=lambda: {mode: [] for mode in ChatMode}
    )


class StateRepository:
    """
    Maps `MentorState` onto the persisted keys.

    Each key is decoded on its own: a corrupt or schema-invalid value is logged and
    replaced by that field's default while every other key still loads.
    """

    def __init__(self, store: KeyValueStore, handles: HandleStore, default_language: str = "en"):
        self.store = store
        self.handles = handles
        self.default_language = default_language

    def _decode(self, key: str, parse: Callable[[Any], Any], default: Any) -> Any:
        raw = self.store.get_json(key)
        if raw is None:
            return default
        try:
            return parse(raw)
        except (ValidationError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Discarding invalid value for %s: %s", key, exc)
            return default

    def _model(self, key: str, model: Type[ModelT]) -> ModelT:
        return self._decode(key, model.model_validate, model())

    def load(self) -> MentorState:
        language = self.store.get(LANGUAGE_KEY)
        if language not in ("en", "zh"):
            language = self.default_language
        state = MentorState(
            language=language,
            llm=self._model(LLM_CONFIG_KEY, ProviderConfig),
            gist=self._model(GIST_CONFIG_KEY, GistConfig),
            auto_sync=self._decode(AUTO_SYNC_KEY, bool, False),
            auto_speak=self._decode(AUTO_SPEAK_KEY, bool, False),
            progress=self._decode(PROGRESS_KEY, UserProgress.from_dict, UserProgress()),
            custom_topics=self._decode(CUSTOM_TOPICS_KEY, lambda raw: normalize_topics(raw) or None, None),
            artifacts=self._decode(
                ARTIFACTS_KEY, lambda raw: [Artifact.model_validate(item) for item in raw], []
            ),
        )
        for mode in ChatMode:
            state.histories[mode] = self._decode(
                chat_history_key(mode), lambda raw: [Message.model_validate(item) for item in raw], []
            )
        logger.info(
            "Loaded state: %d artifacts, chapter %d, %d custom topics",
            len(state.artifacts),
            state.progress.current_chapter_index,
            len(state.custom_topics or []),
        )
        return state

    def save(self, state: MentorState) -> None:
        self.store.set(LANGUAGE_KEY, state.language)
        self.store.set_json(LLM_CONFIG_KEY, state.llm.model_dump())
        self.store.set_json(GIST_CONFIG_KEY, state.gist.model_dump())
        self.store.set_json(AUTO_SYNC_KEY, state.auto_sync)
        self.store.set_json(AUTO_SPEAK_KEY, state.auto_speak)
        self.store.set_json(PROGRESS_KEY, state.progress.to_dict())
        if state.custom_topics:
            self.store.set_json(CUSTOM_TOPICS_KEY, state.custom_topics)
        else:
            self.store.remove(CUSTOM_TOPICS_KEY)
        self.store.set_json(ARTIFACTS_KEY, [artifact.model_dump() for artifact in state.artifacts])
        for mode, messages in state.histories.items():
            self.store.set_json(chat_history_key(mode), [message.model_dump(mode="json") for message in messages])

    def clear(self) -> None:
        """Forget everything, including the granted sync folder."""
        self.store.clear()
        self.handles.clear()
        logger.info("Cleared all persisted state")
