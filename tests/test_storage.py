"""Tests for the key-value store, folder handle, folder sink and state repository."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from rust_mentor.data_models import Artifact, ChatMode, Message
from rust_mentor.storage import FolderSink, HandleStore, KeyValueStore, StateRepository, WriteOutcome
from rust_mentor.storage.state import ARTIFACTS_KEY, PROGRESS_KEY, chat_history_key


@pytest.fixture
def store(tmp_path):
    return KeyValueStore(tmp_path / "state.json")


def test_store_persists_across_instances(tmp_path, store):
    store.set("rust_mentor_lang", "zh")
    store.set_json("rust_auto_sync", True)
    reopened = KeyValueStore(tmp_path / "state.json")
    assert reopened.get("rust_mentor_lang") == "zh"
    assert reopened.get_json("rust_auto_sync") is True
    assert sorted(reopened.keys()) == ["rust_auto_sync", "rust_mentor_lang"]


def test_store_remove_and_clear(store):
    store.set("a", "1")
    store.set("b", "2")
    store.remove("a")
    store.remove("missing")
    assert store.get("a") is None
    store.clear()
    assert store.keys() == []


def test_corrupt_file_is_treated_as_empty(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")
    store = KeyValueStore(path)
    assert store.keys() == []
    store.set("a", "1")
    assert json.loads(path.read_text(encoding="utf-8")) == {"a": "1"}


def test_corrupt_value_yields_default(store):
    store.set("rust_user_progress", "{broken")
    assert store.get_json("rust_user_progress", default={"x": 1}) == {"x": 1}


def test_handle_store_round_trip(tmp_path):
    handles = HandleStore(tmp_path / "handles.json")
    assert handles.get() is None
    handles.save(tmp_path / "notes")
    assert handles.get() == (tmp_path / "notes").resolve()
    handles.clear()
    assert handles.get() is None


def test_handle_store_unreadable_file_yields_none(tmp_path):
    path = tmp_path / "handles.json"
    path.write_text("garbage", encoding="utf-8")
    assert HandleStore(path).get() is None


def test_folder_sink_creates_folder_and_writes(tmp_path):
    sink = FolderSink(tmp_path / "vault")
    assert sink.write("note.md", "# hi") is WriteOutcome.SUCCESS
    assert (tmp_path / "vault" / "note.md").read_text(encoding="utf-8") == "# hi"


def test_folder_sink_refused_permission_is_denied(tmp_path):
    prompts = []

    def refuse(folder: Path) -> bool:
        prompts.append(folder)
        return False

    sink = FolderSink(tmp_path / "missing", request_permission=refuse)
    assert sink.write("note.md", "x") is WriteOutcome.DENIED
    assert prompts == [tmp_path / "missing"]


def test_folder_sink_os_error_is_reported(tmp_path):
    sink = FolderSink(tmp_path)
    (tmp_path / "note.md").mkdir()
    assert sink.write("note.md", "x") is WriteOutcome.ERROR


def test_repository_round_trip(tmp_path):
    repository = StateRepository(KeyValueStore(tmp_path / "s.json"), HandleStore(tmp_path / "h.json"))
    state = repository.load()
    state.language = "zh"
    state.auto_speak = True
    state.llm.provider = "claude"
    state.gist.gist_id = "abc"
    state.progress.completed_chapters.update({0, 1})
    state.progress.current_chapter_index = 2
    state.custom_topics = ["One", "Two", "Three"]
    state.artifacts.append(Artifact(id="1", title="T", date="2024-01-01", content="c", tags=["Rust"]))
    state.histories[ChatMode.FEYNMAN].append(Message(role="user", text="explain"))
    repository.save(state)

    loaded = StateRepository(KeyValueStore(tmp_path / "s.json"), HandleStore(tmp_path / "h.json")).load()
    assert loaded.language == "zh"
    assert loaded.auto_speak is True
    assert loaded.llm.provider == "claude"
    assert loaded.gist.gist_id == "abc"
    assert loaded.progress.completed_chapters == {0, 1}
    assert loaded.custom_topics == ["One", "Two", "Three"]
    assert loaded.artifacts[0].title == "T"
    assert loaded.histories[ChatMode.FEYNMAN][0].text == "explain"
    assert loaded.histories[ChatMode.COACH] == []


def test_corrupt_key_leaves_others_readable(tmp_path):
    store = KeyValueStore(tmp_path / "s.json")
    store.set(PROGRESS_KEY, "{oops")
    store.set(ARTIFACTS_KEY, json.dumps([{"id": "1"}]))
    store.set(chat_history_key(ChatMode.COACH), json.dumps([{"role": "user", "text": "hi"}]))
    store.set("rust_mentor_lang", "zh")

    state = StateRepository(store, HandleStore(tmp_path / "h.json")).load()
    assert state.progress.current_chapter_index == 0
    assert state.artifacts == []
    assert state.histories[ChatMode.COACH][0].text == "hi"
    assert state.language == "zh"


def test_unknown_language_falls_back_to_default(tmp_path):
    store = KeyValueStore(tmp_path / "s.json")
    store.set("rust_mentor_lang", "fr")
    state = StateRepository(store, HandleStore(tmp_path / "h.json"), default_language="zh").load()
    assert state.language == "zh"


def test_clear_wipes_store_and_handle(tmp_path):
    handles = HandleStore(tmp_path / "h.json")
    handles.save(tmp_path)
    store = KeyValueStore(tmp_path / "s.json")
    store.set("rust_mentor_lang", "zh")
    StateRepository(store, handles).clear()
    assert store.keys() == []
    assert handles.get() is None
