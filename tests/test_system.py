"""End-to-end scenarios through the MentorSystem facade with a scripted provider."""

from __future__ import annotations

import json
from unittest import mock

import pytest

from rust_mentor.data_models import ChatMode
from rust_mentor.errors import ChapterIndexError, StructuredOutputError
from rust_mentor.learning import QuizStatus, default_topics
from rust_mentor.storage import KeyValueStore, StateRepository, WriteOutcome
from rust_mentor.system import AppMode, MentorSystem


def _pass_current_chapter(system, backend, make_quiz_payload):
    backend.completions.append(json.dumps(make_quiz_payload(3, correct_index=2)))
    attempt = system.start_quiz()
    assert attempt.status is QuizStatus.PRESENTED
    return system.submit_quiz([2, 2, 2])


def test_two_perfect_quizzes_advance_and_cover(system, backend, make_quiz_payload):
    count = len(default_topics("en"))
    assert _pass_current_chapter(system, backend, make_quiz_payload).passed
    assert _pass_current_chapter(system, backend, make_quiz_payload).passed

    summary = system.dashboard()
    assert summary["current_chapter_index"] == 2
    assert summary["completed_chapters"] == [0, 1]
    assert summary["coverage_percent"] == round(200 / count)
    assert system.mode is AppMode.DASHBOARD


def test_imperfect_quiz_leaves_progress_untouched(system, backend, make_quiz_payload):
    backend.completions.append(json.dumps(make_quiz_payload(3, correct_index=2)))
    system.start_quiz()
    evaluation = system.submit_quiz([2, 2, 1])

    assert not evaluation.passed
    assert system.state.progress.current_chapter_index == 0
    assert system.state.progress.completed_chapters == set()
    assert system.mode is AppMode.QUIZ


def test_quiz_generation_failure_then_retry(system, backend, make_quiz_payload):
    backend.completions.append("I cannot make a quiz right now.")
    attempt = system.start_quiz()
    assert attempt.status is QuizStatus.FAILED

    backend.completions.append(json.dumps(make_quiz_payload(3)))
    assert system.retry_quiz().status is QuizStatus.PRESENTED


def test_switching_chapter_discards_the_open_quiz(system, backend, make_quiz_payload):
    backend.completions.append(json.dumps(make_quiz_payload(3, correct_index=2)))
    system.start_quiz()
    system.start_chapter(5)

    assert system.quiz_attempt is None
    with pytest.raises(RuntimeError):
        system.submit_quiz([2, 2, 2])
    assert system.state.progress.completed_chapters == set()
    assert system.state.progress.current_chapter_index == 5


def test_quiz_for_a_stale_chapter_cannot_complete_another(system, backend, make_quiz_payload):
    backend.completions.append(json.dumps(make_quiz_payload(3, correct_index=2)))
    attempt = system.start_quiz()
    assert attempt.chapter_index == 0
    system.state.progress.current_chapter_index = 4

    with pytest.raises(RuntimeError):
        system.submit_quiz([2, 2, 2])
    assert system.state.progress.completed_chapters == set()

    backend.completions.append(json.dumps(make_quiz_payload(3)))
    fresh = system.retry_quiz()
    assert fresh is not attempt
    assert fresh.chapter_index == 4
    assert fresh.chapter_title == system.topics[4]


def test_upload_resets_progress_and_histories(system, backend, make_quiz_payload):
    _pass_current_chapter(system, backend, make_quiz_payload)
    system.send_message(ChatMode.COACH, "hello")
    backend.document_reply = json.dumps(["A", "B", "C"])

    topics = system.upload_curriculum(b"%PDF-1.7", "application/pdf")

    assert topics == ["A", "B", "C"]
    summary = system.dashboard()
    assert summary["topics"] == ["A", "B", "C"]
    assert summary["coverage_percent"] == 0
    assert summary["current_chapter_index"] == 0
    assert summary["completed_chapters"] == []
    assert system.history(ChatMode.COACH) == []


def test_failed_upload_changes_nothing(system, backend):
    system.send_message(ChatMode.COACH, "hello")
    backend.document_reply = "[]"
    with pytest.raises(StructuredOutputError):
        system.upload_curriculum(b"%PDF", "application/pdf")
    assert system.state.custom_topics is None
    assert len(system.history(ChatMode.COACH)) == 2


def test_reset_curriculum_restores_default(system, backend):
    backend.document_reply = json.dumps(["A"])
    system.upload_curriculum(b"%PDF", "application/pdf")
    assert system.reset_curriculum() == default_topics("en")
    assert system.state.custom_topics is None


def test_chat_stream_scenario(system, backend):
    backend.chunks = ["Hello", " world"]
    system.send_message(ChatMode.COACH, "first")
    first_reply = system.history(ChatMode.COACH)[1].text

    backend.chunks = ["Hello", " again"]
    system.send_message(ChatMode.COACH, "second")
    history = system.history(ChatMode.COACH)

    assert first_reply == "Hello world"
    assert [message.text for message in history] == ["first", "Hello world", "second", "Hello again"]


def test_first_message_counts_a_session(system, backend):
    system.send_message(ChatMode.FEYNMAN, "ownership is...")
    system.send_message(ChatMode.FEYNMAN, "and borrowing...")
    system.send_message(ChatMode.COACH, "question")
    assert system.state.progress.total_sessions == 2


def test_chat_uses_current_chapter_focus(system, backend):
    system.start_chapter(3)
    system.send_message(ChatMode.COACH, "go")
    assert default_topics("en")[3] in backend.calls[-1]["system"]
    assert system.mode is AppMode.LEARN


def test_start_chapter_out_of_range(system):
    with pytest.raises(ChapterIndexError):
        system.start_chapter(99)


def test_state_survives_restart(system, settings, repository, registry, backend):
    system.send_message(ChatMode.COACH, "persist me")
    system.set_language("zh")
    system.update_llm_config(provider="openai", model="gpt-test", api_key="sk-1")

    repository_again = StateRepository(KeyValueStore(settings.paths.state_file), repository.handles)
    reloaded = MentorSystem(settings, repository_again, registry=registry)
    assert reloaded.history(ChatMode.COACH)[0].text == "persist me"
    assert reloaded.state.language == "zh"
    assert reloaded.state.llm.model == "gpt-test"
    assert reloaded.topics == default_topics("zh")


def test_switching_provider_drops_old_credentials(system):
    system.update_llm_config(model="gemini-custom", api_key="g-key")
    config = system.update_llm_config(provider="claude")
    assert config.model == ""
    assert config.api_key == ""
    with pytest.raises(ValueError):
        system.update_llm_config(provider="nope")


def test_navigation_cancels_chat_in_flight(system):
    system.navigate(AppMode.LEARN)
    session = system.sessions[ChatMode.COACH]
    token = mock.MagicMock()
    session.cancel_token = token
    system.navigate(AppMode.SETTINGS)
    token.cancel.assert_called_once()


def test_artifact_with_auto_sync_and_gist(settings, repository, registry, tmp_path, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "k")
    session = mock.MagicMock()
    response = mock.MagicMock(status_code=201)
    response.json.return_value = {"id": "g9", "html_url": "https://gist.github.com/g9"}
    session.request.return_value = response
    system = MentorSystem(settings, repository, registry=registry, gist_session=session)

    assert system.set_sync_folder(tmp_path / "vault")
    system.set_auto_sync(True)
    system.configure_gist(token="ghp", enabled=True)
    system.send_message(ChatMode.FEYNMAN, "Ownership means one owner.")

    result = system.generate_artifact(ChatMode.FEYNMAN)

    assert result.local is WriteOutcome.SUCCESS
    assert result.cloud is WriteOutcome.SUCCESS
    assert system.state.gist.gist_id == "g9"
    assert len(list((tmp_path / "vault").iterdir())) == 1
    reloaded = repository.load()
    assert reloaded.artifacts[0].remote_url == "https://gist.github.com/g9"
    assert reloaded.gist.gist_id == "g9"


def test_artifact_needs_two_messages(system, backend):
    assert system.generate_artifact(ChatMode.COACH) is None
    assert backend.calls == []


def test_sync_all_requires_folder(system):
    with pytest.raises(ValueError):
        system.sync_all_artifacts()


def test_speak_and_language_toggle(system, backend):
    assert system.speak("hi") == backend.speech
    assert system.toggle_language() == "zh"
    assert system.sessions[ChatMode.COACH].language == "zh"
    assert system.toggle_language() == "en"


def test_reset_all_clears_everything(system, backend, tmp_path):
    system.send_message(ChatMode.COACH, "hi")
    system.set_sync_folder(tmp_path)
    system.set_auto_speak(True)
    system.reset_all()

    assert system.history(ChatMode.COACH) == []
    assert system.sync_folder is None
    assert system.state.auto_speak is False
    assert system.state.progress.total_sessions == 0
    system.send_message(ChatMode.COACH, "after reset")
    assert system.history(ChatMode.COACH)[0].text == "after reset"
