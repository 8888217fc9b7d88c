"""Tests for the streaming chat session engine."""

from __future__ import annotations

import pytest

from rust_mentor.chat import ChatSession
from rust_mentor.config.schema import ModelConfig
from rust_mentor.data_models import ChatMode, Message, ProviderConfig
from rust_mentor.errors import SessionBusyError
from rust_mentor.llm import CancellationToken, LLMGateway
from rust_mentor.prompts import build_system_instruction, localized


@pytest.fixture
def gateway(registry):
    return LLMGateway(ModelConfig(), lambda: ProviderConfig(api_key="test-key"), registry=registry)


@pytest.fixture
def session(gateway):
    return ChatSession(ChatMode.COACH, gateway, language="en")


def test_send_streams_deltas_into_trailing_model_message(session, backend):
    deltas = []
    reply = session.send("What is a move?", chapter_title="Understanding Ownership", on_delta=deltas.append)

    assert deltas == ["Ownership ", "moves ", "values."]
    assert reply.text == "Ownership moves values."
    assert [message.role for message in session.messages] == ["user", "model"]
    assert session.messages[-1] is reply
    assert not session.in_flight

    call = backend.calls[-1]
    assert [message.text for message in call["messages"]] == ["What is a move?"]
    assert 'CURRENT CHAPTER FOCUS: "Understanding Ownership"' in call["system"]


def test_blank_text_is_ignored(session, backend):
    assert session.send("   ") is None
    assert session.messages == []
    assert backend.calls == []


def test_history_excludes_system_notes(session, backend):
    session.messages.extend(
        [
            Message(role="user", text="hi"),
            Message(role="system", text="Error connecting to mentor."),
        ]
    )
    session.send("again")
    sent = backend.calls[-1]["messages"]
    assert [message.role for message in sent] == ["user", "user"]


def test_failure_keeps_partial_text_and_appends_one_system_note(session, backend):
    backend.fail_after = 2
    reply = session.send("Explain borrowing")

    assert reply.text == "Ownership moves "
    roles = [message.role for message in session.messages]
    assert roles == ["user", "model", "system"]
    assert session.messages[-1].text == localized("en", "chat_error")
    assert not session.in_flight


def test_failure_before_any_text_leaves_no_empty_reply(session, backend):
    backend.fail_after = 0
    session.language = "zh"
    session.send("hello")
    assert [message.role for message in session.messages] == ["user", "system"]
    assert session.messages[-1].text == localized("zh", "chat_error")


def test_cancelled_stream_stops_applying_chunks(session):
    token = CancellationToken()
    received = []

    def on_delta(delta):
        received.append(delta)
        token.cancel()

    reply = session.send("Tell me about lifetimes", cancel_token=token, on_delta=on_delta)
    assert received == ["Ownership "]
    assert reply.text == "Ownership "
    assert session.messages[-1].role == "model"
    assert not session.in_flight


def test_cancel_before_first_chunk_leaves_no_empty_reply(session, backend):
    token = CancellationToken()
    token.cancel()
    reply = session.send("hi", cancel_token=token)

    assert reply.text == ""
    assert [(message.role, message.text) for message in session.messages] == [("user", "hi")]

    session.send("again")
    sent = backend.calls[-1]["messages"]
    assert [(message.role, message.text) for message in sent] == [("user", "hi"), ("user", "again")]


def test_saved_empty_reply_is_not_sent_to_provider(session, backend):
    session.messages.extend([Message(role="user", text="hi"), Message(role="model", text="")])
    session.send("again")
    sent = backend.calls[-1]["messages"]
    assert [message.text for message in sent] == ["hi", "again"]


def test_send_while_in_flight_is_rejected(session):
    session.in_flight = True
    with pytest.raises(SessionBusyError):
        session.send("second message")
    assert session.messages == []


def test_modes_use_distinct_instructions():
    feynman = build_system_instruction("en", ChatMode.FEYNMAN)
    coach = build_system_instruction("zh", ChatMode.COACH, "Traits")
    assert "critique" in feynman
    assert "CURRENT CHAPTER FOCUS" not in feynman
    assert "Chinese" in coach
    assert '"Traits"' in coach


def test_clear_empties_the_log(session):
    session.send("hi")
    session.clear()
    assert session.messages == []
