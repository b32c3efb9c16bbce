"""Tests for the chat session state machine."""

from __future__ import annotations

import pytest

from quillmagic.chat.message_model import ChatMessage
from quillmagic.chat.session import ChatSession, ChatSessionError, ChatState


def test_new_session_is_unbound() -> None:
    session = ChatSession()

    assert session.state is ChatState.UNBOUND
    assert session.turn_count == 0
    assert session.bound_document is None


def test_bind_then_record_turns() -> None:
    session = ChatSession()
    session.bind("doc-a")

    assert session.record_turn("why?", "because") == 1
    assert session.record_turn("and?", "then") == 2
    assert session.state is ChatState.BOUND
    assert [message.role for message in session.history] == ["user", "assistant", "user", "assistant"]


def test_rebinding_allowed_only_before_first_turn() -> None:
    session = ChatSession()
    session.bind("doc-a")
    session.bind("doc-b")
    assert session.bound_document == "doc-b"

    session.record_turn("q", "a")
    session.bind("doc-b")
    with pytest.raises(ChatSessionError):
        session.bind("doc-a")


def test_record_turn_requires_binding() -> None:
    with pytest.raises(ChatSessionError):
        ChatSession().record_turn("q", "a")


def test_reset_is_idempotent() -> None:
    session = ChatSession()
    session.bind("doc-a")
    session.record_turn("q", "a")

    session.reset()
    session.reset()

    assert session.state is ChatState.UNBOUND
    assert session.turn_count == 0
    assert session.history == []


def test_chat_message_as_param() -> None:
    message = ChatMessage(role="user", content="hello")

    assert message.as_param() == {"role": "user", "content": "hello"}


def test_reset_starts_new_generation() -> None:
    session = ChatSession()
    start = session.generation

    session.reset()
    session.reset()

    assert session.generation == start + 2
