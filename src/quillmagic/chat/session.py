"""Multi-turn chat session bound to a transcript document."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from .message_model import ChatMessage

__all__ = ["ChatSession", "ChatSessionError", "ChatState"]

LOGGER = logging.getLogger(__name__)


class ChatState(str, Enum):
    UNBOUND = "unbound"
    BOUND = "bound"


class ChatSessionError(RuntimeError):
    """Raised when a transition would break the single-transcript guarantee."""


@dataclass(slots=True)
class ChatSession:
    """Tracks which document holds the transcript and how many turns completed.

    The application builds exactly one session for its lifetime. A session
    binds to the document a chat is first started from and keeps that binding
    until :meth:`reset`, so answers always accumulate in one place.
    """

    bound_document: str | None = None
    turn_count: int = 0
    history: list[ChatMessage] = field(default_factory=list)
    generation: int = 0

    @property
    def state(self) -> ChatState:
        return ChatState.BOUND if self.bound_document is not None else ChatState.UNBOUND

    def bind(self, document_id: str) -> None:
        """Attach the transcript to ``document_id``.

        Rebinding is allowed only while no turn has completed yet.
        """

        if self.turn_count > 0 and document_id != self.bound_document:
            raise ChatSessionError(
                f"Chat already bound to {self.bound_document} after {self.turn_count} turn(s)"
            )
        if document_id != self.bound_document:
            LOGGER.debug("Binding chat transcript to document %s", document_id)
        self.bound_document = document_id

    def record_turn(self, question: str, answer: str) -> int:
        """Store a completed exchange and return the new turn count."""

        if self.bound_document is None:
            raise ChatSessionError("Cannot record a chat turn before a transcript is bound")
        self.history.append(ChatMessage(role="user", content=question))
        self.history.append(ChatMessage(role="assistant", content=answer))
        self.turn_count += 1
        return self.turn_count

    def reset(self) -> None:
        """Forget the binding and the conversation.

        Repeated resets leave the same unbound state. Each reset starts a new
        generation, so replies still in flight are not recorded afterwards.
        """

        if self.state is ChatState.BOUND or self.history:
            LOGGER.debug("Resetting chat session after %s turn(s)", self.turn_count)
        self.bound_document = None
        self.turn_count = 0
        self.history.clear()
        self.generation += 1
