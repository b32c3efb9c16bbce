"""Shared test helpers and stub classes.

Import from here instead of redefining fakes in individual test files.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Sequence

from quillmagic.ai.backend import BackendError
from quillmagic.chat.session import ChatSession
from quillmagic.flows.interfaces import ResultAction

Reply = str | BackendError | asyncio.Future


class FakeBackend:
    """In-memory :class:`Backend` whose replies are queued by the test.

    A queued ``asyncio.Future`` lets a test hold a call in flight and resolve
    it later to control completion order.
    """

    def __init__(self, session: ChatSession | None = None) -> None:
        self.session = session or ChatSession()
        self.complete_calls: list[tuple[list[str], int, tuple[str, ...] | None]] = []
        self.chat_calls: list[tuple[str, int]] = []
        self.complete_replies: list[Reply] = []
        self.chat_replies: list[Reply] = []

    async def complete(self, lines: Sequence[str], max_tokens: int, stops: Sequence[str] | None) -> str:
        self.complete_calls.append((list(lines), max_tokens, tuple(stops) if stops else None))
        return await self._resolve(self.complete_replies)

    async def chat(self, message: str, max_tokens: int) -> str:
        self.chat_calls.append((message, max_tokens))
        generation = self.session.generation
        reply = await self._resolve(self.chat_replies)
        if self.session.generation == generation:
            self.session.record_turn(message, reply)
        return reply

    def get_chat_length(self) -> int:
        return self.session.turn_count

    def set_chat_buffer(self, document_id: str) -> None:
        self.session.bind(document_id)

    def get_chat_buffer(self) -> str | None:
        return self.session.bound_document

    def reset_chat(self) -> None:
        self.session.reset()

    @staticmethod
    async def _resolve(queue: list[Reply]) -> str:
        reply = queue.pop(0) if queue else ""
        if isinstance(reply, asyncio.Future):
            reply = await reply
        if isinstance(reply, BackendError):
            raise reply
        return reply


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def notify(self, message: str, level: str = "info") -> None:
        self.events.append((message, level))

    @property
    def messages(self) -> list[str]:
        return [message for message, _ in self.events]


class ScriptedPrompter:
    """Answers prompts from a list; ``None`` entries simulate cancellation."""

    def __init__(self, *answers: str | None) -> None:
        self.answers = list(answers)
        self.labels: list[str] = []

    async def ask(self, label: str) -> str | None:
        self.labels.append(label)
        return self.answers.pop(0) if self.answers else None


@dataclass
class FakeResultSurface:
    lines: list[str]
    language: str
    title: str
    footer: str
    actions: dict[str, ResultAction] = field(default_factory=dict)
    closed: bool = False

    def close(self) -> None:
        self.closed = True

    def press(self, key: str) -> None:
        self.actions[key].callback(self)


class FakeResultSurfaceFactory:
    def __init__(self) -> None:
        self.opened: list[FakeResultSurface] = []

    def open(
        self,
        lines: Sequence[str],
        language: str,
        *,
        title: str,
        footer: str,
        actions: Sequence[ResultAction],
    ) -> FakeResultSurface:
        surface = FakeResultSurface(
            lines=list(lines),
            language=language,
            title=title,
            footer=footer,
            actions={action.key: action for action in actions},
        )
        self.opened.append(surface)
        return surface


class StubAIClient:
    """Stand-in for :class:`quillmagic.ai.client.AIClient` recording its calls."""

    def __init__(self, *, reply: str = "", error: BaseException | None = None) -> None:
        self.reply = reply
        self.error = error
        self.complete_calls: list[dict[str, Any]] = []
        self.chat_calls: list[dict[str, Any]] = []
        self.closed = False

    async def complete_text(self, prompt: str, *, max_tokens: int, stops: Sequence[str] | None = None) -> str:
        self.complete_calls.append({"prompt": prompt, "max_tokens": max_tokens, "stops": stops})
        if self.error is not None:
            raise self.error
        return self.reply

    async def chat(self, messages: Sequence[dict[str, Any]], *, max_tokens: int, stops: Any = None) -> str:
        self.chat_calls.append({"messages": [dict(item) for item in messages], "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        return self.reply

    async def aclose(self) -> None:
        self.closed = True
