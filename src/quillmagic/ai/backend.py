"""Backend gateway contract and its OpenAI-compatible implementation."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol, Sequence, runtime_checkable

import httpx
from openai import APIConnectionError, APIError, APIStatusError, APITimeoutError

from ..chat.session import ChatSession
from .client import AIClient

__all__ = ["Backend", "BackendError", "OpenAIBackend", "describe_error"]

LOGGER = logging.getLogger(__name__)


class BackendError(RuntimeError):
    """Failure reported by a backend, carrying a message fit for the user."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@runtime_checkable
class Backend(Protocol):
    """Capability interface every text-generation backend implements."""

    async def complete(self, lines: Sequence[str], max_tokens: int, stops: Sequence[str] | None) -> str:
        ...

    async def chat(self, message: str, max_tokens: int) -> str:
        ...

    def get_chat_length(self) -> int:
        ...

    def set_chat_buffer(self, document_id: str) -> None:
        ...

    def get_chat_buffer(self) -> str | None:
        ...

    def reset_chat(self) -> None:
        ...


def describe_error(exc: BaseException) -> str:
    """Turn transport exceptions into one-line, human readable messages."""

    if isinstance(exc, APITimeoutError) or isinstance(exc, httpx.TimeoutException):
        return "request to backend timed out"
    if isinstance(exc, APIStatusError):
        return f"backend returned HTTP {exc.status_code}: {exc.message}"
    if isinstance(exc, APIConnectionError):
        return f"could not reach backend: {exc.message}"
    if isinstance(exc, APIError):
        return f"backend error: {exc.message}"
    return f"backend error: {exc}"


class OpenAIBackend:
    """:class:`Backend` backed by :class:`AIClient`.

    The backend owns the process-wide :class:`ChatSession`; the conversation
    history sent with each chat request is the session's history.
    """

    def __init__(self, client: AIClient, session: ChatSession, *, system_prompt: str | None = None) -> None:
        self._client = client
        self._session = session
        self._system_prompt = system_prompt
        self._chat_lock = asyncio.Lock()

    @property
    def session(self) -> ChatSession:
        return self._session

    async def complete(self, lines: Sequence[str], max_tokens: int, stops: Sequence[str] | None) -> str:
        try:
            return await self._client.complete_text("\n".join(lines), max_tokens=max_tokens, stops=stops)
        except (APIError, httpx.HTTPError) as exc:
            LOGGER.warning("Completion request failed: %s", exc)
            raise BackendError(describe_error(exc)) from exc

    async def chat(self, message: str, max_tokens: int) -> str:
        generation = self._session.generation
        async with self._chat_lock:
            messages = []
            if self._system_prompt:
                messages.append({"role": "system", "content": self._system_prompt})
            messages.extend(entry.as_param() for entry in self._session.history)
            messages.append({"role": "user", "content": message})
            try:
                reply = await self._client.chat(messages, max_tokens=max_tokens)
            except (APIError, httpx.HTTPError) as exc:
                LOGGER.warning("Chat request failed: %s", exc)
                raise BackendError(describe_error(exc)) from exc
            if self._session.generation != generation:
                LOGGER.debug("Chat session was reset while a request was in flight; not recording turn")
            elif self._session.bound_document is None:
                LOGGER.debug("Chat session is unbound; not recording turn")
            else:
                self._session.record_turn(message, reply)
            return reply

    def get_chat_length(self) -> int:
        return self._session.turn_count

    def set_chat_buffer(self, document_id: str) -> None:
        self._session.bind(document_id)

    def get_chat_buffer(self) -> str | None:
        return self._session.bound_document

    def reset_chat(self) -> None:
        self._session.reset()

    async def aclose(self) -> None:
        await self._client.aclose()
