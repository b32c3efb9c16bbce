"""Tests for the OpenAI-compatible AI client."""

from __future__ import annotations

import logging
from types import SimpleNamespace
from typing import Any, cast

import httpx
import pytest
from openai import APIConnectionError, AsyncOpenAI

from quillmagic.ai.client import AIClient, ClientSettings

_REQUEST = httpx.Request("POST", "http://local/v1/chat/completions")


class _FakeCreate:
    def __init__(self, responses: list[Any]) -> None:
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


def _chat_response(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _make_client(chat: list[Any] | None = None, text: list[Any] | None = None) -> SimpleNamespace:
    closed: list[bool] = []

    async def close() -> None:
        closed.append(True)

    return SimpleNamespace(
        chat=SimpleNamespace(completions=_FakeCreate(chat or [])),
        completions=_FakeCreate(text or []),
        close=close,
        closed=closed,
    )


def _settings(**overrides: Any) -> ClientSettings:
    values: dict[str, Any] = {
        "base_url": "http://local",
        "api_key": "test",
        "model": "stub-model",
        "retry_min_seconds": 0,
        "retry_max_seconds": 0,
    }
    values.update(overrides)
    return ClientSettings(**values)


@pytest.mark.asyncio
async def test_complete_text_uses_chat_endpoint_by_default() -> None:
    fake = _make_client(chat=[_chat_response("    return 1")])
    client = AIClient(_settings(), client=cast(AsyncOpenAI, fake))

    text = await client.complete_text("def f():", max_tokens=50, stops=["```"])

    assert text == "    return 1"
    payload = fake.chat.completions.calls[0]
    assert payload["model"] == "stub-model"
    assert payload["max_tokens"] == 50
    assert payload["stop"] == ["```"]
    assert payload["temperature"] == 0.2
    assert [message["role"] for message in payload["messages"]] == ["system", "user"]
    assert payload["messages"][1]["content"] == "def f():"


@pytest.mark.asyncio
async def test_complete_text_can_target_legacy_completions() -> None:
    fake = _make_client(text=[SimpleNamespace(choices=[SimpleNamespace(text=" world")])])
    client = AIClient(_settings(completion_endpoint="text", temperature=None), client=cast(AsyncOpenAI, fake))

    text = await client.complete_text("hello", max_tokens=5)

    assert text == " world"
    assert fake.completions.calls == [{"model": "stub-model", "prompt": "hello", "max_tokens": 5}]


@pytest.mark.asyncio
async def test_chat_returns_empty_string_for_missing_content() -> None:
    fake = _make_client(chat=[_chat_response(None)])
    client = AIClient(_settings(), client=cast(AsyncOpenAI, fake))

    assert await client.chat([{"role": "user", "content": "hi"}], max_tokens=10) == ""


@pytest.mark.asyncio
async def test_chat_requires_messages() -> None:
    client = AIClient(_settings(), client=cast(AsyncOpenAI, _make_client()))

    with pytest.raises(ValueError):
        await client.chat([], max_tokens=10)


@pytest.mark.asyncio
async def test_transient_errors_are_retried() -> None:
    fake = _make_client(chat=[APIConnectionError(request=_REQUEST), _chat_response("ok")])
    client = AIClient(_settings(max_retries=2), client=cast(AsyncOpenAI, fake))

    assert await client.chat([{"role": "user", "content": "hi"}], max_tokens=10) == "ok"
    assert len(fake.chat.completions.calls) == 2


@pytest.mark.asyncio
async def test_retries_give_up_and_reraise() -> None:
    errors = [APIConnectionError(request=_REQUEST), APIConnectionError(request=_REQUEST)]
    fake = _make_client(chat=errors)
    client = AIClient(_settings(max_retries=2), client=cast(AsyncOpenAI, fake))

    with pytest.raises(APIConnectionError):
        await client.chat([{"role": "user", "content": "hi"}], max_tokens=10)


@pytest.mark.asyncio
async def test_debug_logging_captures_prompt_payload(caplog: pytest.LogCaptureFixture) -> None:
    fake = _make_client(chat=[_chat_response("ok")])
    client = AIClient(_settings(debug_logging=True, metadata={"feature": "chat"}), client=cast(AsyncOpenAI, fake))

    with caplog.at_level(logging.DEBUG, logger="quillmagic.ai.client"):
        await client.chat([{"role": "user", "content": "secret sauce"}], max_tokens=10)

    assert "AI prompt payload" in caplog.text
    assert "secret sauce" in caplog.text
    assert fake.chat.completions.calls[0]["metadata"] == {"feature": "chat"}


@pytest.mark.asyncio
async def test_aclose_closes_underlying_client() -> None:
    fake = _make_client()
    client = AIClient(_settings(), client=cast(AsyncOpenAI, fake))

    await client.aclose()

    assert fake.closed == [True]
