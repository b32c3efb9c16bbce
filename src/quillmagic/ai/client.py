"""Async AI client wrapper built around OpenAI-compatible endpoints."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Literal, Mapping, Sequence, cast

import httpx
from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI, RateLimitError
from openai.types.chat import ChatCompletionMessageParam
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

LOGGER = logging.getLogger(__name__)

CompletionEndpoint = Literal["chat", "text"]

_CONTINUATION_INSTRUCTIONS = (
    "Continue the user's text exactly where it stops. Reply with the continuation only, "
    "without repeating the input and without commentary."
)


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the AI client."""

    base_url: str
    api_key: str
    model: str
    organization: str | None = None
    temperature: float | None = 0.2
    request_timeout: float | None = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    completion_endpoint: CompletionEndpoint = "chat"
    default_headers: Mapping[str, str] | None = None
    metadata: Mapping[str, str] | None = None
    debug_logging: bool = False


class AIClient:
    """Async client providing single-shot completion and chat helpers with retries."""

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or self._build_client(settings)

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def complete_text(
        self,
        prompt: str,
        *,
        max_tokens: int,
        stops: Sequence[str] | None = None,
    ) -> str:
        """Return the model's continuation of ``prompt``."""

        if self._settings.completion_endpoint == "text":
            payload = self._build_text_payload(prompt, max_tokens=max_tokens, stops=stops)
            LOGGER.debug("Requesting text completion via %s (max_tokens=%s)", self._settings.model, max_tokens)
            if self._settings.debug_logging:
                self._log_prompt_payload(payload)
            async for attempt in self._retrying():
                with attempt:
                    response = await self._client.completions.create(**payload)
            choice = response.choices[0] if response.choices else None
            return (choice.text if choice is not None else "") or ""

        messages: List[Mapping[str, Any]] = [
            {"role": "system", "content": _CONTINUATION_INSTRUCTIONS},
            {"role": "user", "content": prompt},
        ]
        return await self.chat(messages, max_tokens=max_tokens, stops=stops)

    async def chat(
        self,
        messages: Iterable[Mapping[str, Any]],
        *,
        max_tokens: int,
        stops: Sequence[str] | None = None,
    ) -> str:
        """Send ``messages`` to the chat completions endpoint and return the reply text."""

        payload = self._build_chat_payload(self._coerce_messages(messages), max_tokens=max_tokens, stops=stops)
        LOGGER.debug(
            "Requesting chat completion via %s with %s message(s) (max_tokens=%s)",
            self._settings.model,
            len(payload["messages"]),
            max_tokens,
        )
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        async for attempt in self._retrying():
            with attempt:
                response = await self._client.chat.completions.create(**payload)
        choice = response.choices[0] if response.choices else None
        if choice is None or choice.message is None:
            return ""
        return choice.message.content or ""

    def _build_client(self, settings: ClientSettings) -> AsyncOpenAI:
        headers = dict(settings.default_headers) if settings.default_headers else None
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            organization=settings.organization,
            timeout=settings.request_timeout,
            default_headers=headers,
            max_retries=0,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(
                (
                    APIStatusError,
                    APIConnectionError,
                    RateLimitError,
                    httpx.TimeoutException,
                )
            ),
        )

    def _coerce_messages(self, messages: Iterable[Mapping[str, Any]]) -> List[ChatCompletionMessageParam]:
        normalized = [cast(ChatCompletionMessageParam, dict(message)) for message in messages]
        if not normalized:
            raise ValueError("At least one message is required to start a chat")
        return normalized

    def _build_chat_payload(
        self,
        messages: Sequence[ChatCompletionMessageParam],
        *,
        max_tokens: int,
        stops: Sequence[str] | None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self._settings.model,
            "messages": list(messages),
            "max_tokens": max_tokens,
        }
        self._apply_common(payload, stops)
        return payload

    def _build_text_payload(self, prompt: str, *, max_tokens: int, stops: Sequence[str] | None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self._settings.model,
            "prompt": prompt,
            "max_tokens": max_tokens,
        }
        self._apply_common(payload, stops)
        return payload

    def _apply_common(self, payload: Dict[str, Any], stops: Sequence[str] | None) -> None:
        if stops:
            payload["stop"] = list(stops)
        if self._settings.temperature is not None:
            payload["temperature"] = self._settings.temperature
        if self._settings.metadata:
            payload["metadata"] = dict(self._settings.metadata)

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("AI prompt payload (unserializable): %s", payload)
        else:
            LOGGER.debug("AI prompt payload:\n%s", serialized)

    async def aclose(self) -> None:
        """Close the underlying OpenAI client to release network resources."""

        close = getattr(self._client, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result
