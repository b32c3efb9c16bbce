"""Builders turning selections and user intent into backend requests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from .prompts import PromptTemplate

__all__ = [
    "CompletionRequest",
    "DEFAULT_MAX_TOKENS",
    "build_completion_request",
    "build_template_request",
    "validate_max_tokens",
    "validate_stops",
]

# Fixed budget; prompt size is not measured.
DEFAULT_MAX_TOKENS = 3000


@dataclass(frozen=True, slots=True)
class CompletionRequest:
    lines: tuple[str, ...]
    max_tokens: int
    stops: tuple[str, ...] | None = None

    @property
    def prompt(self) -> str:
        return "\n".join(self.lines)


def validate_max_tokens(max_tokens: Any) -> int:
    if max_tokens is None:
        return DEFAULT_MAX_TOKENS
    if isinstance(max_tokens, bool) or not isinstance(max_tokens, int):
        raise TypeError("max tokens must be a number")
    if max_tokens < 1:
        raise ValueError("max tokens must be at least 1")
    return max_tokens


def validate_stops(stops: Any) -> tuple[str, ...] | None:
    if stops is None:
        return None
    if isinstance(stops, str) or not isinstance(stops, Sequence):
        raise TypeError("stop must be an array of strings")
    if not stops or not all(isinstance(item, str) for item in stops):
        raise TypeError("stop must be an array of strings")
    return tuple(stops)


def build_completion_request(
    lines: Sequence[str],
    max_tokens: int | None = None,
    stops: Sequence[str] | None = None,
) -> CompletionRequest:
    """Raw completion: the selected lines are sent verbatim."""

    return CompletionRequest(
        lines=tuple(lines),
        max_tokens=validate_max_tokens(max_tokens),
        stops=validate_stops(stops),
    )


def build_template_request(template: PromptTemplate[Any], values: Any | Mapping[str, Any]) -> CompletionRequest:
    """Render ``template`` and stop generation at its stop marker."""

    prompt = template.render(values)
    return CompletionRequest(
        lines=tuple(_split_prompt(prompt)),
        max_tokens=DEFAULT_MAX_TOKENS,
        stops=(template.stop_code,),
    )


def _split_prompt(prompt: str) -> list[str]:
    # Leading and trailing empty segments are dropped; inner blank lines stay.
    lines = prompt.split("\n")
    while lines and lines[0] == "":
        lines.pop(0)
    while lines and lines[-1] == "":
        lines.pop()
    return lines
