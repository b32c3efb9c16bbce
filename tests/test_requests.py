"""Tests for request construction and parameter validation."""

from __future__ import annotations

import pytest

from quillmagic.ai.prompts import AlterFields, get_template
from quillmagic.ai.requests import (
    DEFAULT_MAX_TOKENS,
    build_completion_request,
    build_template_request,
    validate_max_tokens,
    validate_stops,
)


def test_completion_request_defaults_max_tokens() -> None:
    request = build_completion_request(["def f():", "    pass"])

    assert request.max_tokens == DEFAULT_MAX_TOKENS == 3000
    assert request.stops is None
    assert request.prompt == "def f():\n    pass"


def test_completion_request_keeps_explicit_values() -> None:
    request = build_completion_request(["x"], 128, ["\n\n"])

    assert request.max_tokens == 128
    assert request.stops == ("\n\n",)


@pytest.mark.parametrize("value", ["ten", 1.5, True])
def test_max_tokens_must_be_an_integer(value) -> None:
    with pytest.raises(TypeError, match="max tokens must be a number"):
        validate_max_tokens(value)


@pytest.mark.parametrize("value", [0, -3])
def test_max_tokens_must_be_positive(value) -> None:
    with pytest.raises(ValueError, match="at least 1"):
        validate_max_tokens(value)


@pytest.mark.parametrize("value", ["```", [1, 2], [], 7])
def test_stops_must_be_a_list_of_strings(value) -> None:
    with pytest.raises(TypeError, match="stop must be an array of strings"):
        validate_stops(value)


def test_template_request_trims_outer_blank_lines_and_sets_stop() -> None:
    request = build_template_request(
        get_template("alter"),
        AlterFields(language="python", task="use a list comprehension", snippet="x = 1\n\ny = 2"),
    )

    assert request.lines[0] == "This is some python code."
    assert request.lines[-1] == "```python"
    assert "" in request.lines
    assert "x = 1" in request.lines and "y = 2" in request.lines
    assert request.stops == ("```",)
    assert request.max_tokens == DEFAULT_MAX_TOKENS
