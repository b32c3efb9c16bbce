"""Helpers applying generated text back into a document."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

__all__ = ["DocumentClosedError", "ResultApplier", "LineMutationSurface", "split_completion"]

LOGGER = logging.getLogger(__name__)


class DocumentClosedError(LookupError):
    """Raised when a result targets a document that is no longer open."""

    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document {document_id} is no longer open")
        self.document_id = document_id


class LineMutationSurface(Protocol):
    """Line-level write primitives exposed by the editing surface."""

    def line_count(self, document_id: str) -> int:
        ...

    def insert_lines(self, document_id: str, index: int, lines: Sequence[str]) -> int:
        ...

    def replace_text(
        self,
        document_id: str,
        start: tuple[int, int],
        end: tuple[int, int],
        lines: Sequence[str],
    ) -> tuple[int, int]:
        ...

    def append_line(self, document_id: str, text: str) -> int:
        ...


def split_completion(text: str) -> list[str]:
    """Split completion text on newlines, keeping a trailing empty line if present."""

    return text.split("\n")


@dataclass(slots=True)
class ResultApplier:
    """Writes completions into the document a flow started from.

    Coordinates come from a selection captured before the backend call, so
    every operation clamps them against the live document instead of failing.
    A document that was closed meanwhile raises :class:`DocumentClosedError`.
    """

    surface: LineMutationSurface

    def append(self, document_id: str, after_row: int, lines: Sequence[str]) -> int:
        """Insert ``lines`` right after ``after_row``; returns the row of the first inserted line."""

        line_count = self._line_count(document_id)
        index = max(0, min(int(after_row) + 1, line_count))
        if index != after_row + 1:
            LOGGER.debug(
                "Clamped append row %s to %s (document %s has %s lines)",
                after_row,
                index - 1,
                document_id,
                line_count,
            )
        return self.surface.insert_lines(document_id, index, list(lines))

    def paste_over(
        self,
        document_id: str,
        start_row: int,
        start_col: int,
        end_row: int,
        lines: Sequence[str],
        *,
        end_col: int,
    ) -> tuple[int, int]:
        """Replace the originally selected span with ``lines``."""

        line_count = self._line_count(document_id)
        if end_row >= line_count:
            LOGGER.debug(
                "Selection end row %s beyond document %s (%s lines); clamping",
                end_row,
                document_id,
                line_count,
            )
        return self.surface.replace_text(
            document_id, (start_row, start_col), (end_row, end_col), list(lines)
        )

    def append_end(self, document_id: str, text: str) -> int:
        """Grow the document at its tail with ``text``."""

        self._line_count(document_id)
        return self.surface.append_line(document_id, text)

    def _line_count(self, document_id: str) -> int:
        try:
            return self.surface.line_count(document_id)
        except KeyError as exc:
            raise DocumentClosedError(document_id) from exc
