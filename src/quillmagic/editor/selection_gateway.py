"""Facade producing immutable selection snapshots for the flows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

__all__ = ["Selection", "SelectionGateway", "VisualSelectionSource"]


@dataclass(frozen=True, slots=True)
class Selection:
    """Highlighted text captured when a flow starts.

    Rows and columns are 0-based and ``end_col`` is exclusive. The snapshot is
    never refreshed, so by the time a backend answers it may describe text
    that has since moved.
    """

    lines: tuple[str, ...]
    start_row: int
    start_col: int
    end_row: int
    end_col: int

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


class VisualSelectionSource(Protocol):
    """The slice of the editing surface that can report a highlighted region."""

    def get_visual_lines(self) -> tuple[Sequence[str], int, int, int, int] | None:
        ...


@dataclass(slots=True)
class SelectionGateway:
    """Reads the active selection from the editing surface."""

    surface: VisualSelectionSource

    def capture(self) -> Selection | None:
        """Return the current selection, or ``None`` when nothing is highlighted."""

        raw = self.surface.get_visual_lines()
        if raw is None:
            return None
        lines, start_row, start_col, end_row, end_col = raw
        if not lines or (start_row, start_col) == (end_row, end_col):
            return None
        return Selection(
            lines=tuple(lines),
            start_row=int(start_row),
            start_col=int(start_col),
            end_row=int(end_row),
            end_col=int(end_col),
        )
