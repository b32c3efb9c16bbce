"""Dataclasses representing editable document state."""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Sequence

_LANGUAGE_BY_SUFFIX: Dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".lua": "lua",
    ".js": "javascript",
    ".jsx": "javascriptreact",
    ".ts": "typescript",
    ".tsx": "typescriptreact",
    ".rs": "rust",
    ".go": "go",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".java": "java",
    ".rb": "ruby",
    ".sh": "sh",
    ".md": "markdown",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".sql": "sql",
    ".html": "html",
    ".css": "css",
}


def _utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


def _hash_text(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def detect_language(path: Path | None) -> str:
    """Guess an editor file type from ``path``'s suffix; ``"text"`` when unknown."""

    if path is None:
        return "text"
    return _LANGUAGE_BY_SUFFIX.get(path.suffix.lower(), "text")


@dataclass(slots=True)
class DocumentMetadata:
    """Metadata describing a loaded document."""

    path: Optional[Path] = None
    language: str = ""
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not self.language:
            self.language = detect_language(self.path)

    @property
    def filename(self) -> str:
        return self.path.name if self.path is not None else ""


@dataclass(slots=True)
class SelectionRange:
    """Character offsets of the highlighted region; ``end`` is exclusive."""

    start: int = 0
    end: int = 0

    def as_tuple(self) -> tuple[int, int]:
        return (self.start, self.end)

    @property
    def is_empty(self) -> bool:
        return self.start == self.end


@dataclass(slots=True)
class DocumentState:
    """Text buffer plus the bookkeeping needed to reconcile async edits."""

    text: str = ""
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    dirty: bool = False
    document_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    version_id: int = 1
    content_hash: str = field(default_factory=str)

    def __post_init__(self) -> None:
        if not self.content_hash:
            self.content_hash = _hash_text(self.text)

    # ------------------------------------------------------------------
    # Line views
    # ------------------------------------------------------------------
    def lines(self) -> list[str]:
        """Return the buffer split on newlines; an empty buffer has one empty line."""

        return self.text.split("\n")

    @property
    def line_count(self) -> int:
        return self.text.count("\n") + 1

    def line(self, row: int) -> str:
        return self.lines()[self.clamp_row(row)]

    def clamp_row(self, row: int) -> int:
        return max(0, min(int(row), self.line_count - 1))

    def offset_to_position(self, offset: int) -> tuple[int, int]:
        """Translate a character offset into a ``(row, col)`` pair."""

        offset = max(0, min(int(offset), len(self.text)))
        row = self.text.count("\n", 0, offset)
        line_start = self.text.rfind("\n", 0, offset) + 1
        return row, offset - line_start

    def position_to_offset(self, row: int, col: int) -> int:
        """Translate ``(row, col)`` into a character offset, clamping both axes."""

        lines = self.lines()
        row = self.clamp_row(row)
        col = max(0, min(int(col), len(lines[row])))
        return sum(len(line) + 1 for line in lines[:row]) + col

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def update_text(self, new_text: str) -> None:
        """Replace the document text and mark it dirty."""

        if new_text == self.text:
            return
        self.text = new_text
        self.dirty = True
        self.metadata.updated_at = _utcnow()
        self.version_id += 1
        self.content_hash = _hash_text(new_text)

    def insert_lines(self, index: int, new_lines: Sequence[str]) -> int:
        """Insert ``new_lines`` so the first lands at ``index``; returns the clamped index."""

        lines = self.lines()
        index = max(0, min(int(index), len(lines)))
        lines[index:index] = list(new_lines)
        self.update_text("\n".join(lines))
        return index

    def replace_span(
        self,
        start: tuple[int, int],
        end: tuple[int, int],
        new_lines: Sequence[str],
    ) -> tuple[int, int]:
        """Replace the text between two ``(row, col)`` positions with ``new_lines``.

        Positions outside the live buffer are clamped, and a reversed span is
        normalized, so a stale selection still lands somewhere sensible.
        Returns the character offsets that were replaced.
        """

        start_offset = self.position_to_offset(*start)
        end_offset = self.position_to_offset(*end)
        if end_offset < start_offset:
            start_offset, end_offset = end_offset, start_offset
        replacement = "\n".join(new_lines)
        self.update_text(self.text[:start_offset] + replacement + self.text[end_offset:])
        return start_offset, end_offset

    def append_line(self, line: str) -> int:
        """Append ``line`` (which may itself contain newlines) after the last row."""

        return self.insert_lines(self.line_count, line.split("\n"))
