"""Workspace model managing open documents, their views and selections.

The workspace is the headless editing surface the flows talk to. The Qt main
window mirrors its views into ``QPlainTextEdit`` widgets, but every read and
mutation the flows perform goes through this class so it can be exercised in
tests without a display.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Protocol, Sequence

from .document_model import DocumentMetadata, DocumentState, SelectionRange

__all__ = ["DocumentTab", "DocumentWorkspace", "WorkspaceListener", "VisualLines"]

LOGGER = logging.getLogger(__name__)

VisualLines = tuple[list[str], int, int, int, int]


class WorkspaceListener(Protocol):
    """Callback fired with the id of the document that changed."""

    def __call__(self, document_id: str) -> None:  # pragma: no cover - protocol
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _generate_id() -> str:
    return uuid.uuid4().hex


def _normalize_path(path: Path | str | None) -> Path | None:
    if path is None:
        return None
    return Path(path).expanduser().resolve()


@dataclass(slots=True)
class DocumentTab:
    """A view onto one document: selection, cursor and a display title."""

    id: str
    document: DocumentState
    selection: SelectionRange = field(default_factory=SelectionRange)
    cursor: tuple[int, int] = (0, 0)
    created_at: datetime = field(default_factory=_utcnow)
    untitled_index: int | None = None

    @property
    def path(self) -> Path | None:
        return self.document.metadata.path

    @property
    def title(self) -> str:
        name = self.document.metadata.filename
        if not name:
            suffix = f" {self.untitled_index}" if self.untitled_index else ""
            name = f"Untitled{suffix}"
        return f"*{name}" if self.document.dirty else name


class DocumentWorkspace:
    """Owns every open :class:`DocumentTab` and tracks the active one."""

    def __init__(self) -> None:
        self._tabs: Dict[str, DocumentTab] = {}
        self._order: List[str] = []
        self._active_tab_id: str | None = None
        self._untitled_counter = 1
        self._change_listeners: List[WorkspaceListener] = []
        self._focus_listeners: List[Callable[[str], None]] = []
        self._cursor_listeners: List[Callable[[str], None]] = []

    # ------------------------------------------------------------------
    # Tab lifecycle
    # ------------------------------------------------------------------
    def create_tab(
        self,
        *,
        text: str = "",
        path: Path | str | None = None,
        language: str | None = None,
        make_active: bool = True,
        tab_id: str | None = None,
    ) -> DocumentTab:
        """Open a new document in its own view."""

        metadata = DocumentMetadata(path=_normalize_path(path), language=language or "")
        document = DocumentState(text=text, metadata=metadata)
        untitled_index: int | None = None
        if metadata.path is None:
            untitled_index = self._untitled_counter
            self._untitled_counter += 1
        tab = DocumentTab(id=tab_id or _generate_id(), document=document, untitled_index=untitled_index)
        self._tabs[tab.id] = tab
        self._order.append(tab.id)
        LOGGER.debug("Opened tab %s (document=%s, path=%s)", tab.id, document.document_id, metadata.path)
        if make_active or self._active_tab_id is None:
            self.set_active_tab(tab.id)
        return tab

    def open_file(self, path: Path | str, *, make_active: bool = True) -> DocumentTab:
        if path is None or not str(path).strip():
            raise ValueError("open_file requires a file path")
        resolved = Path(path).expanduser().resolve()
        text = resolved.read_text(encoding="utf-8") if resolved.exists() else ""
        return self.create_tab(text=text, path=resolved, make_active=make_active)

    def close_tab(self, tab_id: str) -> DocumentTab:
        if tab_id not in self._tabs:
            raise KeyError(f"Unknown tab_id: {tab_id}")
        tab = self._tabs.pop(tab_id)
        index = self._order.index(tab_id)
        self._order.remove(tab_id)
        if self._active_tab_id == tab_id:
            self._active_tab_id = None
            if self._order:
                self.set_active_tab(self._order[min(index, len(self._order) - 1)])
        return tab

    def set_active_tab(self, tab_id: str) -> DocumentTab:
        tab = self.get_tab(tab_id)
        self._active_tab_id = tab_id
        for listener in list(self._focus_listeners):
            listener(tab_id)
        return tab

    def get_tab(self, tab_id: str) -> DocumentTab:
        try:
            return self._tabs[tab_id]
        except KeyError as exc:
            raise KeyError(f"Unknown tab_id: {tab_id}") from exc

    def active_tab(self) -> Optional[DocumentTab]:
        if self._active_tab_id is None:
            return None
        return self._tabs.get(self._active_tab_id)

    def require_active_tab(self) -> DocumentTab:
        tab = self.active_tab()
        if tab is None:
            raise RuntimeError("No document is open")
        return tab

    def iter_tabs(self) -> Iterator[DocumentTab]:
        for tab_id in self._order:
            yield self._tabs[tab_id]

    def document(self, document_id: str) -> DocumentState:
        for tab in self._tabs.values():
            if tab.document.document_id == document_id:
                return tab.document
        raise KeyError(f"Unknown document_id: {document_id}")

    def tab_for_document(self, document_id: str) -> DocumentTab | None:
        for tab in self.iter_tabs():
            if tab.document.document_id == document_id:
                return tab
        return None

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def add_change_listener(self, listener: WorkspaceListener) -> None:
        self._change_listeners.append(listener)

    def add_focus_listener(self, listener: Callable[[str], None]) -> None:
        self._focus_listeners.append(listener)

    def add_cursor_listener(self, listener: Callable[[str], None]) -> None:
        self._cursor_listeners.append(listener)

    def _emit_change(self, document_id: str) -> None:
        for listener in list(self._change_listeners):
            listener(document_id)

    # ------------------------------------------------------------------
    # Selection / cursor
    # ------------------------------------------------------------------
    def set_selection(self, start: int, end: int, *, tab_id: str | None = None) -> SelectionRange:
        tab = self.get_tab(tab_id) if tab_id else self.require_active_tab()
        length = len(tab.document.text)
        start = max(0, min(int(start), length))
        end = max(0, min(int(end), length))
        if end < start:
            start, end = end, start
        tab.selection = SelectionRange(start, end)
        return tab.selection

    def sync_text(self, tab_id: str, text: str) -> None:
        """Record an edit made directly in a view (typing in the Qt editor)."""

        self.get_tab(tab_id).document.update_text(text)

    # ------------------------------------------------------------------
    # Editing-surface operations consumed by the flows
    # ------------------------------------------------------------------
    def get_handles(self) -> tuple[str, str]:
        tab = self.require_active_tab()
        return tab.document.document_id, tab.id

    def get_filename(self) -> str:
        return self.require_active_tab().document.metadata.filename

    def get_filetype(self) -> str:
        return self.require_active_tab().document.metadata.language

    def get_visual_lines(self) -> VisualLines | None:
        """Return the highlighted text and its span, or ``None`` when nothing is selected."""

        tab = self.require_active_tab()
        if tab.selection.is_empty:
            return None
        document = tab.document
        start, end = tab.selection.as_tuple()
        start_row, start_col = document.offset_to_position(start)
        end_row, end_col = document.offset_to_position(end)
        return document.text[start:end].split("\n"), start_row, start_col, end_row, end_col

    def line_count(self, document_id: str) -> int:
        return self.document(document_id).line_count

    def insert_lines(self, document_id: str, index: int, lines: Sequence[str]) -> int:
        inserted_at = self.document(document_id).insert_lines(index, lines)
        self._emit_change(document_id)
        return inserted_at

    def replace_text(
        self,
        document_id: str,
        start: tuple[int, int],
        end: tuple[int, int],
        lines: Sequence[str],
    ) -> tuple[int, int]:
        replaced = self.document(document_id).replace_span(start, end, lines)
        self._emit_change(document_id)
        return replaced

    def append_line(self, document_id: str, text: str) -> int:
        row = self.document(document_id).append_line(text)
        self._emit_change(document_id)
        return row

    def focus(self, document_id: str, view_id: str) -> None:
        """Re-activate ``view_id``, falling back to any view showing ``document_id``."""

        if view_id in self._tabs:
            self.set_active_tab(view_id)
            return
        tab = self.tab_for_document(document_id)
        if tab is None:
            LOGGER.debug("Cannot focus closed document %s", document_id)
            return
        self.set_active_tab(tab.id)

    def set_cursor(self, view_id: str, row: int, col: int) -> None:
        tab = self._tabs.get(view_id)
        if tab is None:
            return
        document = tab.document
        row = document.clamp_row(row)
        col = max(0, min(int(col), len(document.line(row))))
        tab.cursor = (row, col)
        for listener in list(self._cursor_listeners):
            listener(view_id)
