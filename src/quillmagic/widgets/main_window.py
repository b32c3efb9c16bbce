"""Main window: tabbed plain-text editors mirrored into the document workspace."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Coroutine, Dict

from PySide6.QtGui import QAction, QFont, QKeySequence, QTextCursor
from PySide6.QtWidgets import QFileDialog, QMainWindow, QPlainTextEdit, QTabWidget

from ..editor.workspace import DocumentTab, DocumentWorkspace
from ..flows.controller import FlowController, FlowResult
from ..services.settings import Settings
from .interaction import QtPrompter, StatusBarNotifier
from .result_popup import QtResultSurfaceFactory

__all__ = ["MainWindow", "WindowContext", "FLOW_SHORTCUTS"]

LOGGER = logging.getLogger(__name__)

FLOW_SHORTCUTS: Dict[str, str] = {
    "append_completion": "Ctrl+Alt+C",
    "suggest_alteration": "Ctrl+Alt+A",
    "suggest_docstring": "Ctrl+Alt+D",
    "chat_turn": "Ctrl+Alt+Q",
    "chat_reset": "Ctrl+Alt+R",
}

_FLOW_LABELS: Dict[str, str] = {
    "append_completion": "Append &Completion",
    "suggest_alteration": "Suggest &Alteration...",
    "suggest_docstring": "Suggest &Docstring",
    "chat_turn": "&Chat...",
    "chat_reset": "&Reset Chat",
}


@dataclass(slots=True)
class WindowContext:
    settings: Settings
    workspace: DocumentWorkspace
    controller_factory: Callable[..., FlowController]


class MainWindow(QMainWindow):
    """Hosts one :class:`QPlainTextEdit` per workspace tab and wires the flow actions."""

    def __init__(self, context: WindowContext) -> None:
        super().__init__()
        self._context = context
        self._workspace = context.workspace
        self._editors: Dict[str, QPlainTextEdit] = {}
        self._syncing = False
        self.setWindowTitle("QuillMagic")
        self.resize(1100, 760)

        self._tabs = QTabWidget(self)
        self._tabs.setObjectName("qm-tabs")
        self._tabs.setTabsClosable(True)
        self._tabs.currentChanged.connect(self._on_current_changed)
        self._tabs.tabCloseRequested.connect(self._on_close_requested)
        self.setCentralWidget(self._tabs)

        self.notifier = StatusBarNotifier(self.statusBar())
        self.prompter = QtPrompter(self)
        self.result_surfaces = QtResultSurfaceFactory(self)
        self.controller = context.controller_factory(
            surface=self._workspace,
            notifier=self.notifier,
            prompter=self.prompter,
            result_surfaces=self.result_surfaces,
        )

        self._workspace.add_change_listener(self._on_document_changed)
        self._workspace.add_focus_listener(self._on_workspace_focus)
        self._workspace.add_cursor_listener(self._on_workspace_cursor)

        self.flow_actions: Dict[str, QAction] = {}
        self._build_menus()
        self._syncing = True
        try:
            for tab in self._workspace.iter_tabs():
                self._add_editor(tab)
        finally:
            self._syncing = False
        active = self._workspace.active_tab()
        if active is not None:
            self._on_workspace_focus(active.id)
        else:
            self.new_document()

    # ------------------------------------------------------------------
    # Menus
    # ------------------------------------------------------------------
    def _build_menus(self) -> None:
        file_menu = self.menuBar().addMenu("&File")
        self._add_action(file_menu, "&New", QKeySequence.StandardKey.New, self.new_document)
        self._add_action(file_menu, "&Open...", QKeySequence.StandardKey.Open, self._open_dialog)
        self._add_action(file_menu, "&Save", QKeySequence.StandardKey.Save, self.save_active)
        file_menu.addSeparator()
        self._add_action(file_menu, "&Quit", QKeySequence.StandardKey.Quit, self.close)

        ai_menu = self.menuBar().addMenu("&Magic")
        for name, shortcut in FLOW_SHORTCUTS.items():
            action = self._add_action(ai_menu, _FLOW_LABELS[name], QKeySequence(shortcut), self._flow_trigger(name))
            action.setObjectName(f"qm-action-{name}")
            self.flow_actions[name] = action

    def _add_action(self, menu: Any, label: str, shortcut: Any, slot: Callable[[], Any]) -> QAction:
        action = QAction(label, self)
        action.setShortcut(shortcut)
        action.triggered.connect(lambda _checked=False: slot())
        menu.addAction(action)
        return action

    def _flow_trigger(self, name: str) -> Callable[[], None]:
        def _run() -> None:
            flow: Callable[[], Coroutine[Any, Any, FlowResult]] = getattr(self.controller, name)
            LOGGER.debug("Launching flow %s", name)
            self.controller.launch(flow())

        return _run

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------
    def new_document(self) -> DocumentTab:
        return self._workspace.create_tab()

    def open_path(self, path: Path | str) -> DocumentTab:
        return self._workspace.open_file(path)

    def _open_dialog(self) -> None:
        filename, _ = QFileDialog.getOpenFileName(self, "Open file")
        if filename:
            self.open_path(filename)

    def save_active(self) -> Path | None:
        tab = self._workspace.active_tab()
        if tab is None:
            return None
        path = tab.path
        if path is None:
            filename, _ = QFileDialog.getSaveFileName(self, "Save file")
            if not filename:
                return None
            path = Path(filename)
            tab.document.metadata.path = path
        path.write_text(tab.document.text, encoding="utf-8")
        tab.document.dirty = False
        self._refresh_title(tab.id)
        self.notifier.notify(f"saved {path.name}")
        return path

    def editor_for(self, tab_id: str) -> QPlainTextEdit:
        return self._editors[tab_id]

    def _add_editor(self, tab: DocumentTab) -> QPlainTextEdit:
        editor = QPlainTextEdit(self._tabs)
        editor.setObjectName(f"qm-editor-{tab.id}")
        editor.setFont(QFont(self._context.settings.font_family, self._context.settings.font_size))
        editor.setLineWrapMode(QPlainTextEdit.LineWrapMode.NoWrap)
        editor.setPlainText(tab.document.text)
        editor.textChanged.connect(lambda tab_id=tab.id: self._on_editor_text_changed(tab_id))
        editor.selectionChanged.connect(lambda tab_id=tab.id: self._on_editor_selection_changed(tab_id))
        self._editors[tab.id] = editor
        self._tabs.addTab(editor, tab.title)
        return editor

    def _refresh_title(self, tab_id: str) -> None:
        editor = self._editors.get(tab_id)
        if editor is None:
            return
        self._tabs.setTabText(self._tabs.indexOf(editor), self._workspace.get_tab(tab_id).title)

    def _tab_id_for(self, index: int) -> str | None:
        widget = self._tabs.widget(index)
        for tab_id, editor in self._editors.items():
            if editor is widget:
                return tab_id
        return None

    # ------------------------------------------------------------------
    # Qt -> workspace
    # ------------------------------------------------------------------
    def _on_editor_text_changed(self, tab_id: str) -> None:
        if self._syncing:
            return
        self._workspace.sync_text(tab_id, self._editors[tab_id].toPlainText())
        self._refresh_title(tab_id)

    def _on_editor_selection_changed(self, tab_id: str) -> None:
        cursor = self._editors[tab_id].textCursor()
        self._workspace.set_selection(cursor.selectionStart(), cursor.selectionEnd(), tab_id=tab_id)

    def _on_current_changed(self, index: int) -> None:
        tab_id = self._tab_id_for(index)
        if tab_id is None or self._syncing:
            return
        active = self._workspace.active_tab()
        if active is None or active.id != tab_id:
            self._workspace.set_active_tab(tab_id)

    def _on_close_requested(self, index: int) -> None:
        tab_id = self._tab_id_for(index)
        if tab_id is None:
            return
        editor = self._editors.pop(tab_id)
        self._tabs.removeTab(index)
        editor.deleteLater()
        self._workspace.close_tab(tab_id)

    # ------------------------------------------------------------------
    # Workspace -> Qt
    # ------------------------------------------------------------------
    def _on_document_changed(self, document_id: str) -> None:
        tab = self._workspace.tab_for_document(document_id)
        if tab is None:
            return
        editor = self._editors.get(tab.id)
        if editor is None:
            return
        self._syncing = True
        try:
            editor.setPlainText(tab.document.text)
        finally:
            self._syncing = False
        self._refresh_title(tab.id)

    def _on_workspace_focus(self, tab_id: str) -> None:
        editor = self._editors.get(tab_id)
        if editor is None:
            editor = self._add_editor(self._workspace.get_tab(tab_id))
        if self._tabs.currentWidget() is not editor:
            self._syncing = True
            try:
                self._tabs.setCurrentWidget(editor)
            finally:
                self._syncing = False
        editor.setFocus()

    def _on_workspace_cursor(self, tab_id: str) -> None:
        editor = self._editors.get(tab_id)
        if editor is None:
            return
        tab = self._workspace.get_tab(tab_id)
        row, col = tab.cursor
        cursor = QTextCursor(editor.document().findBlockByNumber(row))
        cursor.movePosition(QTextCursor.MoveOperation.Right, QTextCursor.MoveMode.MoveAnchor, col)
        editor.setTextCursor(cursor)
