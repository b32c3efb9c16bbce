"""Transient read-only popup presenting a suggested completion."""

from __future__ import annotations

import logging
from functools import partial
from typing import Any, Sequence

from PySide6.QtCore import Qt
from PySide6.QtGui import QFont, QKeySequence, QShortcut
from PySide6.QtWidgets import QDialog, QLabel, QPlainTextEdit, QVBoxLayout, QWidget

from ..flows.interfaces import ResultAction, ResultSurface

__all__ = ["ResultPopup", "QtResultSurfaceFactory"]

LOGGER = logging.getLogger(__name__)


class ResultPopup(QDialog):
    """Shows generated lines with a title, a footer caption and single-key actions."""

    def __init__(
        self,
        lines: Sequence[str],
        language: str,
        *,
        title: str,
        footer: str,
        actions: Sequence[ResultAction],
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)
        self.setObjectName("qm-result-popup")
        self.setWindowTitle(title)
        self.setAttribute(Qt.WidgetAttribute.WA_DeleteOnClose, False)
        self.language = language
        self._actions = {action.key: action for action in actions}
        self._shortcuts: list[QShortcut] = []

        title_label = QLabel(title, self)
        title_label.setObjectName("qm-result-title")
        title_label.setAlignment(Qt.AlignmentFlag.AlignCenter)

        self._editor = QPlainTextEdit(self)
        self._editor.setObjectName("qm-result-text")
        self._editor.setReadOnly(True)
        self._editor.setPlainText("\n".join(lines))
        self._editor.setLineWrapMode(QPlainTextEdit.LineWrapMode.NoWrap)
        self._editor.setFont(QFont("monospace"))
        self._editor.setProperty("language", language)

        footer_label = QLabel(footer, self)
        footer_label.setObjectName("qm-result-footer")
        footer_label.setAlignment(Qt.AlignmentFlag.AlignLeft)

        layout = QVBoxLayout(self)
        layout.addWidget(title_label)
        layout.addWidget(self._editor)
        layout.addWidget(footer_label)

        for action in actions:
            shortcut = QShortcut(QKeySequence(action.key), self)
            shortcut.setContext(Qt.ShortcutContext.WidgetWithChildrenShortcut)
            shortcut.activated.connect(partial(self.trigger, action.key))
            self._shortcuts.append(shortcut)

    @property
    def text(self) -> str:
        return self._editor.toPlainText()

    @property
    def keys(self) -> list[str]:
        return list(self._actions)

    def trigger(self, key: str) -> None:
        """Run the action bound to ``key``; unknown keys are ignored."""

        action = self._actions.get(key)
        if action is None:
            LOGGER.debug("No result action bound to %s", key)
            return
        action.callback(self)


class QtResultSurfaceFactory:
    """Opens :class:`ResultPopup` windows and keeps them alive while visible."""

    def __init__(self, parent: QWidget | None = None) -> None:
        self._parent = parent
        self._open: list[ResultPopup] = []

    def open(
        self,
        lines: Sequence[str],
        language: str,
        *,
        title: str,
        footer: str,
        actions: Sequence[ResultAction],
    ) -> ResultSurface:
        popup = ResultPopup(lines, language, title=title, footer=footer, actions=actions, parent=self._parent)
        popup.finished.connect(partial(self._forget, popup))
        self._open.append(popup)
        popup.resize(720, 420)
        popup.show()
        popup.activateWindow()
        return popup

    @property
    def open_popups(self) -> list[ResultPopup]:
        return list(self._open)

    def _forget(self, popup: ResultPopup, *_args: Any) -> None:
        if popup in self._open:
            self._open.remove(popup)
