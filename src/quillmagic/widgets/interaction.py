"""Qt implementations of the prompt and notification collaborators."""

from __future__ import annotations

import asyncio
import logging

from PySide6.QtWidgets import QInputDialog, QLineEdit, QStatusBar, QWidget

from ..flows.interfaces import LoggingNotifier, NotifyLevel

__all__ = ["QtPrompter", "StatusBarNotifier"]

LOGGER = logging.getLogger(__name__)

_TIMEOUT_MS = {"debug": 2_000, "info": 5_000, "warning": 8_000, "error": 10_000}


class QtPrompter:
    """Asks for free text with a non-blocking :class:`QInputDialog`."""

    def __init__(self, parent: QWidget | None = None) -> None:
        self._parent = parent
        self.dialog: QInputDialog | None = None

    async def ask(self, label: str) -> str | None:
        future: asyncio.Future[str | None] = asyncio.get_running_loop().create_future()
        dialog = QInputDialog(self._parent)
        dialog.setObjectName("qm-prompt-dialog")
        dialog.setWindowTitle("QuillMagic")
        dialog.setLabelText(label)
        dialog.setInputMode(QInputDialog.InputMode.TextInput)
        dialog.setTextEchoMode(QLineEdit.EchoMode.Normal)

        def _accepted() -> None:
            if not future.done():
                future.set_result(dialog.textValue())

        def _rejected() -> None:
            if not future.done():
                future.set_result(None)

        dialog.accepted.connect(_accepted)
        dialog.rejected.connect(_rejected)
        self.dialog = dialog
        dialog.open()
        try:
            return await future
        finally:
            self.dialog = None
            dialog.deleteLater()


class StatusBarNotifier:
    """Shows notices in the main window status bar and mirrors them to the log."""

    def __init__(self, status_bar: QStatusBar) -> None:
        self._status_bar = status_bar
        self._log = LoggingNotifier(logging.getLogger("quillmagic.notify"))
        self.last_message: str = ""

    def notify(self, message: str, level: NotifyLevel = "info") -> None:
        self.last_message = message
        self._status_bar.showMessage(message, _TIMEOUT_MS.get(level, 5_000))
        self._log.notify(message, level)
