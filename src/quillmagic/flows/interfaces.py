"""Collaborator protocols the flow controller depends on."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Literal, Protocol, Sequence

from ..editor.result_applier import LineMutationSurface
from ..editor.selection_gateway import VisualSelectionSource

__all__ = [
    "EditingSurface",
    "LoggingNotifier",
    "Notifier",
    "NotifyLevel",
    "Prompter",
    "ResultAction",
    "ResultSurface",
    "ResultSurfaceFactory",
]

NotifyLevel = Literal["debug", "info", "warning", "error"]


class EditingSurface(VisualSelectionSource, LineMutationSurface, Protocol):
    """Everything the flows need from the editor hosting the documents."""

    def get_handles(self) -> tuple[str, str]:
        """Return ``(document_id, view_id)`` of the active view."""

    def get_filename(self) -> str:
        ...

    def get_filetype(self) -> str:
        ...

    def focus(self, document_id: str, view_id: str) -> None:
        ...

    def set_cursor(self, view_id: str, row: int, col: int) -> None:
        ...


class Notifier(Protocol):
    def notify(self, message: str, level: NotifyLevel = "info") -> None:
        ...


class Prompter(Protocol):
    async def ask(self, label: str) -> str | None:
        """Ask the user for free text; ``None`` means the prompt was cancelled."""


class ResultSurface(Protocol):
    def close(self) -> None:
        ...


@dataclass(frozen=True, slots=True)
class ResultAction:
    """Key bound on a result surface; the callback receives the surface it fired on."""

    key: str
    label: str
    callback: Callable[[ResultSurface], None]


class ResultSurfaceFactory(Protocol):
    def open(
        self,
        lines: Sequence[str],
        language: str,
        *,
        title: str,
        footer: str,
        actions: Sequence[ResultAction],
    ) -> ResultSurface:
        ...


class LoggingNotifier:
    """Notifier that only writes to the log; used when no UI is attached."""

    _LEVELS = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("quillmagic.notify")

    def notify(self, message: str, level: NotifyLevel = "info") -> None:
        self._logger.log(self._LEVELS.get(level, logging.INFO), message)
