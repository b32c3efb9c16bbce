"""Logging bootstrap shared by the QuillMagic app and its flows."""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["setup_logging", "resolve_level", "LOG_FORMAT"]

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_DEFAULT_LOG_DIR = Path.home() / ".quillmagic" / "logs"
_LOG_FILENAME = "quillmagic.log"
_QUIET_LOGGERS: tuple[str, ...] = ("asyncio", "qasync", "httpx", "httpcore", "openai")
_state: dict[str, Path | None] = {"path": None}


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Install a rotating file handler (and optionally a console handler) on the root logger.

    Repeated calls are no-ops unless ``force`` is set, so the app and tests can
    both call this without stacking handlers.
    """

    current = _state["path"]
    if current is not None and not force:
        return current

    directory = Path(log_dir or os.environ.get("QUILLMAGIC_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / _LOG_FILENAME

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=_DATE_FORMAT)
    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handlers: list[logging.Handler] = [file_handler]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)

    quiet_level = max(level, logging.WARNING)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    _state["path"] = log_path
    return log_path


def resolve_level(value: str | int | None, *, default: int = logging.INFO) -> int:
    """Map a user supplied level name (``"debug"``) or number onto a logging level."""

    if value is None:
        return default
    if isinstance(value, int):
        return value
    candidate = logging.getLevelName(value.strip().upper())
    return candidate if isinstance(candidate, int) else default

