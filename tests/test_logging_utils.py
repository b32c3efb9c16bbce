"""Tests for the logging bootstrap helpers."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

import pytest

from quillmagic.utils import logging as logging_utils


@pytest.mark.usefixtures("restore_root_logging")
def test_setup_logging_writes_rotating_file(tmp_path: Path) -> None:
    log_path = logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path, console=False, force=True)

    logging.getLogger("quillmagic.test").info("hello file")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert log_path == tmp_path / "quillmagic.log"
    assert "hello file" in log_path.read_text(encoding="utf-8")
    assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in logging.getLogger().handlers)
    assert logging.getLogger("httpx").level == logging.WARNING


@pytest.mark.usefixtures("restore_root_logging")
def test_setup_logging_is_idempotent_without_force(tmp_path: Path) -> None:
    first = logging_utils.setup_logging(log_dir=tmp_path / "a", console=False, force=True)
    second = logging_utils.setup_logging(log_dir=tmp_path / "b", console=False)

    assert second == first


@pytest.mark.usefixtures("restore_root_logging")
def test_setup_logging_honours_environment_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("QUILLMAGIC_LOG_DIR", str(tmp_path / "env-logs"))

    log_path = logging_utils.setup_logging(console=False, force=True)

    assert log_path.parent == tmp_path / "env-logs"


@pytest.mark.parametrize(
    ("value", "expected"),
    [("debug", logging.DEBUG), (" Warning ", logging.WARNING), (10, 10), (None, logging.INFO), ("loud", logging.INFO)],
)
def test_resolve_level(value, expected) -> None:
    assert logging_utils.resolve_level(value) == expected
