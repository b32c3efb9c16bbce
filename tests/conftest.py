"""Shared pytest fixtures."""

from __future__ import annotations

import logging
import os

import pytest

from quillmagic.editor.workspace import DocumentWorkspace
from quillmagic.flows.controller import FlowController
from tests.helpers import FakeBackend, FakeResultSurfaceFactory, RecordingNotifier, ScriptedPrompter

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in list(os.environ):
        if name.startswith("QUILLMAGIC_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("QUILLMAGIC_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def workspace() -> DocumentWorkspace:
    return DocumentWorkspace()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def prompter() -> ScriptedPrompter:
    return ScriptedPrompter()


@pytest.fixture
def result_surfaces() -> FakeResultSurfaceFactory:
    return FakeResultSurfaceFactory()


@pytest.fixture
def controller(
    backend: FakeBackend,
    workspace: DocumentWorkspace,
    notifier: RecordingNotifier,
    prompter: ScriptedPrompter,
    result_surfaces: FakeResultSurfaceFactory,
) -> FlowController:
    return FlowController(
        backend=backend,
        surface=workspace,
        notifier=notifier,
        prompter=prompter,
        result_surfaces=result_surfaces,
    )
