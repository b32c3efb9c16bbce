"""Tests for the application bootstrap helpers."""

from __future__ import annotations

import io
import json
import logging
from pathlib import Path
from typing import cast

import pytest

from quillmagic import app
from quillmagic.ai.backend import OpenAIBackend
from quillmagic.chat.session import ChatSession
from quillmagic.editor.workspace import DocumentWorkspace
from quillmagic.flows.controller import FlowController
from quillmagic.services.settings import Settings, SettingsStore
from tests.helpers import FakeBackend, FakeResultSurfaceFactory, RecordingNotifier, ScriptedPrompter


def test_coerce_cli_overrides_uses_field_types() -> None:
    overrides = app._coerce_cli_overrides(
        [
            "model=gpt-4o",
            "temperature=0.7",
            "max_retries=5",
            "debug_logging=on",
            "organization=none",
            'default_headers={"X-Test": "1"}',
        ]
    )

    assert overrides == {
        "model": "gpt-4o",
        "temperature": 0.7,
        "max_retries": 5,
        "debug_logging": True,
        "organization": None,
        "default_headers": {"X-Test": "1"},
    }


@pytest.mark.parametrize("entry", ["model", "=x", "nope=1", "debug_logging=maybe", "default_headers=[1]"])
def test_coerce_cli_overrides_rejects_bad_entries(entry: str) -> None:
    with pytest.raises(ValueError):
        app._coerce_cli_overrides([entry])


def test_build_backend_shares_session(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = {}

    class _RecordingClient:
        def __init__(self, settings):
            captured["settings"] = settings

    monkeypatch.setattr(app, "AIClient", _RecordingClient)
    session = ChatSession()
    settings = Settings(api_key="key", model="local", completion_endpoint="weird", chat_system_prompt="")

    backend = app.build_backend(settings, session=session, debug_logging=True)

    assert isinstance(backend, OpenAIBackend)
    assert backend.session is session
    client_settings = captured["settings"]
    assert client_settings.model == "local"
    assert client_settings.completion_endpoint == "chat"
    assert client_settings.debug_logging is True


@pytest.mark.asyncio
async def test_controller_factory_uses_configured_max_tokens() -> None:
    backend = FakeBackend()
    backend.complete_replies.append("1")
    workspace = DocumentWorkspace()
    workspace.create_tab(text="x = ", path="/tmp/example.py")
    workspace.set_selection(0, 4)
    factory = app.build_controller_factory(Settings(default_max_tokens=512), cast(OpenAIBackend, backend))

    controller = factory(
        surface=workspace,
        notifier=RecordingNotifier(),
        prompter=ScriptedPrompter(),
        result_surfaces=FakeResultSurfaceFactory(),
    )
    await controller.append_completion()

    assert isinstance(controller, FlowController)
    assert backend.complete_calls == [(["x = "], 512, None)]


@pytest.mark.parametrize(
    ("debug", "env_value", "expected"),
    [(False, None, logging.INFO), (False, "warning", logging.WARNING), (False, "bogus", logging.INFO), (True, "error", logging.DEBUG)],
)
def test_configure_logging_honours_level_variable(
    monkeypatch: pytest.MonkeyPatch, debug: bool, env_value: str | None, expected: int
) -> None:
    levels: list[int] = []
    monkeypatch.setattr(app.logging_utils, "setup_logging", lambda level, **kwargs: levels.append(level))
    monkeypatch.setattr(app, "_install_qt_message_handler", lambda: None)
    if env_value is not None:
        monkeypatch.setenv("QUILLMAGIC_LOG_LEVEL", env_value)

    app.configure_logging(debug)

    assert levels == [expected]


def test_load_settings_reads_store(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")
    store.save(Settings(model="saved"))

    assert app.load_settings(store=store, overrides={"font_size": 20}).font_size == 20
    assert app.load_settings(store=store).model == "saved"


def test_dump_settings_redacts_api_key(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("QUILLMAGIC_MODEL", "env-model")
    store = SettingsStore(tmp_path / "settings.json")
    stream = io.StringIO()

    app._dump_settings(Settings(api_key="sk-abcdef"), store, overrides={"model": "x"}, stream=stream)
    payload = json.loads(stream.getvalue())

    assert payload["settings"]["api_key"] == "sk*****ef"
    assert payload["meta"]["secret_backend"] == "fernet"
    assert payload["meta"]["cli_overrides"] == ["model"]
    assert "QUILLMAGIC_MODEL" in payload["meta"]["environment_variables"]


def test_main_dump_settings_exits_before_ui(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(app, "configure_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr(app, "create_qapp", lambda: pytest.fail("UI should not start"))
    settings_path = tmp_path / "settings.json"

    app.main(["--dump-settings", "--settings-path", str(settings_path), "--set", "model=cli-model"])
    payload = json.loads(capsys.readouterr().out)

    assert payload["settings"]["model"] == "cli-model"
    assert payload["meta"]["path"] == str(settings_path)


def test_main_rejects_invalid_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(app, "configure_logging", lambda *args, **kwargs: None)

    with pytest.raises(SystemExit) as excinfo:
        app.main(["--settings-path", str(tmp_path / "s.json"), "--set", "bogus=1"])

    assert excinfo.value.code == 2


def test_env_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("QUILLMAGIC_DEBUG", "Yes")

    assert app._env_flag("QUILLMAGIC_DEBUG") is True
    assert app._env_flag("QUILLMAGIC_UNSET", default=True) is True
