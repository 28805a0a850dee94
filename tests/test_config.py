from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from render_sandbox.config import RenderSettings, load_config

_ENV = ["CHROMIUM_PATH", "RENDER_TIMEOUT_SECONDS", "RENDER_NO_SANDBOX", "RENDER_CONCURRENCY", "LOG_LEVEL"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("RENDER_SANDBOX_CONFIG", str(tmp_path / "absent.yaml"))


def test_defaults_when_no_file() -> None:
    settings = load_config()
    assert settings == RenderSettings()
    assert settings.entry_path == "/index.html"
    assert settings.long_edge == 2400
    assert settings.concurrency == 4
    assert settings.chromium_binary is None


def test_yaml_file_then_env_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = tmp_path / "render.yaml"
    path.write_text("chromium_binary: /opt/chrome\nlong_edge: 1200\nconcurrency: 2\ntimeout_seconds: 30\n")
    monkeypatch.setenv("RENDER_CONCURRENCY", "8")
    monkeypatch.setenv("RENDER_NO_SANDBOX", "yes")
    settings = load_config(str(path))
    assert settings.chromium_binary == "/opt/chrome"
    assert settings.long_edge == 1200
    assert settings.concurrency == 8
    assert settings.no_sandbox is True
    assert settings.timeout_seconds == 30


def test_config_path_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = tmp_path / "other.yaml"
    path.write_text("log_level: DEBUG\n")
    monkeypatch.setenv("RENDER_SANDBOX_CONFIG", str(path))
    assert load_config().log_level == "DEBUG"


def test_invalid_values_rejected(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("concurrency: 0\n")
    with pytest.raises(ValidationError):
        load_config(str(path))


def test_render_options_from_settings() -> None:
    settings = RenderSettings(timeout_seconds=12.5, no_sandbox=True, virtual_time_budget_ms=3000)
    options = settings.render_options("/usr/bin/chromium")
    assert options.chromium_binary == "/usr/bin/chromium"
    assert options.timeout_seconds == 12.5
    assert options.no_sandbox is True
    assert options.launch().virtual_time_budget_ms == 3000
