from __future__ import annotations

import json
from pathlib import Path

import pytest
import structlog

from render_sandbox.cli import main

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


@pytest.fixture
def cli_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, fake_browser):
    monkeypatch.setenv("RENDER_SANDBOX_CONFIG", str(tmp_path / "absent.yaml"))
    monkeypatch.setenv("CHROMIUM_PATH", str(fake_browser.path))
    for name in ["RENDER_TIMEOUT_SECONDS", "RENDER_NO_SANDBOX", "RENDER_CONCURRENCY", "LOG_LEVEL"]:
        monkeypatch.delenv(name, raising=False)
    yield fake_browser
    structlog.reset_defaults()


def _write(path: Path, data) -> str:
    path.write_text(json.dumps(data) if not isinstance(data, str) else data)
    return str(path)


def test_eval_prints_body_text(cli_env, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    index = _write(tmp_path / "index.html", "<body><script src='/f.js'></script>features</body>")
    extra = _write(tmp_path / "f.js", "var f = 1;")
    assert main(["eval", index, "--file", f"/f.js={extra}"]) == 0
    assert capsys.readouterr().out.strip() == "features"


def test_screenshot_with_window_size(cli_env, tmp_path: Path) -> None:
    index = _write(tmp_path / "index.html", "<body>hi</body>")
    out = tmp_path / "shot.png"
    assert main(["screenshot", index, str(out), "--width", "320", "--height", "200"]) == 0
    assert out.read_bytes().startswith(PNG_SIGNATURE)
    assert "--window-size=320,200" in cli_env.calls[0]


def test_generate_from_project_metadata(cli_env, tmp_path: Path) -> None:
    generator = _write(tmp_path / "gen.json", {"script": "/* art */", "library": "js", "aspectRatio": "3/4"})
    token = _write(tmp_path / "token.json", {"tokenId": 12, "hash": "0xab"})
    out = tmp_path / "12.png"
    assert main(["generate", generator, token, str(out)]) == 0
    assert out.read_bytes().startswith(PNG_SIGNATURE)
    assert "--window-size=1800,2400" in cli_env.calls[0]


def test_generator_spec_may_be_yaml(cli_env, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    generator = _write(tmp_path / "gen.yaml", "script: '/* art */'\nlibrary: none\naspectRatio: 1\n")
    token = _write(tmp_path / "token.json", {"tokenId": 1})
    assert main(["features", generator, token]) == 0
    assert 'let tokenData = {"tokenId": 1};' in capsys.readouterr().out


def test_batch_reports_failures(cli_env, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    generator = _write(tmp_path / "gen.json", {"script": "", "aspectRatio": 1})
    tokens = _write(tmp_path / "tokens.json", [{"tokenId": 1}, {"tokenId": 2, "m": "FAKE_EXIT"}])
    assert main(["batch", generator, tokens, str(tmp_path / "out"), "--concurrency", "2"]) == 1
    lines = capsys.readouterr().out.strip().splitlines()
    assert lines[0].endswith("\tok")
    assert "failed" in lines[1]
    assert (tmp_path / "out" / "1.png").exists()


def test_unsupported_library_exits_1(cli_env, tmp_path: Path) -> None:
    generator = _write(tmp_path / "gen.json", {"script": "", "library": "tone.js", "aspectRatio": 1})
    token = _write(tmp_path / "token.json", {})
    assert main(["generate", generator, token, str(tmp_path / "o.png")]) == 1
    assert cli_env.calls == []


def test_browser_failure_exits_1(monkeypatch: pytest.MonkeyPatch, cli_env, make_fake_browser, tmp_path: Path) -> None:
    monkeypatch.setenv("CHROMIUM_PATH", str(make_fake_browser(exit_code=9).path))
    index = _write(tmp_path / "index.html", "<body>x</body>")
    assert main(["eval", index]) == 1


def test_usage_error_exits_2(cli_env) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["render-everything"])
    assert exc_info.value.code == 2


@pytest.mark.parametrize(
    "name, value",
    [("RENDER_CONCURRENCY", "abc"), ("RENDER_TIMEOUT_SECONDS", "soon"), ("RENDER_TIMEOUT_SECONDS", "-5")],
)
def test_bad_environment_setting_exits_1(
    monkeypatch: pytest.MonkeyPatch, cli_env, tmp_path: Path, capsys: pytest.CaptureFixture[str], name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)
    index = _write(tmp_path / "index.html", "<body>x</body>")
    assert main(["eval", index]) == 1
    assert "Invalid configuration" in capsys.readouterr().err
    assert cli_env.calls == []


@pytest.mark.parametrize("content", ["concurrency: 0\n", "- not\n- a mapping\n", "timeout_seconds: [\n"])
def test_bad_config_file_exits_1(cli_env, tmp_path: Path, content: str) -> None:
    config = _write(tmp_path / "render.yaml", content)
    index = _write(tmp_path / "index.html", "<body>x</body>")
    assert main(["--config", config, "eval", index]) == 1
    assert cli_env.calls == []
