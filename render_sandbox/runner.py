"""Spawn a throwaway headless Chromium against the file server."""

from __future__ import annotations

import asyncio
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import structlog

from .errors import InvalidArgument, SandboxExecutionError, SandboxTimeoutError
from .file_server import LOOPBACK_HOST
from .window import WindowSize

logger = structlog.get_logger(__name__)

DEFAULT_CHROMIUM_BINARY = "chromium"

ISOLATION_FLAGS = (
    "--headless",
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-extensions",
    "--disable-sync",
    "--disable-background-networking",
    "--disable-component-update",
    "--disable-default-apps",
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--hide-scrollbars",
    "--mute-audio",
    # Only the file server is reachable by name, and only over IPv4.
    f"--host-resolver-rules=MAP localhost {LOOPBACK_HOST} , MAP * ~NOTFOUND",
)


@dataclass(frozen=True)
class SandboxLaunch:
    binary: str
    no_sandbox: bool = False
    timeout_seconds: float | None = None
    virtual_time_budget_ms: int | None = None


def target_url(port: int, entry_path: str) -> str:
    if not isinstance(entry_path, str) or not entry_path.startswith("/"):
        raise InvalidArgument(f"entry path must start with '/': {entry_path!r}")
    if not isinstance(port, int) or not 0 < port < 65536:
        raise InvalidArgument(f"invalid port: {port!r}")
    return f"http://localhost:{port}{entry_path}"


def build_command(
    launch: SandboxLaunch,
    profile_dir: str,
    mode_args: Sequence[str],
    url: str,
) -> list[str]:
    cmd = [launch.binary, *ISOLATION_FLAGS, f"--user-data-dir={profile_dir}"]
    if launch.no_sandbox:
        cmd.append("--no-sandbox")
    if launch.virtual_time_budget_ms is not None:
        cmd.append(f"--virtual-time-budget={int(launch.virtual_time_budget_ms)}")
    cmd.extend(mode_args)
    cmd.append(url)
    return cmd


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        pass
    await proc.wait()


async def _run_chromium(launch: SandboxLaunch, mode_args: Sequence[str], url: str) -> str:
    """Run Chromium to completion and return its stdout."""
    profile_dir = tempfile.mkdtemp(prefix="render-sandbox-profile-")
    cmd = build_command(launch, profile_dir, mode_args, url)
    started = time.perf_counter()
    try:
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error("Sandbox launch failed", binary=launch.binary, error=str(e))
            raise SandboxExecutionError(
                f"failed to launch {launch.binary}: {e}",
                exit_code=None,
                stderr=str(e),
                command=cmd,
            ) from e

        try:
            if launch.timeout_seconds is None:
                out_b, err_b = await proc.communicate()
            else:
                out_b, err_b = await asyncio.wait_for(proc.communicate(), timeout=launch.timeout_seconds)
        except asyncio.TimeoutError:
            await _kill(proc)
            logger.error("Sandbox timed out", binary=launch.binary, url=url, timeout=launch.timeout_seconds)
            raise SandboxTimeoutError(
                f"{launch.binary} did not exit within {launch.timeout_seconds}s",
                exit_code=None,
                command=cmd,
            ) from None
        except BaseException:
            # Cancellation or anything else: never leave the browser running.
            await asyncio.shield(_kill(proc))
            raise
    finally:
        shutil.rmtree(profile_dir, ignore_errors=True)

    out = (out_b or b"").decode("utf-8", errors="replace")
    err = (err_b or b"").decode("utf-8", errors="replace")
    elapsed = round(time.perf_counter() - started, 3)
    if proc.returncode != 0:
        logger.error("Sandbox exited non-zero", binary=launch.binary, exit_code=proc.returncode, elapsed=elapsed)
        raise SandboxExecutionError(
            f"{launch.binary} exited with status {proc.returncode}",
            exit_code=proc.returncode,
            stderr=err,
            command=cmd,
        )
    logger.debug("Sandbox exited", url=url, elapsed=elapsed, stdout_bytes=len(out_b or b""))
    return out


async def run_eval(port: int, entry_path: str, launch: SandboxLaunch) -> str:
    """Load the page and return Chromium's serialized DOM."""
    return await _run_chromium(launch, ["--dump-dom"], target_url(port, entry_path))


async def run_screenshot(
    port: int,
    entry_path: str,
    launch: SandboxLaunch,
    window_size: WindowSize,
    output_path: str | Path,
) -> None:
    """Load the page at ``window_size`` and write a PNG capture to ``output_path``."""
    url = target_url(port, entry_path)
    output = Path(output_path).resolve()
    mode_args = [f"--window-size={window_size.flag_value()}", f"--screenshot={output}"]
    await _run_chromium(launch, mode_args, url)
