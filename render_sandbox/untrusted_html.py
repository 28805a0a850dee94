"""Evaluate or screenshot untrusted HTML and JavaScript in a Chromium sandbox.

Both entry points take a file set mapping URL paths like ``"/index.html"`` to
contents like ``"<!DOCTYPE html>..."``. Paths ending in ``.html`` or ``.js``
are served with matching content types; everything else is served as
``application/octet-stream``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

import structlog
from bs4 import BeautifulSoup

from .content import ENTRY_PATH, VirtualFileSet
from .errors import InvalidArgument, MalformedOutput
from .file_server import start_file_server
from .runner import DEFAULT_CHROMIUM_BINARY, SandboxLaunch, run_eval, run_screenshot
from .window import DEFAULT_WINDOW_SIZE, WindowSize

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RenderOptions:
    entry_path: str = ENTRY_PATH
    chromium_binary: str = DEFAULT_CHROMIUM_BINARY
    window_size: WindowSize = DEFAULT_WINDOW_SIZE
    timeout_seconds: float | None = None
    virtual_time_budget_ms: int | None = None
    no_sandbox: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.entry_path, str) or not self.entry_path.startswith("/"):
            raise InvalidArgument(f"entry path must start with '/': {self.entry_path!r}")
        if not self.chromium_binary:
            raise InvalidArgument("chromium binary must be set")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise InvalidArgument(f"timeout must be positive: {self.timeout_seconds!r}")

    def with_window_size(self, window_size: WindowSize) -> "RenderOptions":
        return replace(self, window_size=window_size)

    def launch(self) -> SandboxLaunch:
        return SandboxLaunch(
            binary=self.chromium_binary,
            no_sandbox=self.no_sandbox,
            timeout_seconds=self.timeout_seconds,
            virtual_time_budget_ms=self.virtual_time_budget_ms,
        )


async def _with_file_server(files: VirtualFileSet, callback: Callable[[int], Awaitable[T]]) -> T:
    server = start_file_server(files)
    try:
        return await callback(server.port)
    finally:
        await asyncio.to_thread(server.stop)


def extract_body_text(raw_html: str) -> str:
    """Return the text content of the document's ``body`` element."""
    soup = BeautifulSoup(raw_html, "html.parser")
    body = soup.find("body")
    if body is None:
        raise MalformedOutput("sandbox output has no <body> element")
    return body.get_text()


async def eval_untrusted_html(files: VirtualFileSet, options: RenderOptions | None = None) -> str:
    """Load the entry page in the sandbox and return the inner text of ``body``."""
    options = options or RenderOptions()
    launch = options.launch()
    logger.info("Evaluating untrusted HTML", entry=options.entry_path, files=len(files))
    raw_html = await _with_file_server(files, lambda port: run_eval(port, options.entry_path, launch))
    return extract_body_text(raw_html)


async def screenshot_untrusted_html(
    files: VirtualFileSet,
    output_path: str | Path,
    options: RenderOptions | None = None,
) -> None:
    """Load the entry page in the sandbox and save a PNG screenshot to ``output_path``."""
    options = options or RenderOptions()
    launch = options.launch()
    logger.info(
        "Screenshotting untrusted HTML",
        entry=options.entry_path,
        files=len(files),
        window_size=options.window_size.flag_value(),
        output=str(output_path),
    )
    await _with_file_server(
        files,
        lambda port: run_screenshot(port, options.entry_path, launch, options.window_size, output_path),
    )
