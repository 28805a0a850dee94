"""Locate a Chromium build to run the sandbox with."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from .runner import DEFAULT_CHROMIUM_BINARY

logger = structlog.get_logger(__name__)

_INSTALL_CANDIDATES = [
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/usr/bin/google-chrome",
    "/usr/bin/google-chrome-stable",
    "/Applications/Chromium.app/Contents/MacOS/Chromium",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
]

_PATH_NAMES = ["chromium", "chromium-browser", "google-chrome", "google-chrome-stable"]


def find_chromium_executable() -> str | None:
    env_path = os.getenv("CHROMIUM_PATH")
    if env_path and Path(env_path).exists():
        return env_path

    for path in _INSTALL_CANDIDATES:
        if Path(path).exists():
            return path
    for name in _PATH_NAMES:
        found = shutil.which(name)
        if found:
            return found
    return None


async def playwright_chromium_executable() -> str | None:
    """Path of the Chromium build managed by ``playwright install chromium``, if present."""
    try:
        async with async_playwright() as p:
            path = p.chromium.executable_path
    except PlaywrightError as e:
        logger.warning("Playwright driver unavailable", error=str(e))
        return None
    if path and Path(path).exists():
        return path
    return None


async def resolve_chromium_binary(configured: str | None = None) -> str:
    """Pick the browser binary: explicit setting, system install, then Playwright's build."""
    if configured:
        return configured
    found = find_chromium_executable()
    if found:
        return found
    found = await playwright_chromium_executable()
    if found:
        logger.info("Using Playwright-managed Chromium", path=found)
        return found
    return DEFAULT_CHROMIUM_BINARY
