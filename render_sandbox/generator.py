"""Render a generator program for one token."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog

from .content import GeneratorSpec, assemble
from .untrusted_html import RenderOptions, eval_untrusted_html, screenshot_untrusted_html
from .window import DEFAULT_LONG_EDGE, compute_window_size

logger = structlog.get_logger(__name__)


async def generate(
    spec: GeneratorSpec,
    token_data: Any,
    output_path: str | Path,
    options: RenderOptions | None = None,
    *,
    long_edge: int = DEFAULT_LONG_EDGE,
    vendor_dir: Path | None = None,
) -> None:
    """Screenshot ``spec`` run against ``token_data`` at the spec's aspect ratio."""
    # Assembly and sizing fail before any port is bound.
    files = assemble(spec, token_data, vendor_dir=vendor_dir)
    window_size = compute_window_size(spec.aspect_ratio, long_edge)
    options = (options or RenderOptions()).with_window_size(window_size)
    await screenshot_untrusted_html(files, output_path, options)
    logger.info("Generated image", output=str(output_path), window_size=window_size.flag_value())


async def evaluate(
    spec: GeneratorSpec,
    token_data: Any,
    options: RenderOptions | None = None,
    *,
    vendor_dir: Path | None = None,
) -> str:
    """Run ``spec`` against ``token_data`` and return the resulting body text."""
    files = assemble(spec, token_data, vendor_dir=vendor_dir)
    return await eval_untrusted_html(files, options)
