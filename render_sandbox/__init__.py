"""Render untrusted generative-art programs in a headless Chromium sandbox.

A render call assembles an in-memory file set, serves it from an ephemeral
loopback HTTP server, points a throwaway Chromium process at it and collects
either the page's body text (eval mode) or a screenshot (screenshot mode).
"""

from .content import GeneratorSpec, Library, assemble
from .errors import (
    BindError,
    InvalidArgument,
    LibraryUnavailable,
    MalformedOutput,
    RenderError,
    SandboxExecutionError,
    SandboxTimeoutError,
    UnsupportedLibrary,
)
from .untrusted_html import RenderOptions, eval_untrusted_html, screenshot_untrusted_html
from .window import WindowSize, compute_window_size, normalize_aspect_ratio

__all__ = [
    "BindError",
    "GeneratorSpec",
    "InvalidArgument",
    "Library",
    "LibraryUnavailable",
    "MalformedOutput",
    "RenderError",
    "RenderOptions",
    "SandboxExecutionError",
    "SandboxTimeoutError",
    "UnsupportedLibrary",
    "WindowSize",
    "assemble",
    "compute_window_size",
    "eval_untrusted_html",
    "normalize_aspect_ratio",
    "screenshot_untrusted_html",
]
