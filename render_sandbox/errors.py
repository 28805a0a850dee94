"""Error taxonomy for sandboxed renders."""

from __future__ import annotations

from typing import Sequence


class RenderError(Exception):
    """Base error for every failure surfaced by a render call."""


class InvalidArgument(RenderError, ValueError):
    """Raised when a generator spec or render option is malformed."""


class UnsupportedLibrary(InvalidArgument):
    """Raised when a generator names a library outside the supported set."""

    def __init__(self, library: object) -> None:
        super().__init__(f"unsupported library: {library!r}")
        self.library = library


class LibraryUnavailable(RenderError):
    """Raised when a supported library's payload is missing from the vendor directory."""


class BindError(RenderError, OSError):
    """Raised when the file server cannot reach a listening state."""


class SandboxExecutionError(RenderError):
    """Raised when the browser process fails to launch or exits non-zero."""

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None,
        stderr: str = "",
        command: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr
        self.command = tuple(command)

    def __str__(self) -> str:
        base = super().__str__()
        tail = self.stderr.strip()
        if not tail:
            return base
        # Chromium can be chatty; the last lines carry the cause.
        lines = tail.splitlines()[-5:]
        return base + "\n" + "\n".join(lines)


class SandboxTimeoutError(SandboxExecutionError):
    """Raised when the browser process outlives the configured timeout and is killed."""


class MalformedOutput(RenderError):
    """Raised when eval-mode output has no extractable body element."""
