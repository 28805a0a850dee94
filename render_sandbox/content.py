"""Assemble the virtual file set for one generator program."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

import structlog

from .errors import InvalidArgument, LibraryUnavailable, UnsupportedLibrary
from .window import check_aspect_ratio, normalize_aspect_ratio

logger = structlog.get_logger(__name__)

FileContent = Union[str, bytes]
VirtualFileSet = Mapping[str, FileContent]

VENDOR_DIR = Path(__file__).resolve().parent / "vendor"

ENTRY_PATH = "/index.html"
LIBRARY_PATH = "/lib.js"
SCRIPT_PATH = "/script.js"

GLOBAL_STYLE = """\
html {
  height: 100%;
}
body {
  min-height: 100%;
  margin: 0;
  padding: 0;
}
canvas {
  padding: 0;
  margin: auto;
  display: block;
  position: absolute;
  top: 0;
  bottom: 0;
  left: 0;
  right: 0;
}
"""

# Characters that could end a <script> element or an HTML comment. json.dumps
# already escapes everything outside ASCII, lone surrogates included.
_SCRIPT_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
}


class Library(str, Enum):
    NONE = "none"
    P5JS = "p5js"

    @classmethod
    def parse(cls, value: object) -> "Library":
        if isinstance(value, cls):
            return value
        if value == "js":
            return cls.NONE
        for member in cls:
            if member.value == value:
                return member
        raise UnsupportedLibrary(value)

    @property
    def filename(self) -> str | None:
        return _LIBRARY_FILES[self]


_LIBRARY_FILES: dict[Library, str | None] = {
    Library.NONE: None,
    Library.P5JS: "p5.min.js",
}


@dataclass(frozen=True)
class GeneratorSpec:
    script: str
    library: Union[Library, str] = Library.NONE
    aspect_ratio: Optional[float] = None

    def __post_init__(self) -> None:
        if self.aspect_ratio is None:
            raise InvalidArgument("generator spec: aspect ratio is required")
        check_aspect_ratio(self.aspect_ratio, "generator spec")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GeneratorSpec":
        """Build a spec from project metadata (camelCase or snake_case keys)."""
        script = data.get("script")
        if not isinstance(script, str):
            raise InvalidArgument("generator spec: 'script' must be a string")
        raw_ratio = data["aspectRatio"] if "aspectRatio" in data else data.get("aspect_ratio")
        return cls(
            script=script,
            library=data.get("library", Library.NONE.value),
            aspect_ratio=normalize_aspect_ratio(raw_ratio),
        )


def read_library(library: Library, vendor_dir: Path | None = None) -> bytes | None:
    filename = library.filename
    if filename is None:
        return None
    path = Path(vendor_dir or VENDOR_DIR) / filename
    try:
        return path.read_bytes()
    except FileNotFoundError:
        raise LibraryUnavailable(
            f"library {library.value!r} is not vendored: missing {path} "
            f"(run `python -m render_sandbox fetch-vendor --library {library.value}`)"
        ) from None


def embed_token_data(token_data: Any) -> str:
    """Serialize token data as a JS literal that is safe inside a <script> element."""
    try:
        encoded = json.dumps(token_data, allow_nan=False, ensure_ascii=True)
    except (TypeError, ValueError) as e:
        raise InvalidArgument(f"token data is not JSON-serializable: {e}") from e
    return "".join(_SCRIPT_ESCAPES.get(ch, ch) for ch in encoded)


def assemble(
    spec: GeneratorSpec,
    token_data: Any,
    *,
    vendor_dir: Path | None = None,
) -> VirtualFileSet:
    """Build the file set that runs ``spec.script`` against ``token_data``.

    The untrusted script is always served as its own file rather than inlined,
    so the browser applies per-resource content typing and error isolation.
    """
    library = Library.parse(spec.library)
    library_data = read_library(library, vendor_dir)
    token_literal = embed_token_data(token_data)

    files: dict[str, FileContent] = {}
    if library_data is not None:
        files[LIBRARY_PATH] = library_data
    files[SCRIPT_PATH] = spec.script

    index_html = ["<!DOCTYPE html>", "<html><head>", '<meta charset="utf-8"/>']
    if library_data is not None:
        index_html.append(f'<script src="{LIBRARY_PATH}"></script>')
    index_html.append(f"<script>let tokenData = {token_literal};</script>")
    index_html.append(f'<script src="{SCRIPT_PATH}"></script>')
    index_html.append(f"<style>{GLOBAL_STYLE}</style>")
    index_html.append("</head></html>")
    files[ENTRY_PATH] = "".join(index_html)

    logger.debug("Assembled file set", library=library.value, paths=sorted(files))
    return MappingProxyType(files)
