"""Download third-party libraries that generator programs may depend on."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import httpx
import structlog

from .content import VENDOR_DIR, Library
from .errors import InvalidArgument, RenderError

logger = structlog.get_logger(__name__)

# Art Blocks projects declare "p5js" and were written against p5 1.0.0.
LIBRARY_URLS: dict[Library, str] = {
    Library.P5JS: "https://cdnjs.cloudflare.com/ajax/libs/p5.js/1.0.0/p5.min.js",
}


def fetch_vendor_library(
    library: Library | str,
    vendor_dir: Path | None = None,
    *,
    url: str | None = None,
    client: httpx.Client | None = None,
    timeout_seconds: float = 30.0,
) -> Path:
    """Fetch ``library`` into the vendor directory and return the written path."""
    library = Library.parse(library)
    if library.filename is None:
        raise InvalidArgument(f"library {library.value!r} has nothing to vendor")
    source = url or LIBRARY_URLS[library]
    target_dir = Path(vendor_dir or VENDOR_DIR)
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / library.filename

    logger.info("Fetching vendor library", library=library.value, url=source)
    owns_client = client is None
    http = client or httpx.Client(timeout=timeout_seconds, follow_redirects=True)
    try:
        response = http.get(source)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise RenderError(f"failed to fetch {library.value} from {source}: {e}") from e
    finally:
        if owns_client:
            http.close()

    # Renders only ever see a complete file.
    fd, tmp_name = tempfile.mkstemp(prefix=f".{library.filename}.", dir=target_dir)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(response.content)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    logger.info("Vendored library", library=library.value, path=str(target), size=len(response.content))
    return target
