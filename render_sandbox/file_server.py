"""Loopback-only HTTP server over an in-memory file set.

The served content is attacker-controlled by construction, so the server
binds to an OS-assigned port on 127.0.0.1 and never anywhere else.
"""

from __future__ import annotations

import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from types import MappingProxyType
from typing import Mapping

import structlog

from .content import VirtualFileSet
from .errors import BindError, InvalidArgument

logger = structlog.get_logger(__name__)

# IPv4 only. The sandbox maps "localhost" to this address through its resolver
# rules, so it never tries ::1 first.
LOOPBACK_HOST = "127.0.0.1"
NOT_FOUND_BODY = b"Not Found\n"


def content_type_for(path: str) -> str:
    if path.endswith(".html"):
        return "text/html; charset=utf-8"
    if path.endswith(".js"):
        return "application/javascript; charset=utf-8"
    return "application/octet-stream"


def _freeze(files: VirtualFileSet) -> Mapping[str, bytes]:
    frozen: dict[str, bytes] = {}
    for path, data in files.items():
        if not isinstance(path, str) or not path.startswith("/"):
            raise InvalidArgument(f"file set paths must start with '/': {path!r}")
        if isinstance(data, str):
            try:
                data = data.encode("utf-8")
            except UnicodeEncodeError as e:
                raise InvalidArgument(f"file content for {path} is not encodable as UTF-8: {e}") from e
        elif not isinstance(data, (bytes, bytearray, memoryview)):
            raise InvalidArgument(f"file content for {path} must be str or bytes")
        frozen[path] = bytes(data)
    return MappingProxyType(frozen)


class _FileSetHandler(BaseHTTPRequestHandler):
    server: "_FileSetServer"

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        logger.debug("File server request", port=self.server.server_port, line=format % args)

    def do_GET(self) -> None:  # noqa: N802
        self._respond(send_body=True)

    def do_HEAD(self) -> None:  # noqa: N802
        self._respond(send_body=False)

    def _respond(self, *, send_body: bool) -> None:
        # Exact match on the raw request target: no normalization, no query stripping.
        body = self.server.files.get(self.path)
        if body is None:
            status, content_type, body = 404, "text/plain; charset=utf-8", NOT_FOUND_BODY
        else:
            status, content_type = 200, content_type_for(self.path)

        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-store")
        self.end_headers()
        if send_body:
            self.wfile.write(body)


class _FileSetServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, files: Mapping[str, bytes]) -> None:
        self.files = files
        super().__init__((LOOPBACK_HOST, 0), _FileSetHandler)


class FileServerHandle:
    """A running file server. ``stop()`` releases the port; calling it again is a no-op."""

    def __init__(self, httpd: _FileSetServer, thread: threading.Thread) -> None:
        self._httpd = httpd
        self._thread = thread
        self._lock = threading.Lock()
        self._stopped = False
        self.host, self.port = httpd.server_address[:2]

    @property
    def stopped(self) -> bool:
        return self._stopped

    def url_for(self, path: str) -> str:
        return f"http://localhost:{self.port}{path}"

    def stop(self) -> None:
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
        self._httpd.shutdown()
        self._thread.join(timeout=5)
        self._httpd.server_close()
        logger.debug("File server stopped", port=self.port)

    def __enter__(self) -> "FileServerHandle":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()


def start_file_server(files: VirtualFileSet) -> FileServerHandle:
    """Serve ``files`` on an ephemeral loopback port.

    Returns once the socket is listening. Raises ``BindError`` if it cannot be.
    """
    frozen = _freeze(files)
    try:
        httpd = _FileSetServer(frozen)
    except OSError as e:
        logger.error("File server failed to bind", host=LOOPBACK_HOST, error=str(e))
        raise BindError(f"file server failed to listen on {LOOPBACK_HOST}: {e}") from e

    thread = threading.Thread(
        target=httpd.serve_forever,
        name=f"file-server-{httpd.server_port}",
        daemon=True,
    )
    thread.start()
    handle = FileServerHandle(httpd, thread)
    logger.debug("File server listening", port=handle.port, paths=len(frozen))
    return handle
