# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""WSGI server exposing disc images for ranged reads (threaded backend).

This module exposes a minimal WebOb-based WSGI application serving a fixed
set of files. Clients may ask for the size of a file with ``HEAD`` and read
an inclusive byte span with a ranged ``GET``; anything else is refused. The
application is hosted on a ``wsgiref`` server that the owner drives in
bounded slices, see :class:`RangeFileServer`.
"""

import os
import time
from socketserver import ThreadingMixIn
from typing import Callable, Dict, Optional
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from oslo_log import log as logging
from webob import Request, Response

from .utils import (
    CHUNK_READ_SIZE,
    BadRequestError,
    RangeNotSatisfiableError,
    RangeRequest,
    ServedFile,
    iter_range,
    open_range,
)

LOG = logging.getLogger(__name__)

OCTET_STREAM = "application/octet-stream"


def _error(status: int, detail: str) -> Response:
    """Return a plain-text error response with the given HTTP status and detail."""
    return Response(text=detail, status=status, content_type="text/plain")


def head_ep(served: ServedFile) -> Response:
    """Report the size of a file and that byte ranges are accepted."""
    try:
        size = os.path.getsize(served.absolute_path)
    except OSError as exc:
        LOG.warning("Cannot stat %s: %s", served.absolute_path, exc)
        return _error(500, "File access failed.")
    response = Response(status=200, content_type=OCTET_STREAM)
    response.content_length = size
    response.accept_ranges = "bytes"
    return response


def get_range_ep(request: Request, served: ServedFile) -> Response:
    """Stream the byte span named by the Range header."""
    header = request.headers.get("Range")
    if header is None:
        return _error(418, "This server only supports range requests.")
    try:
        byte_range = RangeRequest.parse(header)
    except BadRequestError as exc:
        LOG.debug("Rejecting %s: %s", request.path_info, exc)
        return _error(400, "Could not understand range request.")

    try:
        size = os.path.getsize(served.absolute_path)
        byte_range.check(size)
        fp = open_range(served.absolute_path, byte_range.start)
    except RangeNotSatisfiableError as exc:
        LOG.debug("Rejecting %s: %s", request.path_info, exc)
        return _error(416, "Range goes outside of file.")
    except OSError as exc:
        LOG.warning("Cannot read %s: %s", served.absolute_path, exc)
        return _error(500, "File access failed.")

    response = Response(
        status=206,
        content_type=OCTET_STREAM,
        app_iter=iter_range(fp, byte_range.length, CHUNK_READ_SIZE),
    )
    response.content_length = byte_range.length
    response.headers["Content-Range"] = byte_range.content_range(size)
    return response


def _route(request: Request, files: Dict[str, ServedFile]) -> Response:
    """Dispatch incoming requests to the appropriate endpoint handler."""
    served = files.get(request.path_info.replace(" ", "%20"))
    if served is None:
        return _error(404, "Not found")
    if request.method == "HEAD":
        return head_ep(served)
    if request.method == "GET":
        return get_range_ep(request, served)
    response = _error(405, "Only HEAD and ranged GET requests are supported.")
    response.allow = ("GET", "HEAD")
    return response


def make_application(files: Dict[str, ServedFile]) -> Callable:
    """Return a WSGI application serving ``files``, keyed by URL path."""

    def application(environ, start_response):
        """WSGI application callable."""
        request = Request(environ)
        response = _route(request, files)
        return response(environ, start_response)

    return application


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """Threading-based WSGI server."""

    daemon_threads = True


class LoggingRequestHandler(WSGIRequestHandler):
    """Request handler sending the access log to the module logger."""

    def log_message(self, format, *args):
        LOG.debug("%s - %s", self.address_string(), format % args)


class RangeFileServer:
    """Listener serving a fixed set of files, driven in time-boxed slices."""

    def __init__(self, files: Dict[str, ServedFile], host: str, port: int):
        self._app = make_application(files)
        self._host = host
        self._port = port
        self._httpd: Optional[ThreadingWSGIServer] = None

    @property
    def port(self) -> Optional[int]:
        """Port the listener is bound to, None when not listening."""
        if self._httpd is None:
            return None
        return self._httpd.server_address[1]

    def _bind(self, port: int) -> ThreadingWSGIServer:
        return make_server(
            self._host,
            port,
            self._app,
            server_class=ThreadingWSGIServer,
            handler_class=LoggingRequestHandler,
        )

    def listen(self) -> int:
        """Bind the listener and return the bound port.

        Falls back to an OS-assigned port when the preferred one cannot be
        bound. Raises OSError if that fails as well.
        """
        try:
            self._httpd = self._bind(self._port)
        except OSError as exc:
            if not self._port:
                raise
            LOG.warning("Cannot listen on port %d (%s), using any free port", self._port, exc)
            self._httpd = self._bind(0)
        LOG.info("File server listening on %s:%d", self._host, self.port)
        return self.port

    def run_slice(self, seconds: float) -> None:
        """Handle requests for up to ``seconds`` then return."""
        if self._httpd is None:
            raise RuntimeError("server is not listening")
        deadline = time.monotonic() + seconds
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            self._httpd.timeout = remaining
            self._httpd.handle_request()

    def close(self) -> None:
        """Release the listening socket."""
        if self._httpd is not None:
            self._httpd.server_close()
            self._httpd = None
