"""
jsonhttp — TCP server
One connection at a time, one request per connection, then close.

    with Server("127.0.0.1", 6969) as server:
        serve(server, dispatch)
"""

import socket
from typing import BinaryIO, Callable, Iterator

import structlog

from .errors import EarlyEof, HTTPError, TransportError
from .models import Request
from .parser import MAX_BODY_SIZE, MAX_LINE_SIZE, parse_request
from .response import Response

log = structlog.get_logger()

Dispatch = Callable[[Request], Response]

# How often a blocked accept() wakes up to notice close()
ACCEPT_POLL_INTERVAL = 0.5


# ── Connection ────────────────────────────────────────────────────────────────

class Connection:
    """Owns an accepted socket and its buffered halves; `with` releases all three."""

    def __init__(self, sock: socket.socket, peer: tuple):
        self.sock = sock
        self.peer = peer
        self.reader: BinaryIO = sock.makefile("rb")
        self.writer: BinaryIO = sock.makefile("wb")

    @property
    def peer_name(self) -> str:
        return f"{self.peer[0]}:{self.peer[1]}"

    def close(self) -> None:
        for stream in (self.reader, self.writer):
            try:
                stream.close()
            except OSError as e:
                log.debug("jsonhttp.close_error", peer=self.peer_name, error=str(e))
        self.sock.close()

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


# ── Listener ──────────────────────────────────────────────────────────────────

class Server:
    def __init__(self, host: str = "127.0.0.1", port: int = 6969, *, timeout: float | None = None):
        self._sock = socket.create_server((host, port))
        self._sock.settimeout(ACCEPT_POLL_INTERVAL)
        self._closed = False
        self.timeout = timeout

    @property
    def address(self) -> tuple[str, int]:
        host, port = self._sock.getsockname()[:2]
        return host, port

    @property
    def closed(self) -> bool:
        return self._closed

    def listen(self) -> Iterator[Connection]:
        """Yield accepted connections until close() is called."""
        while not self._closed:
            try:
                sock, peer = self._sock.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._closed:
                    break
                log.warning("jsonhttp.accept_error", error=str(e))
                continue
            sock.settimeout(self.timeout)
            yield Connection(sock, peer)

    def close(self) -> None:
        self._closed = True
        self._sock.close()

    def __enter__(self) -> "Server":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


# ── Request handling ──────────────────────────────────────────────────────────

def error_response(error: HTTPError) -> Response:
    return Response(error.status_code).json({
        "error": type(error).__name__,
        "message": str(error),
    })


def send_response(conn: Connection, response: Response) -> bool:
    try:
        response.send(conn.writer)
    except TransportError as e:
        log.error("jsonhttp.send_error", peer=conn.peer_name, status_code=response.status, error=str(e))
        return False
    return True


def serve_connection(
    conn: Connection,
    dispatch: Dispatch,
    *,
    max_line_size: int = MAX_LINE_SIZE,
    max_body_size: int = MAX_BODY_SIZE,
) -> Response | None:
    """Parse one request, dispatch it, write the answer. Returns what was sent."""
    try:
        request = parse_request(
            conn.reader,
            max_line_size=max_line_size,
            max_body_size=max_body_size,
        )
    except (EarlyEof, TransportError) as e:
        log.info("jsonhttp.connection_dropped", peer=conn.peer_name, error=str(e))
        return None
    except HTTPError as e:
        log.warning("jsonhttp.parse_error",
            peer=conn.peer_name,
            error_type=type(e).__name__,
            error=str(e),
            status_code=e.status_code,
        )
        response = error_response(e)
        return response if send_response(conn, response) else None

    try:
        response = dispatch(request)
        if not isinstance(response, Response):
            raise TypeError(f"dispatch returned {type(response).__name__}, not Response")
    except Exception as e:
        log.error("jsonhttp.handler_error",
            peer=conn.peer_name,
            method=request.method.value,
            route=request.route,
            error=str(e),
            exc_info=True,
        )
        response = Response(500).json({"error": "Internal Server Error"})

    log.info("jsonhttp.request",
        peer=conn.peer_name,
        method=request.method.value,
        route=request.route,
        status_code=response.status,
        body_length=len(request.body),
    )
    return response if send_response(conn, response) else None


def serve(
    server: Server,
    dispatch: Dispatch,
    *,
    max_line_size: int = MAX_LINE_SIZE,
    max_body_size: int = MAX_BODY_SIZE,
) -> None:
    for conn in server.listen():
        with conn:
            serve_connection(
                conn,
                dispatch,
                max_line_size=max_line_size,
                max_body_size=max_body_size,
            )
