"""
jsonhttp — Server tests
Wire in, wire out: socketpairs for one connection, a real listener end to end.
"""

import json
import socket
import threading

import pytest
from structlog.testing import capture_logs

from jsonhttp.response import Response
from jsonhttp.routes import dispatch
from jsonhttp.server import Connection, Server, serve, serve_connection


def read_all(sock: socket.socket) -> bytes:
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def parse_wire(raw: bytes) -> tuple[str, dict, bytes]:
    head, body = raw.split(b"\r\n\r\n", 1)
    status_line, *lines = head.decode().split("\r\n")
    return status_line, dict(line.split(": ", 1) for line in lines), body


def exchange(raw: bytes, handler=dispatch, **limits) -> tuple[bytes, Response | None]:
    """Run one request through serve_connection over a socketpair."""
    server_sock, client_sock = socket.socketpair()
    with client_sock:
        client_sock.sendall(raw)
        client_sock.shutdown(socket.SHUT_WR)
        with Connection(server_sock, ("test", 0)) as conn:
            sent = serve_connection(conn, handler, **limits)
        return read_all(client_sock), sent


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def live_server():
    """Serve the example routes on an ephemeral port in a background thread."""
    server = Server("127.0.0.1", 0, timeout=2.0)
    thread = threading.Thread(target=serve, args=(server, dispatch), daemon=True)
    thread.start()
    yield server
    server.close()
    thread.join(timeout=5.0)
    assert not thread.is_alive()


def request(server: Server, raw: bytes, half_close: bool = False) -> bytes:
    with socket.create_connection(server.address, timeout=5.0) as sock:
        sock.sendall(raw)
        if half_close:
            sock.shutdown(socket.SHUT_WR)
        return read_all(sock)


# ── serve_connection ──────────────────────────────────────────────────────────

def test_simple_get():
    raw, sent = exchange(b"GET /users HTTP/1.1\r\nHost: x\r\n\r\n")
    status_line, headers, body = parse_wire(raw)
    assert status_line == "HTTP/1.1 200 OK"
    assert headers["Content-Type"] == "application/json"
    assert headers["Content-Length"] == str(len(body))
    assert json.loads(body)[0] == {"id": 1, "name": "Alice"}
    assert sent.status == 200


def test_post_with_valid_body():
    raw, _ = exchange(b'POST /users HTTP/1.1\r\nContent-Length: 24\r\n\r\n{"id":2,"name":"Bob"}   ')
    status_line, _, body = parse_wire(raw)
    assert status_line == "HTTP/1.1 201 Created"
    assert json.loads(body) == {"id": 2, "name": "Bob"}


def test_post_with_invalid_body():
    raw, _ = exchange(b"POST /users HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello")
    status_line, _, body = parse_wire(raw)
    assert status_line == "HTTP/1.1 400 Bad Request"
    assert body == b'"Invalid JSON"'


def test_unsupported_method_gets_error_response():
    raw, sent = exchange(b"PATCH /x HTTP/1.1\r\n\r\n")
    status_line, _, body = parse_wire(raw)
    assert status_line == "HTTP/1.1 405 Unknown"
    assert json.loads(body)["error"] == "UnsupportedMethod"
    assert sent.status == 405


def test_truncated_body_gets_400():
    raw, _ = exchange(b"POST /u HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc")
    status_line, _, body = parse_wire(raw)
    assert status_line == "HTTP/1.1 400 Bad Request"
    assert json.loads(body)["error"] == "TruncatedBody"


def test_body_over_ceiling_gets_413():
    raw, _ = exchange(b"POST /u HTTP/1.1\r\nContent-Length: 100\r\n\r\n", max_body_size=10)
    assert raw.startswith(b"HTTP/1.1 413 Unknown\r\n")


def test_early_eof_closes_silently():
    with capture_logs() as logs:
        raw, sent = exchange(b"GET /users HTTP/1.1\r\nHost:")
    assert raw == b""
    assert sent is None
    assert logs[-1]["event"] == "jsonhttp.connection_dropped"


def test_handler_exception_becomes_500():
    def explode(request):
        raise KeyError("boom")

    with capture_logs() as logs:
        raw, _ = exchange(b"GET /users HTTP/1.1\r\n\r\n", handler=explode)
    assert raw.startswith(b"HTTP/1.1 500 Internal Server Error\r\n")
    assert any(e["event"] == "jsonhttp.handler_error" for e in logs)


def test_handler_returning_non_response_becomes_500():
    with capture_logs() as logs:
        raw, sent = exchange(b"GET /users HTTP/1.1\r\n\r\n", handler=lambda request: None)
    assert raw.startswith(b"HTTP/1.1 500 Internal Server Error\r\n")
    assert sent.status == 500
    assert any(e["event"] == "jsonhttp.handler_error" for e in logs)


def test_request_is_logged():
    with capture_logs() as logs:
        exchange(b"GET /missing?x=1 HTTP/1.1\r\n\r\n")
    entry = next(e for e in logs if e["event"] == "jsonhttp.request")
    assert entry["route"] == "/missing"
    assert entry["status_code"] == 404


# ── End to end ────────────────────────────────────────────────────────────────

def test_server_binds_ephemeral_port(live_server):
    host, port = live_server.address
    assert host == "127.0.0.1"
    assert port > 0


def test_live_get_then_post(live_server):
    raw = request(live_server, b"GET /users HTTP/1.1\r\nHost: x\r\n\r\n")
    assert parse_wire(raw)[0] == "HTTP/1.1 200 OK"

    raw = request(live_server, b'POST /users HTTP/1.1\r\nContent-Length: 21\r\n\r\n{"id":3,"name":"Cy"}\n')
    status_line, headers, body = parse_wire(raw)
    assert status_line == "HTTP/1.1 201 Created"
    assert json.loads(body) == {"id": 3, "name": "Cy"}


def test_live_query_route_not_found(live_server):
    raw = request(live_server, b"GET /search?q=hello&lang=en&flag HTTP/1.1\r\n\r\n")
    assert parse_wire(raw)[2] == b'"Not Found"'


def test_live_truncated_body(live_server):
    raw = request(live_server, b"POST /u HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc", half_close=True)
    assert raw.startswith(b"HTTP/1.1 400 Bad Request\r\n")


def test_live_idle_client_times_out(live_server):
    with socket.create_connection(live_server.address, timeout=10.0) as sock:
        assert read_all(sock) == b""


def test_live_server_survives_bad_connections(live_server):
    with socket.create_connection(live_server.address):
        pass
    request(live_server, b"DELETE /users HTTP/1.1\r\n\r\n")
    raw = request(live_server, b"GET /users HTTP/1.1\r\n\r\n")
    assert parse_wire(raw)[0] == "HTTP/1.1 200 OK"


def test_closed_server_stops_listening():
    server = Server("127.0.0.1", 0)
    server.close()
    assert server.closed
    assert list(server.listen()) == []
