"""
jsonhttp — Error taxonomy
Every parse failure is terminal for the connection; the caller owns the socket.
"""


class HTTPError(Exception):
    """Base class. `status_code` is what a caller should answer with, if it can."""

    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class TransportError(HTTPError):
    """The underlying read or write failed (including timeouts)."""

    status_code = 500


class EarlyEof(HTTPError):
    """Peer closed before a line terminator arrived."""


class MalformedRequestLine(HTTPError):
    """Request line is missing its method or target token."""


class UnsupportedMethod(HTTPError):
    status_code = 405

    def __init__(self, method: str):
        super().__init__(f"Unsupported method: {method!r}")
        self.method = method


class TruncatedBody(HTTPError):
    """Fewer than Content-Length bytes were available."""

    def __init__(self, expected: int, received: int):
        super().__init__(f"Expected {expected} body bytes, got {received}")
        self.expected = expected
        self.received = received


class HeaderTooLarge(HTTPError):
    status_code = 431


class BodyTooLarge(HTTPError):
    status_code = 413


class NotUtf8(HTTPError):
    """A line was not valid UTF-8."""
