"""
jsonhttp — a minimal synchronous HTTP/1.1 server with JSON payloads.
"""

from .errors import (
    BodyTooLarge,
    EarlyEof,
    HeaderTooLarge,
    HTTPError,
    MalformedRequestLine,
    NotUtf8,
    TransportError,
    TruncatedBody,
    UnsupportedMethod,
)
from .models import Headers, Method, QueryParams, Request, get_json
from .parser import parse_request, read_line, split_url
from .response import Response, reason_phrase, send
from .server import Connection, Server, serve, serve_connection

__version__ = "0.1.0"

__all__ = [
    "BodyTooLarge",
    "Connection",
    "EarlyEof",
    "HTTPError",
    "HeaderTooLarge",
    "Headers",
    "MalformedRequestLine",
    "Method",
    "NotUtf8",
    "QueryParams",
    "Request",
    "Response",
    "Server",
    "TransportError",
    "TruncatedBody",
    "UnsupportedMethod",
    "get_json",
    "parse_request",
    "read_line",
    "reason_phrase",
    "send",
    "serve",
    "serve_connection",
    "split_url",
]
