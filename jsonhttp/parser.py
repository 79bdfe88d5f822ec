"""
jsonhttp — Request Parser
Reads exactly one HTTP/1.1 request from a buffered byte source.

    GET /search?q=hello HTTP/1.1\\r\\n      ← request line
    Host: example.com\\r\\n                  ← header block
    \\r\\n                                   ← end of headers
    <Content-Length bytes>                 ← body

Deviations kept on purpose: header names are case-sensitive, only the
literal ": " separates name from value, nothing is percent-decoded and the
version token is never checked.
"""

import re
from typing import BinaryIO

import structlog

from .errors import (
    BodyTooLarge,
    EarlyEof,
    HeaderTooLarge,
    MalformedRequestLine,
    NotUtf8,
    TransportError,
    TruncatedBody,
    UnsupportedMethod,
)
from .models import Headers, Method, QueryParams, Request

log = structlog.get_logger()

MAX_LINE_SIZE = 8 * 1024
MAX_BODY_SIZE = 1024 * 1024

# split_ascii_whitespace: SP, HT, LF, FF, CR
_ASCII_WS = re.compile(r"[ \t\n\x0c\r]+")
_HEADER_SEP = ": "
# ASCII digits with an optional leading plus sign
_CONTENT_LENGTH = re.compile(r"\+?[0-9]+")


# ── Line Reader ───────────────────────────────────────────────────────────────

def read_line(source: BinaryIO, max_size: int = MAX_LINE_SIZE) -> str:
    """
    Read up to and including the next LF.
    Returns the text before it, minus one trailing CR, decoded as UTF-8.
    `max_size` bounds the line content, terminator excluded.
    """
    limit = max_size + 2
    try:
        raw = source.readline(limit)
    except OSError as e:
        raise TransportError(f"Read failed: {e}") from e

    if not raw.endswith(b"\n"):
        if len(raw) >= limit:
            raise HeaderTooLarge(f"Line exceeds {max_size} bytes")
        raise EarlyEof("Connection closed before end of line")

    raw = raw[:-1]
    if raw.endswith(b"\r"):
        raw = raw[:-1]
    if len(raw) > max_size:
        raise HeaderTooLarge(f"Line exceeds {max_size} bytes")

    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise NotUtf8("Line is not valid UTF-8") from e


# ── URL Splitter ──────────────────────────────────────────────────────────────

def split_url(raw: str) -> tuple[str, QueryParams]:
    """
    '/search?q=hello&flag' → ('/search', {'q': 'hello', 'flag': ''})
    Later duplicates win. No percent-decoding.
    """
    path, sep, query = raw.partition("?")
    params: QueryParams = {}
    if not sep:
        return path, params

    for pair in query.split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        params[key] = value
    return path, params


# ── Request Parser ────────────────────────────────────────────────────────────

def parse_request_line(line: str) -> tuple[Method, str, str | None]:
    tokens = [t for t in _ASCII_WS.split(line) if t]
    if not tokens:
        raise MalformedRequestLine("Empty request line")

    try:
        method = Method(tokens[0])
    except ValueError:
        raise UnsupportedMethod(tokens[0]) from None

    if len(tokens) < 2:
        raise MalformedRequestLine(f"Missing request target: {line!r}")

    version = tokens[2] if len(tokens) > 2 else None
    return method, tokens[1], version


def parse_header(line: str) -> tuple[str, str] | None:
    name, sep, value = line.partition(_HEADER_SEP)
    # "Name: " with nothing after the separator counts as having no value
    if not sep or not value:
        return None
    return name, value


def parse_content_length(headers: Headers) -> int:
    """Content-Length as a non-negative int (optional "+"), 0 when absent or unparseable."""
    raw = headers.get("Content-Length")
    if raw is None or not _CONTENT_LENGTH.fullmatch(raw):
        return 0
    return int(raw)


def read_body(source: BinaryIO, length: int) -> bytes:
    if length == 0:
        return b""
    try:
        body = source.read(length)
    except OSError as e:
        raise TransportError(f"Read failed: {e}") from e
    if body is None or len(body) < length:
        raise TruncatedBody(length, len(body or b""))
    return body


def parse_request(
    source: BinaryIO,
    *,
    max_line_size: int = MAX_LINE_SIZE,
    max_body_size: int = MAX_BODY_SIZE,
) -> Request:
    method, target, version = parse_request_line(read_line(source, max_line_size))
    route, query_params = split_url(target)

    headers: Headers = {}
    while True:
        line = read_line(source, max_line_size)
        if not line:
            break
        header = parse_header(line)
        if header is None:
            log.debug("jsonhttp.header_dropped", line=line)
            continue
        name, value = header
        headers[name] = value

    length = parse_content_length(headers)
    if length > max_body_size:
        raise BodyTooLarge(f"Content-Length {length} exceeds {max_body_size} bytes")
    body = read_body(source, length)

    log.debug("jsonhttp.parsed",
        method=method.value, route=route, version=version,
        headers=len(headers), body_length=len(body),
    )
    return Request(
        method=method,
        route=route,
        query_params=query_params,
        headers=headers,
        body=body,
    )
