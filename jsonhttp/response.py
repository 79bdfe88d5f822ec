"""
jsonhttp — Response builder and serializer

    Response(201).json(user).send(sink)

    HTTP/1.1 201 Created\\r\\n
    Content-Type: application/json\\r\\n
    Content-Length: 21\\r\\n
    \\r\\n
    {"id":2,"name":"Bob"}
"""

import dataclasses
import json
from typing import Any, BinaryIO

import structlog
from pydantic import BaseModel

from .errors import TransportError
from .models import Headers

log = structlog.get_logger()

STATUS_TEXTS = {
    200: "OK",
    201: "Created",
    400: "Bad Request",
    404: "Not Found",
    500: "Internal Server Error",
}


def reason_phrase(status: int) -> str:
    return STATUS_TEXTS.get(status, "Unknown")


def encode_json(value: Any) -> str:
    """
    Compact JSON, UTF-8 left unescaped. Raises TypeError/ValueError.
    NaN and Infinity are rejected rather than written as null, so a payload
    carrying them ends up as an empty body.
    """
    return json.dumps(
        value,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
        default=_encode_default,
    )


def _encode_default(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class Response:
    """
    Fluent builder. Every method mutates in place and returns self.
    Once sent, the builder is spent.
    """

    def __init__(self, status: int):
        self.status = status
        self.headers: Headers = {"Content-Type": "application/json"}
        self.body = ""
        self._sent = False

    def __repr__(self) -> str:
        return f"<Response {self.status} body={len(self.body)}B>"

    def _check_unsent(self) -> None:
        if self._sent:
            raise RuntimeError("Response has already been sent")

    def header(self, name: str, value: str) -> "Response":
        self._check_unsent()
        self.headers[name] = value
        return self

    def json(self, value: Any) -> "Response":
        self._check_unsent()
        try:
            self.body = encode_json(value)
        except (TypeError, ValueError) as e:
            log.warning("jsonhttp.encode_failed", status=self.status, error=str(e))
            self.body = ""
        self.headers["Content-Length"] = str(len(self.body.encode()))
        return self

    def to_bytes(self) -> bytes:
        header_lines = "".join(f"{k}: {v}\r\n" for k, v in self.headers.items())
        head = f"HTTP/1.1 {self.status} {reason_phrase(self.status)}\r\n{header_lines}\r\n"
        return head.encode() + self.body.encode()

    def send(self, sink: BinaryIO) -> None:
        """Serialize and write in one call. OSError surfaces as TransportError."""
        self._check_unsent()
        payload = self.to_bytes()
        try:
            sink.write(payload)
            sink.flush()
        except OSError as e:
            raise TransportError(f"Write failed: {e}") from e
        self._sent = True


def send(response: Response, sink: BinaryIO) -> None:
    response.send(sink)
