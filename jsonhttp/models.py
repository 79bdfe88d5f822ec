"""
jsonhttp — Data Models
Method, header/query maps and the parsed Request.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any

from pydantic import TypeAdapter


class Method(str, Enum):
    GET = "GET"
    POST = "POST"


Headers = dict[str, str]
QueryParams = dict[str, str]


@lru_cache(maxsize=None)
def _adapter(model: Any) -> TypeAdapter:
    return TypeAdapter(model)


@dataclass(frozen=True)
class Request:
    method: Method
    route: str
    query_params: QueryParams = field(default_factory=dict)
    headers: Headers = field(default_factory=dict)
    body: bytes = b""

    def get_json(self, model: Any = None) -> Any:
        """
        Decode the body as JSON, or validate it strictly into `model`
        (a pydantic model, dataclass or type hint). None on any failure.
        """
        try:
            if model is None:
                return json.loads(self.body)
            validate = getattr(model, "model_validate_json", None)
            if validate is not None:
                return validate(self.body, strict=True)
            return _adapter(model).validate_json(self.body, strict=True)
        # ValidationError and JSONDecodeError are both ValueErrors
        except (ValueError, RecursionError):
            return None

    def to_dict(self) -> dict:
        return {
            "method": self.method.value,
            "route": self.route,
            "query_params": self.query_params,
            "headers": self.headers,
            "body_length": len(self.body),
        }


def get_json(request: Request, model: Any = None) -> Any:
    return request.get_json(model)

