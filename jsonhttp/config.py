"""
jsonhttp — Server configuration
Defaults, overridden by JSONHTTP_* environment variables, overridden by CLI flags.
"""

import logging
import os
from dataclasses import dataclass, fields

from .parser import MAX_BODY_SIZE, MAX_LINE_SIZE

ENV_PREFIX = "JSONHTTP_"
LOG_FORMATS = ("json", "console")


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 6969
    max_line_size: int = MAX_LINE_SIZE
    max_body_size: int = MAX_BODY_SIZE
    # Seconds per socket operation; None blocks forever
    timeout: float | None = None
    log_level: str = "INFO"
    log_format: str = "json"

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port must be in 0..65535, got {self.port}")
        if self.max_line_size < 1:
            raise ValueError(f"max_line_size must be positive, got {self.max_line_size}")
        if self.max_body_size < 0:
            raise ValueError(f"max_body_size must be >= 0, got {self.max_body_size}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"unknown log level {self.log_level!r}")
        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}, got {self.log_format!r}")

    @classmethod
    def from_env(cls, environ: dict | None = None, **overrides) -> "ServerConfig":
        """Build from JSONHTTP_* variables; keyword overrides that are not None win."""
        environ = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            values[f.name] = _convert(f.name, raw)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _convert(name: str, raw: str):
    if name in ("port", "max_line_size", "max_body_size"):
        try:
            return int(raw)
        except ValueError:
            raise ValueError(f"{ENV_PREFIX}{name.upper()} must be an integer, got {raw!r}") from None
    if name == "timeout":
        try:
            return float(raw)
        except ValueError:
            raise ValueError(f"{ENV_PREFIX}TIMEOUT must be a number, got {raw!r}") from None
    return raw
