"""
jsonhttp — Server entry point

Usage:
    python -m jsonhttp --port 6969
    curl http://127.0.0.1:6969/users
    curl -X POST http://127.0.0.1:6969/users -d '{"id":3,"name":"Carol"}'
"""

import argparse
import sys

import structlog

from .config import ServerConfig
from .log import configure_logging
from .routes import dispatch
from .server import Server, serve

log = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jsonhttp",
        description="Minimal HTTP/1.1 JSON server",
    )
    parser.add_argument("--host", help="Address to bind (env: JSONHTTP_HOST)")
    parser.add_argument("--port", type=int, help="Port to bind (env: JSONHTTP_PORT)")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR (env: JSONHTTP_LOG_LEVEL)")
    parser.add_argument("--log-format", choices=["json", "console"],
                        help="Log renderer (env: JSONHTTP_LOG_FORMAT)")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = ServerConfig.from_env(
            host=args.host,
            port=args.port,
            log_level=args.log_level,
            log_format=args.log_format,
        )
    except ValueError as e:
        print(f"jsonhttp: invalid configuration: {e}", file=sys.stderr)
        return 2

    configure_logging(config.log_level, config.log_format)

    try:
        server = Server(config.host, config.port, timeout=config.timeout)
    except OSError as e:
        log.error("jsonhttp.bind_failed", host=config.host, port=config.port, error=str(e))
        return 1

    host, port = server.address
    log.info("jsonhttp.startup",
        host=host,
        port=port,
        max_line_size=config.max_line_size,
        max_body_size=config.max_body_size,
        timeout=config.timeout,
    )

    with server:
        try:
            serve(
                server,
                dispatch,
                max_line_size=config.max_line_size,
                max_body_size=config.max_body_size,
            )
        except KeyboardInterrupt:
            log.info("jsonhttp.shutdown")
    return 0


if __name__ == "__main__":
    sys.exit(main())
