"""
Tool: Push Dispatch Logging
Purpose: Render pushdispatch's stdlib log records through structlog

Library modules log with logging.getLogger(__name__) and never configure
handlers themselves; applications (and the CLI) call setup_logging() once.

Usage:
    from pushdispatch.logging_config import setup_logging

    setup_logging()                           # console, level from environment
    setup_logging(level="DEBUG", json_output=True)

Environment:
    PUSHDISPATCH_LOG_LEVEL    DEBUG, INFO (default), WARNING, ...
    PUSHDISPATCH_LOG_FORMAT   "json" for one JSON object per line

Secrets:
    Subscription endpoints are capability URLs and payloads may be private.
    Fields passed through `extra=` under SECRET_FIELDS are replaced with
    "[redacted]", and httpx/httpcore request logging (which prints full
    endpoint URLs) stays at WARNING unless the level is DEBUG.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO, Any

import structlog

LEVEL_ENV = "PUSHDISPATCH_LOG_LEVEL"
FORMAT_ENV = "PUSHDISPATCH_LOG_FORMAT"

SECRET_FIELDS = frozenset({
    "payload",
    "user_public_key",
    "user_auth_secret",
    "api_key",
    "authorization",
})

HTTP_CLIENT_LOGGERS = ("httpx", "httpcore")


def _redact_secrets(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in event_dict.keys() & SECRET_FIELDS:
        event_dict[key] = "[redacted]"
    return event_dict


def setup_logging(
    level: str | None = None,
    json_output: bool | None = None,
    stream: IO[str] | None = None,
) -> None:
    """
    Install a single structlog-rendered handler on the root logger.

    Args:
        level: Log level name; defaults to PUSHDISPATCH_LOG_LEVEL or INFO.
            Unknown names fall back to INFO.
        json_output: JSON lines instead of console output; defaults to
            PUSHDISPATCH_LOG_FORMAT == "json"
        stream: Where to write; defaults to stderr
    """
    if level is None:
        level = os.environ.get(LEVEL_ENV, "INFO")
    if json_output is None:
        json_output = os.environ.get(FORMAT_ENV, "").lower() == "json"

    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    pre_chain: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        _redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    render_chain: list[structlog.types.Processor]
    if json_output:
        render_chain = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        render_chain = [structlog.dev.ConsoleRenderer()]

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *render_chain,
        ],
    )

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    http_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in HTTP_CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(http_level)


__all__ = ["setup_logging"]
