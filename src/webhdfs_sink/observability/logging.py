"""structlog configuration for the CLI and embedding applications."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


def configure_logging(level: str = "info", *, json_logs: bool = False) -> None:
    """Route structlog output to stderr at *level*.

    JSON lines when *json_logs* is set (for log shippers), otherwise the
    human-friendly console renderer.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        msg = f"Unknown log level: {level}"
        raise ValueError(msg)

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)
    logging.getLogger().setLevel(log_level)

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_logs:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
