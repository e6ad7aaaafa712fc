"""Logger module for hey-apm

Structured logging on top of structlog.

Usage:
    from heyapm.logger import session_logger as logger

    logger.info("hey.run_start", instances=4, mode="load")

Components accept an optional ``logger`` argument and fall back to
``session_logger``, so tests can inject a bound or capturing logger.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.typing import FilteringBoundLogger

Logger = FilteringBoundLogger


def setup_logging(level: str = "INFO", *, json_output: bool = False) -> None:
    """Configure structlog for the process.

    Unknown level names fall back to INFO.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        # ConsoleRenderer formats exceptions itself
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


# Shared logger instance for modules that just need basic console logging
session_logger: Logger = structlog.get_logger("heyapm")

__all__ = [
    "Logger",
    "session_logger",
    "setup_logging",
]
