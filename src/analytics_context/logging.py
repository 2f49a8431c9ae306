"""Structured logging.

Usage:
    from analytics_context.logging import configure_logging, get_logger

    configure_logging(log_level="INFO", log_format="console")
    logger = get_logger(__name__)
    logger.info("csv_parsed", rows=1000, delimiter=",")
"""

from __future__ import annotations

import logging
import sys
from typing import cast

import structlog
from structlog.typing import FilteringBoundLogger


def configure_logging(
    log_level: str = "WARNING",
    log_format: str = "console",
    show_timestamps: bool = True,
    color: bool = False,
) -> None:
    """Configure structlog (and stdlib logging for libraries).

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        log_format: "console" for humans, "json" for machine-readable output
        show_timestamps: Prefix events with an ISO timestamp
        color: Colorize console output
    """
    level = getattr(logging, log_level.upper(), logging.WARNING)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if show_timestamps:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))

    if log_format == "json":
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(
                colors=color,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    return cast(FilteringBoundLogger, structlog.get_logger(name))


def _stderr_logger(*args: object) -> structlog.PrintLogger:
    # sys.stderr is looked up per logger so redirected streams are honoured.
    return structlog.PrintLogger(file=sys.stderr)
