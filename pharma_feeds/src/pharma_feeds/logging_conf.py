"""
Structured logging configuration using structlog.

Logs go to stderr so command output on stdout (tables, JSON summaries)
stays machine-readable. Per-cycle context such as the refresh cycle id is
bound with ``log_context`` by the code that owns the cycle.
"""

import logging
import sys

import structlog
from structlog.types import Processor

QUIET_LOGGERS = ("httpx", "httpcore", "apscheduler")


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure structured logging for the feed service.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        json_output: Render one JSON object per line instead of console output
    """
    log_level = getattr(logging, level.upper())

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None) -> structlog.BoundLogger:
    """Logger bound to a module name (usually ``__name__``)."""
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger


def log_context(**kwargs):
    """Bind context for the duration of a ``with`` block (task-local)."""
    return structlog.contextvars.bound_contextvars(**kwargs)
