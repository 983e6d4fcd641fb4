"""Structured logging configuration with structlog."""

import logging
import os
import sys
from typing import TextIO

import structlog


def configure_logging(
    log_level: str = "INFO",
    environment: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """
    Configure structured logging for harvest runs.

    Log output goes to stderr by default so records written to stdout stay
    machine readable.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: development or production. If None, read from HARVESTER_ENVIRONMENT.
        stream: Output stream for log lines (default: sys.stderr)
    """
    level = getattr(logging, log_level.upper())
    stream = stream or sys.stderr

    logging.basicConfig(format="%(message)s", stream=stream, level=level)

    if environment is None:
        environment = os.getenv("HARVESTER_ENVIRONMENT", "development")

    is_production = environment.lower() == "production"

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            (
                structlog.processors.JSONRenderer()
                if is_production
                else structlog.dev.ConsoleRenderer(colors=stream.isatty())
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )


def bind_run_context(**values: str) -> None:
    """Attach values (e.g. run_id) to every log line emitted in this context."""
    structlog.contextvars.bind_contextvars(**values)


def clear_run_context() -> None:
    """Drop all values bound with bind_run_context."""
    structlog.contextvars.clear_contextvars()

