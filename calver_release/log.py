"""structlog configuration for the CLI and the per-run context logger."""

from __future__ import annotations

import logging

import structlog


def configure_logging(debug: bool = False) -> None:
    """Route structlog output to the console at info (or debug) level."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if debug else logging.INFO
        ),
        cache_logger_on_first_use=False,
    )


def get_run_logger(**initial: object) -> structlog.typing.FilteringBoundLogger:
    """Logger handed to plugins through the release context."""
    return structlog.get_logger("calver_release").bind(**initial)
