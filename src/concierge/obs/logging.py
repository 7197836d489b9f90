"""Structured logging setup built on structlog."""

from __future__ import annotations

import logging

import structlog

from concierge.config import AppSettings


def configure_logging(settings: AppSettings | None = None) -> None:
    """Configure structlog once per process.

    JSON lines in normal operation, a human-readable console renderer when
    `debug` is enabled.
    """

    debug = bool(settings and settings.debug)
    renderer = (
        structlog.dev.ConsoleRenderer()
        if debug
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if debug else logging.INFO
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
