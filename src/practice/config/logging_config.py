"""Structured logging configuration.

- Production (ENVIRONMENT=production): JSON lines for log aggregation
- Development (default): human-readable console output
"""

from __future__ import annotations

import logging
import sys

import structlog

from practice.config.app_config import load_app_config

_configured = False


def configure_logging(force: bool = False) -> None:
    """Configure structlog and the stdlib root logger once."""
    global _configured
    if _configured and not force:
        return

    config = load_app_config()
    level = getattr(logging, config.log_level, logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
        force=True,
    )
    # Quiet down noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    renderer: structlog.types.Processor
    if config.is_production:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    _configured = True
