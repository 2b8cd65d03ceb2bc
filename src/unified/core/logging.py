"""Structured logging for the sync worker.

structlog renders JSON in production and coloured console lines elsewhere.
Every event emitted while a connection cycle is running carries the
tenant, connection, and object type of that cycle (see core.context).
"""

from __future__ import annotations

import logging

import structlog

from src.unified.config import Environment, Settings, get_settings
from src.unified.core.context import add_sync_context

# Libraries that log every request or job run at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler.executors.default")


def _renderer(settings: Settings) -> structlog.types.Processor:
    if settings.ENVIRONMENT == Environment.production:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def build_processors(settings: Settings) -> list[structlog.types.Processor]:
    """Processor chain for sync events, ending in the environment's renderer."""
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_sync_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _renderer(settings),
    ]


def configure_structlog(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=build_processors(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
