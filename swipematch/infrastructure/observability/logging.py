"""Structured logging configuration with structlog.

SwipeMatch logs through structlog everywhere. Production deployments emit
one JSON object per line, local development gets a coloured console
renderer. The level comes from ``LOG_LEVEL`` (default ``INFO``).

Log entry format (production):
    {
        "timestamp": "2026-01-01T00:00:00.000000Z",
        "level": "info",
        "event": "vote_recorded",
        "correlation_id": "uuid",
        "service": "ConsensusEngine",
        "session_id": "...",
        ...
    }

Usage:
    from swipematch.infrastructure.observability import configure_structlog

    configure_structlog(environment="development")

    log = structlog.get_logger()
    log.info("session_created", session_id=session.id)
"""

import logging
import os
from typing import cast

import structlog
from structlog.typing import Processor

from swipematch.infrastructure.observability.correlation import (
    correlation_id_processor,
)

LOG_LEVEL_ENV = "LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"


def _get_log_level() -> int:
    """Resolve the configured log level from the environment."""
    level_name = os.getenv(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL).upper()
    return getattr(logging, level_name, logging.INFO)


def configure_structlog(environment: str = "production") -> None:
    """Configure structlog once at process start.

    Args:
        environment: ``"production"`` for JSON output, anything else for the
            console renderer.
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        cast(Processor, correlation_id_processor),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if environment == "production":
        final_processor: Processor = structlog.processors.JSONRenderer()
    else:
        final_processor = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [final_processor],
        wrapper_class=structlog.make_filtering_bound_logger(_get_log_level()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger_for_component(
    name: str, component: str = "swipe"
) -> structlog.BoundLogger:
    """Return a logger with ``service`` and ``component`` pre-bound.

    Used by adapters that are not services and therefore do not use
    ``LoggingMixin``.

    Args:
        name: Service or adapter name.
        component: Component category, e.g. ``"catalog"`` or ``"store"``.
    """
    return structlog.get_logger().bind(service=name, component=component)
