"""Structlog configuration for the moderation pipeline.

Production output is one JSON object per line, which is what the
function runtime ships to its log sink:

    {
        "timestamp": "2026-01-01T00:00:00.000000Z",
        "level": "info",
        "event": "record_evaluated",
        "correlation_id": "uuid",
        "record_id": "r1",
        "verdict": "FLAG",
        ...
    }

Any other environment renders to a coloured console.
"""

import logging
import os
from typing import cast

import structlog
from structlog.typing import Processor

from content_moderator.infrastructure.observability.correlation import (
    correlation_id_processor,
)

LOG_LEVEL_ENV = "LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"


def _resolve_log_level(level_name: str | None) -> int:
    name = (level_name or os.getenv(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL)).upper()
    return getattr(logging, name, logging.INFO)


def configure_structlog(
    environment: str = "production", log_level: str | None = None
) -> None:
    """Configure structlog once at process start.

    Args:
        environment: 'production' for JSON output, anything else for console.
        log_level: Level name; falls back to the LOG_LEVEL variable, then INFO.
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
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
        wrapper_class=structlog.make_filtering_bound_logger(
            _resolve_log_level(log_level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
