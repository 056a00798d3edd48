"""Bootstrap wiring for logging configuration."""

from __future__ import annotations

import os

from content_moderator.infrastructure.observability import (
    configure_structlog as _configure_structlog,
)

ENVIRONMENT_VAR = "ENVIRONMENT"
DEFAULT_ENVIRONMENT = "production"


def configure_structlog(environment: str, log_level: str | None = None) -> None:
    """Configure structlog for the given environment."""
    _configure_structlog(environment=environment, log_level=log_level)


def configure_logging_from_environment() -> None:
    """Configure structlog from ENVIRONMENT and LOG_LEVEL."""
    configure_structlog(os.environ.get(ENVIRONMENT_VAR, DEFAULT_ENVIRONMENT))


__all__ = ["configure_logging_from_environment", "configure_structlog"]
