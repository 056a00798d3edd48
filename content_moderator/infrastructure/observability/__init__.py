"""Structured logging and correlation for the moderation pipeline.

Usage:
    from content_moderator.infrastructure.observability import (
        configure_structlog,
        correlation_scope,
    )

    configure_structlog(environment="production")

    with correlation_scope(invocation_id):
        result = await orchestrator.handle(event)
"""

from content_moderator.infrastructure.observability.correlation import (
    correlation_id_processor,
    correlation_scope,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from content_moderator.infrastructure.observability.logging import (
    configure_structlog,
)

__all__: list[str] = [
    "configure_structlog",
    "correlation_id_processor",
    "correlation_scope",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]
