"""Function-style entry point for the hosting runtime.

The runtime calls ``handle(event, context)`` once per invocation, either
for a change-stream batch or for a manual trigger. The function returns
the run result as a JSON-ready dict. Only a malformed payload raises
(InvalidTriggerError); every other failure is reported inside the
result.

The runtime reuses the process between invocations, so the event loop
is kept at module level: the database engine and the Kafka producer are
bound to the loop that created them.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from structlog import get_logger

from content_moderator.bootstrap.logging import configure_structlog
from content_moderator.bootstrap.moderation import (
    get_moderation_config,
    get_orchestrator,
)
from content_moderator.domain.errors import InvalidTriggerError
from content_moderator.infrastructure.observability import correlation_scope

logger = get_logger()

_loop: asyncio.AbstractEventLoop | None = None
_logging_configured = False


def _get_loop() -> asyncio.AbstractEventLoop:
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop


def _ensure_logging() -> None:
    global _logging_configured
    if not _logging_configured:
        config = get_moderation_config()
        configure_structlog(config.environment, config.log_level)
        _logging_configured = True


def _decode_event(event: Any) -> Any:
    """Accept an already-decoded payload or a JSON document."""
    if isinstance(event, (bytes, bytearray)):
        event = bytes(event).decode("utf-8", errors="replace")
    if isinstance(event, str):
        try:
            return json.loads(event)
        except json.JSONDecodeError as exc:
            raise InvalidTriggerError(f"payload is not valid JSON: {exc.msg}") from exc
    return event


def _request_id(context: Any) -> str | None:
    if context is None:
        return None
    return getattr(context, "aws_request_id", None) or getattr(
        context, "request_id", None
    )


def handle(event: Any, context: Any = None) -> dict[str, Any]:
    """Run one moderation invocation.

    Args:
        event: Trigger payload (decoded JSON, or a JSON string).
        context: Runtime context; its request ID becomes the correlation ID.

    Returns:
        The ModerationRunResult as a dict.

    Raises:
        InvalidTriggerError: If the payload cannot be routed.
        ConfigurationError: If required settings are missing.
    """
    _ensure_logging()
    with correlation_scope(_request_id(context)):
        payload = _decode_event(event)
        orchestrator = get_orchestrator()
        try:
            result = _get_loop().run_until_complete(orchestrator.handle(payload))
        except InvalidTriggerError as exc:
            logger.warning("invalid_trigger_rejected", reason=exc.reason)
            raise
        return result.to_dict()
