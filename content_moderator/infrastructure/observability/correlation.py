"""Correlation ID tracking across one moderation invocation.

Every log line emitted while an invocation is running carries the same
``correlation_id``. For function invocations it is the platform request
ID; for HTTP calls it comes from the ``X-Correlation-ID`` header; for
the sweep script a fresh UUID is generated.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any
from uuid import uuid4

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def generate_correlation_id() -> str:
    """Return a new UUID4 string."""
    return str(uuid4())


def get_correlation_id() -> str:
    """Return the current correlation ID, or an empty string if unset."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current context."""
    _correlation_id.set(correlation_id)


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """Bind a correlation ID for the duration of a block.

    The previous value is restored on exit, so nested or sequential
    invocations in the same process do not leak IDs into each other.

    Args:
        correlation_id: ID to bind. A new one is generated when empty.

    Yields:
        The bound correlation ID.
    """
    value = correlation_id or generate_correlation_id()
    token = _correlation_id.set(value)
    try:
        yield value
    finally:
        _correlation_id.reset(token)


def correlation_id_processor(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Structlog processor that adds ``correlation_id`` to each entry."""
    correlation_id = get_correlation_id()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict
