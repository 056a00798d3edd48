"""Alert dispatch errors.

- DispatchTransientError: broker hiccup or timeout, retried with backoff
- DispatchPermanentError: topic missing or permission denied, never retried

A permanent error that recurs for every alert in a run marks the run
as degraded.
"""

from __future__ import annotations

from content_moderator.domain.exceptions import ModerationError


class DispatchError(ModerationError):
    """Base error for alert publication failures.

    Attributes:
        topic: Destination topic of the failed publish.
        idempotency_key: Key of the alert that could not be published.
    """

    def __init__(self, topic: str, idempotency_key: str, detail: str) -> None:
        """Initialize the error.

        Args:
            topic: Destination topic of the failed publish.
            idempotency_key: Key of the alert that could not be published.
            detail: Underlying error description.
        """
        self.topic = topic
        self.idempotency_key = idempotency_key
        self.detail = detail
        super().__init__(
            f"Failed to publish alert {idempotency_key[:12]} to {topic}: {detail}"
        )


class DispatchTransientError(DispatchError):
    """Publish failed for a reason that may clear on retry."""

    pass


class DispatchPermanentError(DispatchError):
    """Publish failed for a reason retrying cannot fix."""

    pass
