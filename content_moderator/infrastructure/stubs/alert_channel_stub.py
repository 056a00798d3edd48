"""Alert channel stub for testing.

In-memory implementation of AlertChannelProtocol that records every
publish attempt and can be told to fail.
"""

from __future__ import annotations

from content_moderator.application.ports.alert_channel import (
    AlertChannelProtocol,
    PublishAck,
)
from content_moderator.domain.errors import (
    DispatchPermanentError,
    DispatchTransientError,
)
from content_moderator.domain.models.alert_message import AlertMessage


class AlertChannelStub(AlertChannelProtocol):
    """In-memory alert channel for testing.

    Attributes:
        published: Messages accepted by the channel, in order.
        attempts: Every message passed to ``publish``, including failures.
    """

    def __init__(self, topic: str = "moderation-alerts") -> None:
        """Initialize an empty channel for ``topic``."""
        self._topic = topic
        self._transient_failures: int = 0
        self._permanent: bool = False
        self.published: list[AlertMessage] = []
        self.attempts: list[AlertMessage] = []

    @property
    def topic(self) -> str:
        """Destination topic identifier."""
        return self._topic

    async def publish(self, message: AlertMessage) -> PublishAck:
        """Record the message, or fail as configured."""
        self.attempts.append(message)
        if self._permanent:
            raise DispatchPermanentError(
                topic=self._topic,
                idempotency_key=message.idempotency_key,
                detail="topic does not exist",
            )
        if self._transient_failures > 0:
            self._transient_failures -= 1
            raise DispatchTransientError(
                topic=self._topic,
                idempotency_key=message.idempotency_key,
                detail="broker not available",
            )
        self.published.append(message)
        return PublishAck(
            topic=self._topic,
            idempotency_key=message.idempotency_key,
            partition=0,
            offset=len(self.published) - 1,
        )

    # =========================================================================
    # Test Control Methods
    # =========================================================================

    def fail_transiently(self, times: int = 1) -> None:
        """Fail the next ``times`` publishes with DispatchTransientError."""
        self._transient_failures = times

    def fail_permanently(self, enabled: bool = True) -> None:
        """Fail every publish with DispatchPermanentError."""
        self._permanent = enabled

    def published_keys(self) -> list[str]:
        """Idempotency keys of accepted messages, in order."""
        return [message.idempotency_key for message in self.published]

    def clear(self) -> None:
        """Reset history and failure configuration."""
        self._transient_failures = 0
        self._permanent = False
        self.published.clear()
        self.attempts.clear()
