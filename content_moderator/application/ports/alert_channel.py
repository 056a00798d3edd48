"""Alert channel port.

Port interface for publishing moderation alerts to a publish/subscribe
topic. Downstream fan-out (e.g. an email relay subscribed to the topic)
is the channel's responsibility, not the pipeline's.

The channel does not deduplicate. Each call delivers one message;
callers that retry must resend the same AlertMessage so the idempotency
key stays stable for deduplicating subscribers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from content_moderator.domain.models.alert_message import AlertMessage


@dataclass(frozen=True)
class PublishAck:
    """Acknowledgement of a successful publish.

    Attributes:
        topic: Topic the message was written to.
        idempotency_key: Key of the published alert.
        partition: Partition the message landed on (if the channel has them).
        offset: Offset of the message (if the channel has them).
    """

    topic: str
    idempotency_key: str
    partition: int | None = None
    offset: int | None = None


class AlertChannelProtocol(Protocol):
    """Protocol for publishing alert messages.

    Failures are reported as DispatchError subclasses:
    - DispatchTransientError: retry with the same message
    - DispatchPermanentError: topic missing, permission denied, ...
    """

    @property
    def topic(self) -> str:
        """Destination topic identifier."""
        ...

    async def publish(self, message: AlertMessage) -> PublishAck:
        """Publish one alert message.

        Args:
            message: The alert to publish.

        Returns:
            PublishAck once the channel has accepted the message.

        Raises:
            DispatchTransientError: On retryable failure.
            DispatchPermanentError: On non-retryable failure.
        """
        ...
