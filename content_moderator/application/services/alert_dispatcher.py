"""Alert dispatcher service.

Turns FLAG/BLOCK verdicts into AlertMessages and publishes them through
the AlertChannelProtocol port with bounded retries. Every retry resends
the same message, so the idempotency key is stable across attempts and a
deduplicating subscriber can collapse duplicates.

The dispatcher keeps no state between calls. Suppressing a second alert
for the same key within one invocation is the orchestrator's job.
"""

from __future__ import annotations

from structlog import get_logger

from content_moderator.application.ports.alert_channel import (
    AlertChannelProtocol,
    PublishAck,
)
from content_moderator.application.ports.time_authority import TimeAuthorityProtocol
from content_moderator.application.services.error_handler import RetryExecutor
from content_moderator.domain.errors import DispatchTransientError
from content_moderator.domain.models.alert_message import AlertMessage
from content_moderator.domain.models.content_record import ContentRecord
from content_moderator.domain.models.moderation_verdict import ModerationVerdict

logger = get_logger()

DEFAULT_PUBLISH_TIMEOUT_SECONDS: float = 10.0


class AlertDispatcher:
    """Builds and publishes moderation alerts.

    Attributes:
        _channel: Port to the notification topic.
        _executor: Applies per-call timeout and retry.
        _time: Source of alert timestamps.
        _publish_timeout: Per-attempt publish timeout in seconds.

    Example:
        dispatcher = AlertDispatcher(channel, executor, time_authority)
        message = dispatcher.build_alert(verdict, record)
        ack = await dispatcher.publish(message)
    """

    def __init__(
        self,
        channel: AlertChannelProtocol,
        executor: RetryExecutor,
        time_authority: TimeAuthorityProtocol,
        publish_timeout_seconds: float = DEFAULT_PUBLISH_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            channel: Port to the notification topic.
            executor: Retry executor for publish calls.
            time_authority: Source of alert timestamps.
            publish_timeout_seconds: Per-attempt publish timeout.
        """
        self._channel = channel
        self._executor = executor
        self._time = time_authority
        self._publish_timeout = publish_timeout_seconds

    @property
    def topic(self) -> str:
        """Topic alerts are published to."""
        return self._channel.topic

    def build_alert(
        self, verdict: ModerationVerdict, record: ContentRecord | None = None
    ) -> AlertMessage:
        """Build the alert for a FLAG or BLOCK verdict.

        Args:
            verdict: Verdict attributed to a record.
            record: The record, used for the owner field.

        Returns:
            AlertMessage stamped with the current time.

        Raises:
            ValueError: If the verdict does not require an alert.
        """
        return AlertMessage.from_verdict(
            verdict,
            timestamp=self._time.utcnow(),
            owner=record.owner if record is not None else None,
        )

    async def publish(self, message: AlertMessage) -> PublishAck:
        """Publish an alert, retrying transient failures.

        Args:
            message: The alert to publish.

        Returns:
            PublishAck from the channel.

        Raises:
            DispatchTransientError: When retries are exhausted.
            DispatchPermanentError: On a non-retryable channel error.
        """
        topic = self._channel.topic

        def _on_timeout(exc: TimeoutError) -> Exception:
            return DispatchTransientError(
                topic=topic,
                idempotency_key=message.idempotency_key,
                detail=f"publish timed out after {self._publish_timeout}s",
            )

        ack = await self._executor.call(
            "publish_alert",
            lambda: self._channel.publish(message),
            timeout_seconds=self._publish_timeout,
            on_timeout=_on_timeout,
            log_context={
                "record_id": message.record_id,
                "idempotency_key": message.idempotency_key,
                "topic": topic,
            },
        )

        logger.info(
            "alert_published",
            record_id=message.record_id,
            verdict=message.verdict.value,
            severity=message.severity,
            idempotency_key=message.idempotency_key,
            topic=ack.topic,
            partition=ack.partition,
            offset=ack.offset,
        )
        return ack
