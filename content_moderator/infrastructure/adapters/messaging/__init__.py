"""Alert channel messaging adapters."""

from content_moderator.infrastructure.adapters.messaging.kafka_alert_channel import (
    KafkaAlertChannel,
)

__all__ = ["KafkaAlertChannel"]
