"""Kafka alert channel adapter.

Publishes AlertMessages as JSON to a single Kafka topic. The message key
is the alert's idempotency key, so every retry of the same alert lands on
the same partition and consumers can deduplicate by key.

Producer settings favour durability over latency: ``acks=all`` and
idempotent production, with ``flush`` awaited per message so a returned
PublishAck means the broker has the alert.

confluent-kafka's produce/flush calls block, so they run in a worker
thread to keep the event loop free.
"""

from __future__ import annotations

import asyncio
from typing import Any

from structlog import get_logger

from content_moderator.application.ports.alert_channel import (
    AlertChannelProtocol,
    PublishAck,
)
from content_moderator.domain.errors import (
    DispatchPermanentError,
    DispatchTransientError,
)
from content_moderator.domain.models.alert_message import AlertMessage

logger = get_logger()

# Broker error names that will not clear on retry
PERMANENT_ERROR_NAMES: frozenset[str] = frozenset(
    {
        "TOPIC_AUTHORIZATION_FAILED",
        "CLUSTER_AUTHORIZATION_FAILED",
        "UNKNOWN_TOPIC_OR_PART",
        "_UNKNOWN_TOPIC",
        "INVALID_TOPIC_EXCEPTION",
        "MSG_SIZE_TOO_LARGE",
        "_MSG_SIZE_TOO_LARGE",
        "SASL_AUTHENTICATION_FAILED",
    }
)


def _error_name(error: Any) -> str:
    """Extract the broker error name from a KafkaError or KafkaException."""
    if error is None:
        return ""
    name = getattr(error, "name", None)
    if callable(name):
        return str(name())
    args = getattr(error, "args", ())
    if args and args[0] is not error:
        return _error_name(args[0])
    return ""


class KafkaAlertChannel(AlertChannelProtocol):
    """AlertChannelProtocol implementation backed by a Kafka topic.

    Attributes:
        _topic: Destination topic.
        _bootstrap_servers: Kafka bootstrap servers.
        _flush_timeout: Seconds to wait for broker acknowledgement.
        _producer: Lazily created confluent_kafka Producer.
    """

    def __init__(
        self,
        topic: str,
        bootstrap_servers: str,
        flush_timeout_seconds: float = 10.0,
        producer: Any = None,
    ) -> None:
        """Initialize the channel.

        Args:
            topic: Destination topic for alerts.
            bootstrap_servers: Kafka bootstrap servers.
            flush_timeout_seconds: Per-message acknowledgement timeout.
            producer: Pre-built producer; created on first publish if None.
        """
        if not topic:
            raise ValueError("topic must be a non-empty string")
        self._topic = topic
        self._bootstrap_servers = bootstrap_servers
        self._flush_timeout = flush_timeout_seconds
        self._producer = producer

    @property
    def topic(self) -> str:
        """Destination topic identifier."""
        return self._topic

    @property
    def flush_timeout_seconds(self) -> float:
        """Seconds one publish waits for broker acknowledgement."""
        return self._flush_timeout

    def _get_producer(self) -> Any:
        """Get or create the Kafka producer."""
        if self._producer is None:
            from confluent_kafka import Producer

            timeout_ms = int(self._flush_timeout * 1000)
            self._producer = Producer(
                {
                    "bootstrap.servers": self._bootstrap_servers,
                    "acks": "all",
                    "enable.idempotence": True,
                    "message.timeout.ms": timeout_ms,
                    "request.timeout.ms": timeout_ms,
                    "client.id": "content-moderator",
                }
            )
            logger.info(
                "kafka_producer_created",
                bootstrap_servers=self._bootstrap_servers,
                topic=self._topic,
            )
        return self._producer

    @staticmethod
    def _headers(message: AlertMessage) -> list[tuple[str, bytes]]:
        return [
            ("idempotency_key", message.idempotency_key.encode("utf-8")),
            ("verdict", message.verdict.value.encode("utf-8")),
            ("policy_version", message.policy_version.encode("utf-8")),
            ("content_type", b"application/json"),
        ]

    async def publish(self, message: AlertMessage) -> PublishAck:
        """Publish one alert and wait for the broker acknowledgement.

        Raises:
            DispatchTransientError: On timeouts and retriable broker errors.
            DispatchPermanentError: On authorization, unknown-topic and
                size errors.
        """
        return await asyncio.to_thread(self._produce_and_flush, message)

    def _produce_and_flush(self, message: AlertMessage) -> PublishAck:
        delivery: dict[str, Any] = {"error": None, "partition": None, "offset": None}

        def delivery_callback(err: Any, msg: Any) -> None:
            if err:
                delivery["error"] = err
            else:
                delivery["partition"] = msg.partition()
                delivery["offset"] = msg.offset()

        try:
            producer = self._get_producer()
            producer.produce(
                topic=self._topic,
                key=message.idempotency_key.encode("utf-8"),
                value=message.to_json().encode("utf-8"),
                headers=self._headers(message),
                callback=delivery_callback,
            )
            remaining = producer.flush(timeout=self._flush_timeout)
        except BufferError as exc:
            raise self._error(message, exc, permanent=False) from exc
        except Exception as exc:
            raise self._error(
                message, exc, permanent=_error_name(exc) in PERMANENT_ERROR_NAMES
            ) from exc

        if remaining > 0:
            raise DispatchTransientError(
                topic=self._topic,
                idempotency_key=message.idempotency_key,
                detail=f"{remaining} message(s) still pending after flush",
            )

        error = delivery["error"]
        if error is not None:
            raise self._error(
                message, error, permanent=_error_name(error) in PERMANENT_ERROR_NAMES
            )

        return PublishAck(
            topic=self._topic,
            idempotency_key=message.idempotency_key,
            partition=delivery["partition"],
            offset=delivery["offset"],
        )

    def _error(
        self, message: AlertMessage, error: Any, *, permanent: bool
    ) -> DispatchTransientError | DispatchPermanentError:
        error_class = DispatchPermanentError if permanent else DispatchTransientError
        return error_class(
            topic=self._topic,
            idempotency_key=message.idempotency_key,
            detail=str(error),
        )

    def close(self) -> None:
        """Flush outstanding messages and drop the producer."""
        if self._producer is not None:
            self._producer.flush(timeout=5.0)
            logger.info("kafka_producer_closed", topic=self._topic)
            self._producer = None
