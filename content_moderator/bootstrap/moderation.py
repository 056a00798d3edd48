"""Bootstrap wiring for the moderation pipeline.

``build_orchestrator`` assembles a ModerationOrchestrator from explicit
parts and is what tests use. The ``get_*`` functions keep process-wide
singletons for the entry points, choosing adapters from the configured
backends.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from structlog import get_logger

from content_moderator.application.ports.alert_channel import AlertChannelProtocol
from content_moderator.application.ports.record_store import RecordStoreProtocol
from content_moderator.application.ports.time_authority import TimeAuthorityProtocol
from content_moderator.application.services.alert_dispatcher import AlertDispatcher
from content_moderator.application.services.error_handler import (
    ErrorHandler,
    RetryExecutor,
)
from content_moderator.application.services.invocation_router import InvocationRouter
from content_moderator.application.services.moderation_orchestrator import (
    ModerationOrchestrator,
)
from content_moderator.application.services.time_authority_service import (
    SystemTimeAuthority,
)
from content_moderator.bootstrap.database import get_session_factory
from content_moderator.config import ModerationConfig
from content_moderator.domain.models.moderation_policy import ModerationPolicy
from content_moderator.domain.services.policy_evaluator import PolicyEvaluator
from content_moderator.infrastructure.adapters.messaging import KafkaAlertChannel
from content_moderator.infrastructure.adapters.persistence import (
    PostgresRecordStore,
)
from content_moderator.infrastructure.stubs import AlertChannelStub, RecordStoreStub

logger = get_logger()

# The producer gives up before the dispatcher's wait_for fires, so a
# timed-out publish leaves no flush running behind the retry.
FLUSH_TIMEOUT_FRACTION = 0.8

_config: ModerationConfig | None = None
_record_store: RecordStoreProtocol | None = None
_alert_channel: AlertChannelProtocol | None = None
_orchestrator: ModerationOrchestrator | None = None


def build_orchestrator(
    config: ModerationConfig,
    record_store: RecordStoreProtocol,
    alert_channel: AlertChannelProtocol,
    time_authority: TimeAuthorityProtocol | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> ModerationOrchestrator:
    """Assemble an orchestrator from explicit collaborators.

    Args:
        config: Pipeline configuration.
        record_store: Record store adapter.
        alert_channel: Alert channel adapter.
        time_authority: Clock; the system clock if None.
        sleep: Backoff sleep; replaced by tests to avoid real delays.

    Returns:
        Ready-to-use ModerationOrchestrator.
    """
    clock = time_authority or SystemTimeAuthority()
    executor = RetryExecutor(
        ErrorHandler(
            max_attempts=config.retry_max_attempts,
            base_delay_seconds=config.retry_base_delay_seconds,
            max_delay_seconds=config.retry_max_delay_seconds,
        ),
        sleep=sleep,
    )
    policy = ModerationPolicy.default(
        severity_threshold=config.severity_threshold,
        disallowed_terms=config.disallowed_terms,
    )
    dispatcher = AlertDispatcher(
        alert_channel,
        executor,
        clock,
        publish_timeout_seconds=config.publish_timeout_seconds,
    )
    return ModerationOrchestrator(
        router=InvocationRouter(),
        record_store=record_store,
        evaluator=PolicyEvaluator(policy),
        dispatcher=dispatcher,
        executor=executor,
        time_authority=clock,
        sweep_page_size=config.sweep_page_size,
        max_sweep_pages=config.sweep_max_pages,
        store_call_timeout_seconds=config.store_call_timeout_seconds,
        time_budget_seconds=config.invocation_time_budget_seconds,
    )


def get_moderation_config() -> ModerationConfig:
    """Get the process-wide configuration, read from the environment once."""
    global _config
    if _config is None:
        _config = ModerationConfig.from_environment()
    return _config


def get_record_store() -> RecordStoreProtocol:
    """Get the record store for the configured backend."""
    global _record_store
    if _record_store is None:
        config = get_moderation_config()
        if config.record_store_backend == "memory":
            _record_store = RecordStoreStub(default_page_size=config.sweep_page_size)
        else:
            _record_store = PostgresRecordStore(
                get_session_factory(),
                table_name=config.store_table_name,
                default_page_size=config.sweep_page_size,
            )
        logger.info(
            "record_store_selected",
            backend=config.record_store_backend,
            table=config.store_table_name,
        )
    return _record_store


def get_alert_channel() -> AlertChannelProtocol:
    """Get the alert channel for the configured backend."""
    global _alert_channel
    if _alert_channel is None:
        config = get_moderation_config()
        if config.alert_channel_backend == "memory":
            _alert_channel = AlertChannelStub(topic=config.notification_topic)
        else:
            _alert_channel = KafkaAlertChannel(
                topic=config.notification_topic,
                bootstrap_servers=config.kafka_bootstrap_servers,
                flush_timeout_seconds=(
                    config.publish_timeout_seconds * FLUSH_TIMEOUT_FRACTION
                ),
            )
        logger.info(
            "alert_channel_selected",
            backend=config.alert_channel_backend,
            topic=config.notification_topic,
        )
    return _alert_channel


def get_orchestrator() -> ModerationOrchestrator:
    """Get the process-wide orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator(
            get_moderation_config(),
            get_record_store(),
            get_alert_channel(),
        )
    return _orchestrator


def set_moderation_dependencies(
    config: ModerationConfig | None = None,
    record_store: RecordStoreProtocol | None = None,
    alert_channel: AlertChannelProtocol | None = None,
) -> None:
    """Override bootstrap singletons (tests and local runs)."""
    global _config, _record_store, _alert_channel, _orchestrator
    if config is not None:
        _config = config
    if record_store is not None:
        _record_store = record_store
    if alert_channel is not None:
        _alert_channel = alert_channel
    _orchestrator = None


def reset_moderation_bootstrap() -> None:
    """Reset all moderation singletons for testing."""
    global _config, _record_store, _alert_channel, _orchestrator
    _config = None
    _record_store = None
    _alert_channel = None
    _orchestrator = None
