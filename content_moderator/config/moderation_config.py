"""Moderation pipeline configuration.

Environment Variables:
- NOTIFICATION_TOPIC: Alert topic (required)
- STORE_TABLE_NAME: Content record table (required)
- POLICY_SEVERITY_THRESHOLD: FLAG when severity exceeds it (default: 3)
- DISALLOWED_TERMS: Comma-separated override of the built-in term list
- SWEEP_PAGE_SIZE: Records per sweep page (default: 25, max: 1000)
- SWEEP_MAX_PAGES: Page cap per invocation (default: 20)
- STORE_CALL_TIMEOUT_SECONDS: Per store call (default: 5.0)
- PUBLISH_TIMEOUT_SECONDS: Per publish (default: 10.0)
- RETRY_MAX_ATTEMPTS: Attempts per call, including the first (default: 3)
- RETRY_BASE_DELAY_SECONDS: Backoff base (default: 0.2)
- RETRY_MAX_DELAY_SECONDS: Backoff cap (default: 2.0)
- INVOCATION_TIME_BUDGET_SECONDS: Overall budget per invocation (default: 60.0)
- KAFKA_BOOTSTRAP_SERVERS: Alert channel brokers (default: localhost:9092)
- RECORD_STORE_BACKEND: ``postgres`` or ``memory`` (default: postgres)
- ALERT_CHANNEL_BACKEND: ``kafka`` or ``memory`` (default: kafka)
- ENVIRONMENT: ``production`` for JSON logs (default: production)
- LOG_LEVEL: Log filtering level (default: INFO)

DATABASE_URL is read by the database bootstrap, not here.

Invalid numbers fall back to their defaults. Missing required values
raise ConfigurationError.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from content_moderator.domain.errors import ConfigurationError
from content_moderator.domain.models.moderation_policy import (
    DEFAULT_DISALLOWED_TERMS,
    DEFAULT_SEVERITY_THRESHOLD,
)


def _get_int_env(env: Mapping[str, str], key: str, default: int) -> int:
    """Get integer environment variable with default.

    Args:
        env: Environment mapping.
        key: Environment variable name.
        default: Default value if not set or invalid.

    Returns:
        Parsed integer value or default.
    """
    value = env.get(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float_env(env: Mapping[str, str], key: str, default: float) -> float:
    """Get float environment variable with default."""
    value = env.get(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _require_env(env: Mapping[str, str], key: str) -> str:
    value = (env.get(key) or "").strip()
    if not value:
        raise ConfigurationError(key, "must be set")
    return value


def _parse_terms(raw: str | None) -> tuple[str, ...]:
    if raw is None or not raw.strip():
        return DEFAULT_DISALLOWED_TERMS
    terms = tuple(term.strip() for term in raw.split(",") if term.strip())
    return terms or DEFAULT_DISALLOWED_TERMS


# =============================================================================
# Defaults
# =============================================================================

DEFAULT_SWEEP_PAGE_SIZE = 25
MAX_SWEEP_PAGE_SIZE = 1000
DEFAULT_SWEEP_MAX_PAGES = 20
DEFAULT_STORE_CALL_TIMEOUT_SECONDS = 5.0
DEFAULT_PUBLISH_TIMEOUT_SECONDS = 10.0
DEFAULT_RETRY_MAX_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY_SECONDS = 0.2
DEFAULT_RETRY_MAX_DELAY_SECONDS = 2.0
DEFAULT_INVOCATION_TIME_BUDGET_SECONDS = 60.0
DEFAULT_KAFKA_BOOTSTRAP_SERVERS = "localhost:9092"

RECORD_STORE_BACKENDS = frozenset({"postgres", "memory"})
ALERT_CHANNEL_BACKENDS = frozenset({"kafka", "memory"})


@dataclass(frozen=True)
class ModerationConfig:
    """Configuration for one deployment of the moderation pipeline.

    Only the bootstrap layer reads the environment; every component
    receives the values it needs through its constructor.

    Attributes:
        notification_topic: Topic alerts are published to.
        store_table_name: Table holding content records.
        severity_threshold: Aggregate severity above which content is FLAGged.
        disallowed_terms: Terms that force a BLOCK.
        sweep_page_size: Records requested per sweep page.
        sweep_max_pages: Pages processed per invocation before returning
            a continuation token.
        store_call_timeout_seconds: Per-attempt store call timeout.
        publish_timeout_seconds: Per-attempt publish timeout.
        retry_max_attempts: Attempts per call, including the first.
        retry_base_delay_seconds: Backoff base delay.
        retry_max_delay_seconds: Backoff delay cap.
        invocation_time_budget_seconds: Overall budget for one invocation.
        kafka_bootstrap_servers: Brokers for the Kafka alert channel.
        record_store_backend: ``postgres`` or ``memory``.
        alert_channel_backend: ``kafka`` or ``memory``.
        environment: ``production`` selects JSON logs.
        log_level: Log filtering level name.
    """

    notification_topic: str
    store_table_name: str
    severity_threshold: int = DEFAULT_SEVERITY_THRESHOLD
    disallowed_terms: tuple[str, ...] = DEFAULT_DISALLOWED_TERMS
    sweep_page_size: int = DEFAULT_SWEEP_PAGE_SIZE
    sweep_max_pages: int = DEFAULT_SWEEP_MAX_PAGES
    store_call_timeout_seconds: float = DEFAULT_STORE_CALL_TIMEOUT_SECONDS
    publish_timeout_seconds: float = DEFAULT_PUBLISH_TIMEOUT_SECONDS
    retry_max_attempts: int = DEFAULT_RETRY_MAX_ATTEMPTS
    retry_base_delay_seconds: float = DEFAULT_RETRY_BASE_DELAY_SECONDS
    retry_max_delay_seconds: float = DEFAULT_RETRY_MAX_DELAY_SECONDS
    invocation_time_budget_seconds: float = DEFAULT_INVOCATION_TIME_BUDGET_SECONDS
    kafka_bootstrap_servers: str = DEFAULT_KAFKA_BOOTSTRAP_SERVERS
    record_store_backend: str = "postgres"
    alert_channel_backend: str = "kafka"
    environment: str = "production"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate configuration values.

        Raises:
            ConfigurationError: If a value is out of range.
        """
        if not self.notification_topic:
            raise ConfigurationError("NOTIFICATION_TOPIC", "must be set")
        if not self.store_table_name:
            raise ConfigurationError("STORE_TABLE_NAME", "must be set")
        if self.severity_threshold < 0:
            raise ConfigurationError(
                "POLICY_SEVERITY_THRESHOLD",
                f"must be non-negative, got {self.severity_threshold}",
            )
        if not self.disallowed_terms:
            raise ConfigurationError("DISALLOWED_TERMS", "must not be empty")
        if not 1 <= self.sweep_page_size <= MAX_SWEEP_PAGE_SIZE:
            raise ConfigurationError(
                "SWEEP_PAGE_SIZE",
                f"must be between 1 and {MAX_SWEEP_PAGE_SIZE}, got {self.sweep_page_size}",
            )
        if self.sweep_max_pages < 1:
            raise ConfigurationError(
                "SWEEP_MAX_PAGES", f"must be positive, got {self.sweep_max_pages}"
            )
        for setting, value in (
            ("STORE_CALL_TIMEOUT_SECONDS", self.store_call_timeout_seconds),
            ("PUBLISH_TIMEOUT_SECONDS", self.publish_timeout_seconds),
            ("INVOCATION_TIME_BUDGET_SECONDS", self.invocation_time_budget_seconds),
        ):
            if value <= 0:
                raise ConfigurationError(setting, f"must be positive, got {value}")
        if self.retry_max_attempts < 1:
            raise ConfigurationError(
                "RETRY_MAX_ATTEMPTS",
                f"must be at least 1, got {self.retry_max_attempts}",
            )
        if self.retry_base_delay_seconds < 0 or self.retry_max_delay_seconds < 0:
            raise ConfigurationError("RETRY_*_DELAY_SECONDS", "must be non-negative")
        if self.record_store_backend not in RECORD_STORE_BACKENDS:
            raise ConfigurationError(
                "RECORD_STORE_BACKEND",
                f"must be one of {sorted(RECORD_STORE_BACKENDS)}, "
                f"got {self.record_store_backend!r}",
            )
        if self.alert_channel_backend not in ALERT_CHANNEL_BACKENDS:
            raise ConfigurationError(
                "ALERT_CHANNEL_BACKEND",
                f"must be one of {sorted(ALERT_CHANNEL_BACKENDS)}, "
                f"got {self.alert_channel_backend!r}",
            )

    @classmethod
    def from_environment(
        cls, environ: Mapping[str, str] | None = None
    ) -> ModerationConfig:
        """Create config from environment variables with defaults.

        Args:
            environ: Mapping to read instead of ``os.environ``.

        Returns:
            ModerationConfig with values from the environment or defaults.

        Raises:
            ConfigurationError: If a required variable is missing or a
                value is out of range.
        """
        env = os.environ if environ is None else environ
        return cls(
            notification_topic=_require_env(env, "NOTIFICATION_TOPIC"),
            store_table_name=_require_env(env, "STORE_TABLE_NAME"),
            severity_threshold=_get_int_env(
                env, "POLICY_SEVERITY_THRESHOLD", DEFAULT_SEVERITY_THRESHOLD
            ),
            disallowed_terms=_parse_terms(env.get("DISALLOWED_TERMS")),
            sweep_page_size=_get_int_env(
                env, "SWEEP_PAGE_SIZE", DEFAULT_SWEEP_PAGE_SIZE
            ),
            sweep_max_pages=_get_int_env(
                env, "SWEEP_MAX_PAGES", DEFAULT_SWEEP_MAX_PAGES
            ),
            store_call_timeout_seconds=_get_float_env(
                env, "STORE_CALL_TIMEOUT_SECONDS", DEFAULT_STORE_CALL_TIMEOUT_SECONDS
            ),
            publish_timeout_seconds=_get_float_env(
                env, "PUBLISH_TIMEOUT_SECONDS", DEFAULT_PUBLISH_TIMEOUT_SECONDS
            ),
            retry_max_attempts=_get_int_env(
                env, "RETRY_MAX_ATTEMPTS", DEFAULT_RETRY_MAX_ATTEMPTS
            ),
            retry_base_delay_seconds=_get_float_env(
                env, "RETRY_BASE_DELAY_SECONDS", DEFAULT_RETRY_BASE_DELAY_SECONDS
            ),
            retry_max_delay_seconds=_get_float_env(
                env, "RETRY_MAX_DELAY_SECONDS", DEFAULT_RETRY_MAX_DELAY_SECONDS
            ),
            invocation_time_budget_seconds=_get_float_env(
                env,
                "INVOCATION_TIME_BUDGET_SECONDS",
                DEFAULT_INVOCATION_TIME_BUDGET_SECONDS,
            ),
            kafka_bootstrap_servers=env.get(
                "KAFKA_BOOTSTRAP_SERVERS", DEFAULT_KAFKA_BOOTSTRAP_SERVERS
            ),
            record_store_backend=env.get("RECORD_STORE_BACKEND", "postgres")
            .strip()
            .lower(),
            alert_channel_backend=env.get("ALERT_CHANNEL_BACKEND", "kafka")
            .strip()
            .lower(),
            environment=env.get("ENVIRONMENT", "production"),
            log_level=env.get("LOG_LEVEL", "INFO"),
        )


# Test configuration: in-memory backends, no backoff, tight budgets
TEST_MODERATION_CONFIG = ModerationConfig(
    notification_topic="test-moderation-alerts",
    store_table_name="content_records",
    sweep_page_size=2,
    sweep_max_pages=10,
    store_call_timeout_seconds=1.0,
    publish_timeout_seconds=1.0,
    retry_max_attempts=3,
    retry_base_delay_seconds=0.0,
    retry_max_delay_seconds=0.0,
    invocation_time_budget_seconds=30.0,
    record_store_backend="memory",
    alert_channel_backend="memory",
    environment="development",
    log_level="DEBUG",
)
