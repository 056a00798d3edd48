"""Error classification and retry for store and channel calls.

Every blocking call the pipeline makes (a store read or a channel
publish) goes through a RetryExecutor. Errors are categorized to decide
the action:

- RETRY: Transient errors that may succeed on retry (timeout, store or
  broker unavailable). Retried with decorrelated-jitter backoff up to
  max_attempts, always with the same arguments, so a retried publish
  carries the same idempotency key.
- FAIL: Permanent errors (not found, invalid query, permission denied)
  and transient errors whose retries are exhausted. The error is
  re-raised for the orchestrator to record against the affected record.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from structlog import get_logger

from content_moderator.domain.errors import (
    DispatchPermanentError,
    DispatchTransientError,
    RecordNotFoundError,
    StoreInvalidQueryError,
    StoreUnavailableError,
)

logger = get_logger()

T = TypeVar("T")


class ErrorCategory(Enum):
    """Categories of errors encountered by store and channel calls."""

    # Transient - may succeed on retry
    TIMEOUT = "timeout"
    STORE_UNAVAILABLE = "store_unavailable"
    CHANNEL_UNAVAILABLE = "channel_unavailable"
    NETWORK = "network"

    # Permanent - retrying cannot help
    NOT_FOUND = "not_found"
    INVALID_QUERY = "invalid_query"
    CHANNEL_REJECTED = "channel_rejected"

    # Unknown - requires investigation
    UNKNOWN = "unknown"


class ErrorAction(Enum):
    """Action to take when an error occurs."""

    RETRY = "retry"  # Retry with backoff (if under max attempts)
    FAIL = "fail"  # Give up and re-raise


@dataclass(frozen=True)
class ErrorDecision:
    """Decision about how to handle an error.

    Attributes:
        action: The action to take
        category: The error category
        retry_delay_seconds: Delay before retry (if action is RETRY)
        exhausted: True when a retryable error ran out of attempts
    """

    action: ErrorAction
    category: ErrorCategory
    retry_delay_seconds: float = 0.0
    exhausted: bool = False

    @property
    def should_retry(self) -> bool:
        """Check if the call should be attempted again."""
        return self.action == ErrorAction.RETRY


# Error type to category mapping
ERROR_CATEGORIES: dict[type[BaseException], ErrorCategory] = {}


def register_error_category(
    error_type: type[BaseException],
    category: ErrorCategory,
) -> None:
    """Register an error type with its category.

    Args:
        error_type: The exception type
        category: The category to assign
    """
    ERROR_CATEGORIES[error_type] = category


def categorize_error(error: BaseException) -> ErrorCategory:
    """Determine the category of an error.

    Registered types win; otherwise the exception name and message are
    matched against common transient patterns.

    Args:
        error: The exception to categorize

    Returns:
        ErrorCategory for the error
    """
    for error_type, category in ERROR_CATEGORIES.items():
        if isinstance(error, error_type):
            return category

    error_name = type(error).__name__.lower()
    error_msg = str(error).lower()

    if "timeout" in error_name or "timed out" in error_msg:
        return ErrorCategory.TIMEOUT

    if (
        "throttl" in error_name
        or "throttl" in error_msg
        or "rate exceeded" in error_msg
        or "503" in error_msg
        or "temporarily unavailable" in error_msg
    ):
        return ErrorCategory.STORE_UNAVAILABLE

    if any(p in error_name for p in ["connection", "network", "socket"]):
        return ErrorCategory.NETWORK

    return ErrorCategory.UNKNOWN


class ErrorHandler:
    """Error handler that decides actions based on error category.

    - Transient errors -> RETRY (with backoff, up to max attempts)
    - Permanent errors -> FAIL immediately
    - Unknown errors -> RETRY like transient ones, logged for investigation

    Usage:
        handler = ErrorHandler(max_attempts=3)
        decision = handler.handle(error, attempt=current_attempt)
        if decision.should_retry:
            await asyncio.sleep(decision.retry_delay_seconds)
    """

    RETRYABLE_CATEGORIES: set[ErrorCategory] = {
        ErrorCategory.TIMEOUT,
        ErrorCategory.STORE_UNAVAILABLE,
        ErrorCategory.CHANNEL_UNAVAILABLE,
        ErrorCategory.NETWORK,
        ErrorCategory.UNKNOWN,
    }

    PERMANENT_CATEGORIES: set[ErrorCategory] = {
        ErrorCategory.NOT_FOUND,
        ErrorCategory.INVALID_QUERY,
        ErrorCategory.CHANNEL_REJECTED,
    }

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay_seconds: float = 0.2,
        max_delay_seconds: float = 2.0,
    ) -> None:
        """Initialize the error handler.

        Args:
            max_attempts: Maximum attempts per call, including the first
            base_delay_seconds: Base delay for exponential backoff
            max_delay_seconds: Maximum delay cap
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        if base_delay_seconds < 0 or max_delay_seconds < 0:
            raise ValueError("retry delays must be non-negative")
        self._max_attempts = max_attempts
        self._base_delay = base_delay_seconds
        self._max_delay = max_delay_seconds

    @property
    def max_attempts(self) -> int:
        """Maximum attempts per call."""
        return self._max_attempts

    def handle(self, error: BaseException, attempt: int = 1) -> ErrorDecision:
        """Handle an error and decide the action.

        Args:
            error: The exception that occurred
            attempt: Current attempt number (1-based)

        Returns:
            ErrorDecision with action and details
        """
        category = categorize_error(error)

        if category in self.PERMANENT_CATEGORIES:
            return ErrorDecision(action=ErrorAction.FAIL, category=category)

        if attempt < self._max_attempts:
            return ErrorDecision(
                action=ErrorAction.RETRY,
                category=category,
                retry_delay_seconds=self._calculate_delay(attempt),
            )

        return ErrorDecision(action=ErrorAction.FAIL, category=category, exhausted=True)

    def _calculate_delay(self, attempt: int) -> float:
        """Calculate retry delay with decorrelated jitter.

        Args:
            attempt: Current attempt number

        Returns:
            Delay in seconds
        """
        base = self._base_delay

        if attempt <= 1:
            return min(base, self._max_delay)

        previous = base * (2 ** (attempt - 2))
        delay = random.uniform(base, previous * 3)
        return min(delay, self._max_delay)


class RetryExecutor:
    """Runs one blocking call with a timeout and bounded retries.

    Timeouts are converted into the caller's transient error type before
    classification, so a store timeout surfaces as StoreUnavailableError
    and a publish timeout as DispatchTransientError.
    """

    def __init__(
        self,
        handler: ErrorHandler,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the executor.

        Args:
            handler: Decides between retry and failure.
            sleep: Awaitable sleep used between attempts.
        """
        self._handler = handler
        self._sleep = sleep

    async def call(
        self,
        operation: str,
        func: Callable[[], Awaitable[T]],
        *,
        timeout_seconds: float,
        on_timeout: Callable[[TimeoutError], Exception],
        log_context: dict[str, Any] | None = None,
    ) -> T:
        """Run ``func`` until it succeeds or the handler gives up.

        Args:
            operation: Name of the call, for logs.
            func: Zero-argument coroutine factory; called once per attempt.
            timeout_seconds: Per-attempt timeout.
            on_timeout: Converts a timeout into a domain error.
            log_context: Extra key/values for log entries.

        Returns:
            The value returned by ``func``.

        Raises:
            Exception: The last error once retrying stops.
        """
        log = logger.bind(operation=operation, **(log_context or {}))
        attempt = 1
        while True:
            try:
                return await asyncio.wait_for(func(), timeout=timeout_seconds)
            except TimeoutError as exc:
                error: Exception = on_timeout(exc)
            except Exception as exc:
                error = exc

            decision = self._handler.handle(error, attempt=attempt)
            if not decision.should_retry:
                if decision.exhausted:
                    log.error(
                        "retries_exhausted",
                        attempts=attempt,
                        category=decision.category.value,
                        error=str(error),
                    )
                raise error

            log.warning(
                "transient_error_retrying",
                attempt=attempt,
                max_attempts=self._handler.max_attempts,
                delay_seconds=round(decision.retry_delay_seconds, 3),
                category=decision.category.value,
                error=str(error),
            )
            await self._sleep(decision.retry_delay_seconds)
            attempt += 1


# Register pipeline error types
register_error_category(RecordNotFoundError, ErrorCategory.NOT_FOUND)
register_error_category(StoreInvalidQueryError, ErrorCategory.INVALID_QUERY)
register_error_category(StoreUnavailableError, ErrorCategory.STORE_UNAVAILABLE)
register_error_category(DispatchPermanentError, ErrorCategory.CHANNEL_REJECTED)
register_error_category(DispatchTransientError, ErrorCategory.CHANNEL_UNAVAILABLE)

# Register standard library exceptions
register_error_category(TimeoutError, ErrorCategory.TIMEOUT)
register_error_category(ConnectionError, ErrorCategory.NETWORK)
