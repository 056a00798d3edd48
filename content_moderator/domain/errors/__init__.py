"""Domain errors for the content moderation pipeline.

Provides specific exception classes for different failure scenarios.
All exceptions inherit from ModerationError.
"""

from content_moderator.domain.errors.configuration import ConfigurationError
from content_moderator.domain.errors.dispatch import (
    DispatchError,
    DispatchPermanentError,
    DispatchTransientError,
)
from content_moderator.domain.errors.store import (
    RecordNotFoundError,
    StoreError,
    StoreInvalidQueryError,
    StoreUnavailableError,
)
from content_moderator.domain.errors.trigger import InvalidTriggerError

__all__: list[str] = [
    "ConfigurationError",
    "DispatchError",
    "DispatchPermanentError",
    "DispatchTransientError",
    "InvalidTriggerError",
    "RecordNotFoundError",
    "StoreError",
    "StoreInvalidQueryError",
    "StoreUnavailableError",
]
