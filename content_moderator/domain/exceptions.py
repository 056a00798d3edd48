"""Base exception classes for the content moderation domain layer."""


class ModerationError(Exception):
    """Base exception for all domain errors.

    All domain-specific exceptions MUST inherit from this class.
    This enables consistent error handling across the application.

    Subclass families:
    - InvalidTriggerError (malformed invocation payload)
    - StoreError (record store failures)
    - DispatchError (alert channel failures)
    - ConfigurationError (missing or invalid settings)
    """

    def __init__(self, message: str = "") -> None:
        """Initialize the exception with an optional message.

        Args:
            message: Human-readable error description.
        """
        super().__init__(message)
