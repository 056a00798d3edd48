"""Configuration errors."""

from __future__ import annotations

from content_moderator.domain.exceptions import ModerationError


class ConfigurationError(ModerationError):
    """Raised when a required setting is missing or invalid.

    Attributes:
        setting: Name of the offending setting (environment variable).
    """

    def __init__(self, setting: str, reason: str) -> None:
        """Initialize the error.

        Args:
            setting: Name of the offending setting.
            reason: Why the value was rejected.
        """
        self.setting = setting
        self.reason = reason
        super().__init__(f"Invalid configuration for {setting}: {reason}")
