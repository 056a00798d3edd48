"""Invocation trigger errors.

A malformed or unrecognized invocation payload is the only condition
that rejects an invocation outright. No records are processed and no
partial run result is produced.
"""

from __future__ import annotations

from content_moderator.domain.exceptions import ModerationError


class InvalidTriggerError(ModerationError):
    """Error raised when an invocation payload cannot be routed.

    Attributes:
        reason: Short description of what was wrong with the payload.
    """

    def __init__(self, reason: str) -> None:
        """Initialize the error.

        Args:
            reason: Short description of what was wrong with the payload.
        """
        self.reason = reason
        super().__init__(f"Invalid trigger: {reason}")
