"""Time Authority Protocol - interface for timestamps and elapsed time.

Services that need timestamps or a deadline inject a
TimeAuthorityProtocol implementation instead of calling
``datetime.now()`` or ``time.monotonic()`` directly, so tests can
control time.
"""

from abc import ABC, abstractmethod
from datetime import datetime


class TimeAuthorityProtocol(ABC):
    """Abstract interface for time authority.

    For production:
        Use SystemTimeAuthority from content_moderator/application/services/

    For testing:
        Use FakeTimeAuthority from tests/helpers/fake_time_authority.py
    """

    @abstractmethod
    def utcnow(self) -> datetime:
        """Return current UTC time.

        Returns:
            Current timezone-aware datetime in UTC.
        """
        ...

    @abstractmethod
    def monotonic(self) -> float:
        """Return monotonic clock value for measuring elapsed time.

        Returns:
            Monotonically increasing float value (in seconds).

        Note:
            Use this for deadlines and durations, not for timestamps.
            Only differences between values are meaningful.
        """
        ...
