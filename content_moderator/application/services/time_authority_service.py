"""System time authority backed by the real clocks."""

import time
from datetime import datetime, timezone

from content_moderator.application.ports.time_authority import TimeAuthorityProtocol


class SystemTimeAuthority(TimeAuthorityProtocol):
    """Production time authority.

    ``utcnow`` reads the wall clock; ``monotonic`` reads
    ``time.monotonic`` and is the only clock used for deadlines.
    """

    def utcnow(self) -> datetime:
        """Return current UTC time."""
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        """Return the process monotonic clock."""
        return time.monotonic()
