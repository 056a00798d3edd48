"""Port interfaces for the moderation pipeline.

Ports decouple the application services from the record store, the
notification channel and the clock, so each can be replaced by an
in-memory stub in tests.
"""

from content_moderator.application.ports.alert_channel import (
    AlertChannelProtocol,
    PublishAck,
)
from content_moderator.application.ports.record_store import (
    RecordPage,
    RecordStoreProtocol,
)
from content_moderator.application.ports.time_authority import TimeAuthorityProtocol

__all__ = [
    "AlertChannelProtocol",
    "PublishAck",
    "RecordPage",
    "RecordStoreProtocol",
    "TimeAuthorityProtocol",
]
