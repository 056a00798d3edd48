"""In-memory stubs for the application ports.

Used by unit tests and by the ``memory`` backends for local runs.
"""

from content_moderator.infrastructure.stubs.alert_channel_stub import (
    AlertChannelStub,
)
from content_moderator.infrastructure.stubs.record_store_stub import (
    RecordStoreStub,
)

__all__ = ["AlertChannelStub", "RecordStoreStub"]
