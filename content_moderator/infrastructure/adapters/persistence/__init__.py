"""Record store persistence adapters."""

from content_moderator.infrastructure.adapters.persistence.continuation_token import (
    decode_token,
    encode_token,
)
from content_moderator.infrastructure.adapters.persistence.postgres_record_store import (
    PostgresRecordStore,
)

__all__ = ["PostgresRecordStore", "decode_token", "encode_token"]
