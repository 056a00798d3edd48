"""Domain models for the content moderation pipeline."""

from content_moderator.domain.models.alert_message import (
    AlertMessage,
    compute_idempotency_key,
)
from content_moderator.domain.models.content_record import ContentRecord, RecordFilter
from content_moderator.domain.models.moderation_command import (
    ChangeType,
    CommandMode,
    ModerationCommand,
)
from content_moderator.domain.models.moderation_verdict import (
    ModerationVerdict,
    Verdict,
)
from content_moderator.domain.models.run_result import (
    CommandFailure,
    ErrorKind,
    ModerationRunResult,
    RecordOutcome,
)

__all__ = [
    "AlertMessage",
    "ChangeType",
    "CommandFailure",
    "CommandMode",
    "ContentRecord",
    "ErrorKind",
    "ModerationCommand",
    "ModerationRunResult",
    "ModerationVerdict",
    "RecordFilter",
    "RecordOutcome",
    "Verdict",
    "compute_idempotency_key",
]
