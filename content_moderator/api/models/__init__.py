"""API request/response models."""

from content_moderator.api.models.health import HealthResponse
from content_moderator.api.models.moderation import (
    CommandFailureResponse,
    ModerationErrorResponse,
    ModerationRunResponse,
    RecordOutcomeResponse,
    RunSummaryResponse,
)

__all__: list[str] = [
    "CommandFailureResponse",
    "HealthResponse",
    "ModerationErrorResponse",
    "ModerationRunResponse",
    "RecordOutcomeResponse",
    "RunSummaryResponse",
]
