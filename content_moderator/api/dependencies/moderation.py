"""Moderation API dependencies.

The orchestrator comes from the bootstrap singletons, so the API uses
the same backends as the function entry point. Tests replace it with
``app.dependency_overrides``.
"""

from content_moderator.application.services.moderation_orchestrator import (
    ModerationOrchestrator,
)
from content_moderator.bootstrap.moderation import get_orchestrator


def get_moderation_orchestrator() -> ModerationOrchestrator:
    """Get the moderation orchestrator instance."""
    return get_orchestrator()
