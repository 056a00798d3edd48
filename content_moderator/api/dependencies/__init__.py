"""API dependencies for dependency injection."""

from content_moderator.api.dependencies.moderation import (
    get_moderation_orchestrator,
)

__all__: list[str] = ["get_moderation_orchestrator"]
