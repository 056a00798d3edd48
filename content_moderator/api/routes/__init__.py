"""API routes for the content moderator.

Available routers:
- health: Health check endpoint
- moderation: Manual invocation endpoint
"""

from content_moderator.api.routes.health import router as health_router
from content_moderator.api.routes.moderation import router as moderation_router

__all__: list[str] = ["health_router", "moderation_router"]
