"""Health check endpoint."""

from fastapi import APIRouter

from content_moderator import __version__
from content_moderator.api.models.health import HealthResponse
from content_moderator.domain.models.moderation_policy import POLICY_VERSION

router = APIRouter(prefix="/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Return health status.

    Returns:
        Health status with 200 OK.
    """
    return HealthResponse(
        status="healthy", version=__version__, policy_version=POLICY_VERSION
    )
