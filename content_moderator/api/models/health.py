"""Health check response models."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response model.

    Attributes:
        status: Health status string (e.g., "healthy").
        version: Package version.
        policy_version: Version of the active moderation policy.
    """

    status: str
    version: str
    policy_version: str
