"""Configuration for the content moderation pipeline.

Available Configurations:
- ModerationConfig: Topic, table, policy threshold, paging, timeouts,
  retry and backend selection
"""

from content_moderator.config.moderation_config import (
    TEST_MODERATION_CONFIG,
    ModerationConfig,
)

__all__ = [
    "ModerationConfig",
    "TEST_MODERATION_CONFIG",
]
