"""Application services for the moderation pipeline."""
