"""HTTP surface for manual moderation triggers."""
