"""
Content Moderator - policy-driven moderation pipeline for content records.

Inspects newly written or existing content records, classifies each one
against a rule-based policy and publishes exactly one alert per offending
record (keyed for downstream deduplication) to a notification topic.

Three invocation modes share one pipeline:
- Change events emitted by the record store on insert/modify
- Manual re-check of a single record
- Bulk audit sweep over the whole collection, paginated and resumable
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
