"""Pure domain services."""

from content_moderator.domain.services.policy_evaluator import PolicyEvaluator

__all__ = ["PolicyEvaluator"]
