"""Policy evaluator: content in, verdict out.

The evaluator is a pure function of its input and the policy it was
built with. It performs no I/O, keeps no state between calls and is
safe to call concurrently. It never raises on odd input: ``None``,
bytes (decoded with replacement characters) and non-text values are all
accepted, and empty or whitespace-only content is always ALLOWed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from content_moderator.domain.models.moderation_policy import (
    ModerationPolicy,
    RuleOutcome,
)
from content_moderator.domain.models.moderation_verdict import (
    ModerationVerdict,
    Verdict,
)


def coerce_content(content: Any) -> str:
    """Turn arbitrary stored content into text.

    Args:
        content: Text, bytes, None or any other value.

    Returns:
        Text to evaluate ("" for None).
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, (bytes, bytearray, memoryview)):
        return bytes(content).decode("utf-8", errors="replace")
    return str(content)


class PolicyEvaluator:
    """Evaluates content against a ModerationPolicy.

    Example:
        evaluator = PolicyEvaluator(ModerationPolicy.default())
        verdict = evaluator.evaluate("buy cheap followers now")
        assert verdict.verdict is Verdict.BLOCK
    """

    def __init__(self, policy: ModerationPolicy) -> None:
        """Initialize the evaluator.

        Args:
            policy: Rule set and threshold to evaluate against.
        """
        self._policy = policy

    @property
    def policy(self) -> ModerationPolicy:
        """The policy this evaluator applies."""
        return self._policy

    @property
    def policy_version(self) -> str:
        """Version of the policy this evaluator applies."""
        return self._policy.version

    def evaluate(
        self,
        content: Any,
        *,
        record_id: str = "",
        evaluated_at: datetime | None = None,
    ) -> ModerationVerdict:
        """Classify content as ALLOW, FLAG or BLOCK.

        Every rule runs; none short-circuits. The verdict is BLOCK when
        any rule reports a hard violation, FLAG when the summed severity
        exceeds the policy threshold, ALLOW otherwise.

        Args:
            content: Content to classify.
            record_id: Record the verdict is attributed to.
            evaluated_at: Timestamp to stamp on the verdict.

        Returns:
            ModerationVerdict for the content.
        """
        text = coerce_content(content)
        if not text.strip():
            return self._verdict(record_id, Verdict.ALLOW, 0, (), evaluated_at)

        outcomes: list[RuleOutcome] = [rule.check(text) for rule in self._policy.rules]

        severity = sum(outcome.severity for outcome in outcomes)
        reason_codes = tuple(
            sorted({code for outcome in outcomes for code in outcome.reason_codes})
        )

        if any(outcome.hard_violation for outcome in outcomes):
            verdict = Verdict.BLOCK
        elif severity > self._policy.severity_threshold:
            verdict = Verdict.FLAG
        else:
            verdict = Verdict.ALLOW

        return self._verdict(record_id, verdict, severity, reason_codes, evaluated_at)

    def _verdict(
        self,
        record_id: str,
        verdict: Verdict,
        severity: int,
        reason_codes: tuple[str, ...],
        evaluated_at: datetime | None,
    ) -> ModerationVerdict:
        return ModerationVerdict(
            record_id=record_id,
            verdict=verdict,
            severity=severity,
            reason_codes=reason_codes,
            policy_version=self._policy.version,
            evaluated_at=evaluated_at,
        )
