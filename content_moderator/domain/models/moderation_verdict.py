"""Moderation verdict domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Verdict(str, Enum):
    """Classification outcome of the policy for one piece of content."""

    ALLOW = "ALLOW"
    FLAG = "FLAG"
    BLOCK = "BLOCK"

    @property
    def requires_alert(self) -> bool:
        """Whether a human reviewer must be notified."""
        return self is not Verdict.ALLOW


@dataclass(frozen=True)
class ModerationVerdict:
    """Output of the policy evaluator for one content record.

    Verdict, severity and reason codes are a pure function of the
    content and the policy version. ``evaluated_at`` is informational
    and does not take part in equality, so two evaluations of the same
    content always compare equal.

    Attributes:
        record_id: ID of the evaluated record ("" when evaluated ad hoc).
        verdict: ALLOW, FLAG or BLOCK.
        severity: Aggregate severity score (0 for clean content).
        reason_codes: Sorted, de-duplicated machine-readable tags.
        policy_version: Version of the rule set that produced the verdict.
        evaluated_at: When the evaluation happened.
    """

    record_id: str
    verdict: Verdict
    severity: int
    reason_codes: tuple[str, ...]
    policy_version: str
    evaluated_at: datetime | None = field(default=None, compare=False)

    @property
    def requires_alert(self) -> bool:
        """Whether this verdict must be dispatched as an alert."""
        return self.verdict.requires_alert

    def for_record(self, record_id: str) -> ModerationVerdict:
        """Return a copy of this verdict attributed to a record."""
        return ModerationVerdict(
            record_id=record_id,
            verdict=self.verdict,
            severity=self.severity,
            reason_codes=self.reason_codes,
            policy_version=self.policy_version,
            evaluated_at=self.evaluated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "recordId": self.record_id,
            "verdict": self.verdict.value,
            "severity": self.severity,
            "reasonCodes": list(self.reason_codes),
            "policyVersion": self.policy_version,
            "evaluatedAt": self.evaluated_at.isoformat() if self.evaluated_at else None,
        }
