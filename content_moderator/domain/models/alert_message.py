"""Alert message domain model.

An AlertMessage is the unit published to the notification topic for
every FLAG or BLOCK verdict. Its idempotency key is a stable hash of
(record_id, verdict, policy_version): retries and re-runs of the same
verdict carry the same key so a deduplicating subscriber can collapse
them.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from content_moderator.domain.models.moderation_verdict import (
    ModerationVerdict,
    Verdict,
)

# Unit separator keeps ("a|b", "c") and ("a", "b|c") from colliding
_KEY_SEPARATOR = "\x1f"


def compute_idempotency_key(
    record_id: str, verdict: Verdict, policy_version: str
) -> str:
    """Compute the idempotency key for an alert.

    Args:
        record_id: ID of the flagged record.
        verdict: Verdict that triggered the alert.
        policy_version: Version of the rule set.

    Returns:
        Hex-encoded SHA-256 digest.
    """
    material = _KEY_SEPARATOR.join((record_id, verdict.value, policy_version))
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class AlertMessage:
    """Alert published to the notification topic.

    Attributes:
        record_id: ID of the flagged record.
        verdict: FLAG or BLOCK.
        severity: Aggregate severity score.
        reason_codes: Tags explaining the verdict.
        timestamp: When the alert was built.
        idempotency_key: Stable key for downstream deduplication.
        policy_version: Version of the rule set.
        owner: Submitting principal, for the reviewer's context.
    """

    record_id: str
    verdict: Verdict
    severity: int
    reason_codes: tuple[str, ...]
    timestamp: datetime
    idempotency_key: str
    policy_version: str
    owner: str | None = None

    def __post_init__(self) -> None:
        """Validate that only actionable verdicts become alerts."""
        if not self.verdict.requires_alert:
            raise ValueError(
                f"AlertMessage requires FLAG or BLOCK verdict, got {self.verdict.value}"
            )

    @classmethod
    def from_verdict(
        cls,
        verdict: ModerationVerdict,
        timestamp: datetime,
        owner: str | None = None,
    ) -> AlertMessage:
        """Build the alert for a verdict.

        Args:
            verdict: A FLAG or BLOCK verdict attributed to a record.
            timestamp: When the alert is being raised.
            owner: Owner of the record, if known.

        Returns:
            AlertMessage with its idempotency key computed.

        Raises:
            ValueError: If the verdict is ALLOW or has no record ID.
        """
        if not verdict.record_id:
            raise ValueError("Cannot build an alert for a verdict without record_id")
        return cls(
            record_id=verdict.record_id,
            verdict=verdict.verdict,
            severity=verdict.severity,
            reason_codes=verdict.reason_codes,
            timestamp=timestamp,
            idempotency_key=compute_idempotency_key(
                verdict.record_id, verdict.verdict, verdict.policy_version
            ),
            policy_version=verdict.policy_version,
            owner=owner,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the published message schema."""
        return {
            "recordId": self.record_id,
            "verdict": self.verdict.value,
            "severity": self.severity,
            "reasonCodes": list(self.reason_codes),
            "timestamp": self.timestamp.isoformat(),
            "idempotencyKey": self.idempotency_key,
            "policyVersion": self.policy_version,
            "owner": self.owner,
        }

    def to_json(self) -> str:
        """Serialize to the JSON body published on the topic."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    @property
    def subject(self) -> str:
        """Short human-readable summary for subscriber notifications."""
        return f"Content {self.verdict.value}: record {self.record_id}"
