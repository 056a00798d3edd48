"""Moderation run result domain models.

A ModerationRunResult aggregates the per-record outcomes of one
invocation. Individual failures never abort the run; they are reported
here next to the successes, so callers always observe partial success
rather than an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from content_moderator.domain.models.moderation_command import CommandMode
from content_moderator.domain.models.moderation_verdict import (
    ModerationVerdict,
    Verdict,
)


class ErrorKind(str, Enum):
    """Per-record failure kinds reported in a run result."""

    NOT_FOUND = "NotFound"
    STORE_UNAVAILABLE = "Unavailable"
    INVALID_QUERY = "InvalidQuery"
    DISPATCH_TRANSIENT = "DispatchTransient"
    DISPATCH_PERMANENT = "DispatchPermanent"
    INTERNAL = "Internal"


@dataclass(frozen=True)
class RecordOutcome:
    """Outcome of moderating one record.

    Attributes:
        record_id: The processed record.
        verdict: Policy verdict, None when the record could not be evaluated.
        alerted: True when an alert was published for this record.
        error: Failure kind, None on success.
        error_message: Human-readable failure detail.
        alert_suppressed: True when the alert was skipped because the same
            idempotency key was already published in this invocation.
        idempotency_key: Key of the alert built for this record, if any.
    """

    record_id: str
    verdict: ModerationVerdict | None = None
    alerted: bool = False
    error: ErrorKind | None = None
    error_message: str | None = None
    alert_suppressed: bool = False
    idempotency_key: str | None = None

    @property
    def succeeded(self) -> bool:
        """True when the record was evaluated and fully handled."""
        return self.error is None

    @property
    def evaluated(self) -> bool:
        """True when the policy produced a verdict for this record."""
        return self.verdict is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "recordId": self.record_id,
            "verdict": self.verdict.verdict.value if self.verdict else None,
            "severity": self.verdict.severity if self.verdict else None,
            "reasonCodes": list(self.verdict.reason_codes) if self.verdict else [],
            "alerted": self.alerted,
            "alertSuppressed": self.alert_suppressed,
            "idempotencyKey": self.idempotency_key,
            "error": self.error.value if self.error else None,
            "errorMessage": self.error_message,
        }


@dataclass(frozen=True)
class CommandFailure:
    """A failure that prevented a command from resolving any record.

    Raised for sweep pages that could not be fetched; the sweep stops
    and the failed page's token is reported so it can be resumed.

    Attributes:
        mode: Mode of the failed command.
        error: Failure kind.
        error_message: Human-readable failure detail.
        continuation_token: Token of the page that failed, if any.
    """

    mode: CommandMode
    error: ErrorKind
    error_message: str
    continuation_token: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "mode": self.mode.value,
            "error": self.error.value,
            "errorMessage": self.error_message,
            "continuationToken": self.continuation_token,
        }


@dataclass(frozen=True)
class ModerationRunResult:
    """Aggregated result of one invocation.

    Attributes:
        outcomes: Per-record outcomes in processing order.
        command_failures: Failures that prevented records from resolving.
        continuation_token: Where to resume an unfinished sweep, if any.
        pages_processed: Number of sweep pages processed.
        timed_out: True when the time budget stopped the run early.
        degraded: True when every attempted alert failed permanently.
        policy_version: Version of the rule set used for this run.
        unprocessed_record_ids: Change-event or lookup records that were
            never started because the time budget ran out.
    """

    outcomes: tuple[RecordOutcome, ...] = ()
    command_failures: tuple[CommandFailure, ...] = ()
    continuation_token: str | None = None
    pages_processed: int = 0
    timed_out: bool = False
    degraded: bool = False
    policy_version: str = ""
    unprocessed_record_ids: tuple[str, ...] = ()

    @property
    def processed_count(self) -> int:
        """Number of records with an outcome."""
        return len(self.outcomes)

    @property
    def evaluated_count(self) -> int:
        """Number of records the policy produced a verdict for."""
        return sum(1 for outcome in self.outcomes if outcome.evaluated)

    @property
    def failed_count(self) -> int:
        """Number of records with an error."""
        return sum(1 for outcome in self.outcomes if not outcome.succeeded)

    @property
    def alerted_count(self) -> int:
        """Number of alerts published in this run."""
        return sum(1 for outcome in self.outcomes if outcome.alerted)

    @property
    def is_complete(self) -> bool:
        """True when nothing failed and nothing is left to resume."""
        return (
            self.failed_count == 0
            and not self.command_failures
            and self.continuation_token is None
            and not self.timed_out
            and not self.unprocessed_record_ids
        )

    def verdict_counts(self) -> dict[str, int]:
        """Count evaluated records per verdict."""
        counts = {verdict.value: 0 for verdict in Verdict}
        for outcome in self.outcomes:
            if outcome.verdict is not None:
                counts[outcome.verdict.verdict.value] += 1
        return counts

    def outcome_for(self, record_id: str) -> RecordOutcome | None:
        """Return the first outcome recorded for a record."""
        for outcome in self.outcomes:
            if outcome.record_id == record_id:
                return outcome
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the invocation response schema."""
        return {
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
            "commandFailures": [f.to_dict() for f in self.command_failures],
            "continuationToken": self.continuation_token,
            "pagesProcessed": self.pages_processed,
            "timedOut": self.timed_out,
            "degraded": self.degraded,
            "policyVersion": self.policy_version,
            "unprocessedRecordIds": list(self.unprocessed_record_ids),
            "summary": {
                "processed": self.processed_count,
                "evaluated": self.evaluated_count,
                "failed": self.failed_count,
                "alerted": self.alerted_count,
                "verdicts": self.verdict_counts(),
                "complete": self.is_complete,
            },
        }
