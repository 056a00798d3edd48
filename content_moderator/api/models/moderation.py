"""Moderation invocation response models.

Field names are snake_case in Python and camelCase on the wire, matching
the JSON form produced by ModerationRunResult.to_dict().
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RecordOutcomeResponse(_CamelModel):
    """Outcome of moderating one record.

    Attributes:
        record_id: The processed record.
        verdict: ALLOW, FLAG or BLOCK; None when evaluation did not happen.
        severity: Aggregate severity, None when not evaluated.
        reason_codes: Reason codes behind the verdict.
        alerted: Whether an alert was published.
        alert_suppressed: Whether a duplicate alert was skipped.
        idempotency_key: Key of the alert built for the record.
        error: Failure kind (NotFound, Unavailable, ...), None on success.
        error_message: Failure detail.
    """

    record_id: str
    verdict: str | None = None
    severity: int | None = None
    reason_codes: list[str] = Field(default_factory=list)
    alerted: bool = False
    alert_suppressed: bool = False
    idempotency_key: str | None = None
    error: str | None = None
    error_message: str | None = None


class CommandFailureResponse(_CamelModel):
    """A sweep page that could not be fetched."""

    mode: str
    error: str
    error_message: str
    continuation_token: str | None = None


class RunSummaryResponse(_CamelModel):
    """Counts over all outcomes of a run."""

    processed: int
    evaluated: int
    failed: int
    alerted: int
    verdicts: dict[str, int]
    complete: bool


class ModerationRunResponse(_CamelModel):
    """Aggregated result of one moderation invocation.

    Attributes:
        outcomes: Per-record outcomes in processing order.
        command_failures: Sweep pages that failed.
        continuation_token: Token to resume an unfinished sweep.
        pages_processed: Sweep pages processed.
        timed_out: Whether the time budget cut the run short.
        degraded: Whether every attempted alert failed permanently.
        policy_version: Rule set version used.
        unprocessed_record_ids: Records never started because of the budget.
        summary: Aggregate counts.
    """

    outcomes: list[RecordOutcomeResponse]
    command_failures: list[CommandFailureResponse] = Field(default_factory=list)
    continuation_token: str | None = None
    pages_processed: int = 0
    timed_out: bool = False
    degraded: bool = False
    policy_version: str
    unprocessed_record_ids: list[str] = Field(default_factory=list)
    summary: RunSummaryResponse


class ModerationErrorResponse(BaseModel):
    """RFC 7807 error body for rejected invocations."""

    type: str
    title: str
    status: int
    detail: str
    instance: str
