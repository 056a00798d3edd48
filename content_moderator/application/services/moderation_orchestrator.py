"""Moderation orchestrator.

Ties the pipeline together for one invocation:

1. Route the raw trigger into ModerationCommands (InvalidTriggerError
   is the only failure that escapes ``handle``).
2. Resolve each command's records through the record store: a point
   lookup for SINGLE_* commands, page iteration for BULK_SWEEP.
3. Evaluate every resolved record against the policy.
4. Publish an alert for every FLAG/BLOCK verdict.
5. Record a per-record outcome. A failure on one record never stops the
   others; the run result reports partial success.

Sweeps stop after ``max_sweep_pages`` pages and hand back a continuation
token for the next invocation. When the overall time budget runs out the
orchestrator stops starting new records, lets in-flight calls finish and
returns what it has.

Each scanned record is re-read by ID before evaluation. A record that
was deleted between the scan and its evaluation is reported as NotFound
instead of being moderated from a stale page.

The orchestrator holds no state across invocations. Everything specific
to a run lives in a ``_RunState`` created by ``handle``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from structlog import get_logger

from content_moderator.application.ports.record_store import (
    RecordPage,
    RecordStoreProtocol,
)
from content_moderator.application.ports.time_authority import TimeAuthorityProtocol
from content_moderator.application.services.alert_dispatcher import AlertDispatcher
from content_moderator.application.services.error_handler import RetryExecutor
from content_moderator.application.services.invocation_router import InvocationRouter
from content_moderator.domain.errors import (
    DispatchError,
    DispatchPermanentError,
    RecordNotFoundError,
    StoreError,
    StoreInvalidQueryError,
    StoreUnavailableError,
)
from content_moderator.domain.models.content_record import ContentRecord
from content_moderator.domain.models.moderation_command import ModerationCommand
from content_moderator.domain.models.run_result import (
    CommandFailure,
    ErrorKind,
    ModerationRunResult,
    RecordOutcome,
)
from content_moderator.domain.services.policy_evaluator import PolicyEvaluator

logger = get_logger()

DEFAULT_SWEEP_PAGE_SIZE: int = 25
DEFAULT_MAX_SWEEP_PAGES: int = 20
DEFAULT_STORE_CALL_TIMEOUT_SECONDS: float = 5.0
DEFAULT_TIME_BUDGET_SECONDS: float = 60.0


def error_kind_for(error: Exception) -> ErrorKind:
    """Map a pipeline error onto the kind reported in run results."""
    if isinstance(error, RecordNotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(error, StoreInvalidQueryError):
        return ErrorKind.INVALID_QUERY
    if isinstance(error, StoreUnavailableError):
        return ErrorKind.STORE_UNAVAILABLE
    if isinstance(error, DispatchPermanentError):
        return ErrorKind.DISPATCH_PERMANENT
    if isinstance(error, DispatchError):
        return ErrorKind.DISPATCH_TRANSIENT
    return ErrorKind.INTERNAL


@dataclass
class _RunState:
    """Mutable bookkeeping for a single invocation."""

    deadline: float
    outcomes: list[RecordOutcome] = field(default_factory=list)
    command_failures: list[CommandFailure] = field(default_factory=list)
    published_keys: set[str] = field(default_factory=set)
    unprocessed_record_ids: list[str] = field(default_factory=list)
    continuation_token: str | None = None
    pages_processed: int = 0
    alert_attempts: int = 0
    permanent_dispatch_failures: int = 0
    timed_out: bool = False

    @property
    def degraded(self) -> bool:
        """Every attempted alert failed with a permanent channel error."""
        return (
            self.alert_attempts > 0
            and self.permanent_dispatch_failures == self.alert_attempts
        )

    def to_result(self, policy_version: str) -> ModerationRunResult:
        return ModerationRunResult(
            outcomes=tuple(self.outcomes),
            command_failures=tuple(self.command_failures),
            continuation_token=self.continuation_token,
            pages_processed=self.pages_processed,
            timed_out=self.timed_out,
            degraded=self.degraded,
            policy_version=policy_version,
            unprocessed_record_ids=tuple(self.unprocessed_record_ids),
        )


class ModerationOrchestrator:
    """Runs one moderation invocation end to end.

    Attributes:
        _router: Classifies raw triggers.
        _store: Read-only record store port.
        _evaluator: Pure policy evaluator.
        _dispatcher: Builds and publishes alerts.
        _executor: Timeout and retry for store calls.
        _time: Clock for timestamps and the time budget.

    Example:
        orchestrator = ModerationOrchestrator(
            router=InvocationRouter(),
            record_store=store,
            evaluator=PolicyEvaluator(ModerationPolicy.default()),
            dispatcher=dispatcher,
            executor=executor,
            time_authority=SystemTimeAuthority(),
        )
        result = await orchestrator.handle({"mode": "single", "recordId": "r1"})
    """

    def __init__(
        self,
        router: InvocationRouter,
        record_store: RecordStoreProtocol,
        evaluator: PolicyEvaluator,
        dispatcher: AlertDispatcher,
        executor: RetryExecutor,
        time_authority: TimeAuthorityProtocol,
        *,
        sweep_page_size: int = DEFAULT_SWEEP_PAGE_SIZE,
        max_sweep_pages: int = DEFAULT_MAX_SWEEP_PAGES,
        store_call_timeout_seconds: float = DEFAULT_STORE_CALL_TIMEOUT_SECONDS,
        time_budget_seconds: float = DEFAULT_TIME_BUDGET_SECONDS,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            router: Classifies raw triggers into commands.
            record_store: Read-only record store port.
            evaluator: Policy evaluator.
            dispatcher: Alert dispatcher.
            executor: Retry executor for store calls.
            time_authority: Clock for timestamps and the time budget.
            sweep_page_size: Records requested per sweep page.
            max_sweep_pages: Page cap per invocation.
            store_call_timeout_seconds: Per-attempt store call timeout.
            time_budget_seconds: Overall budget for one invocation.

        Raises:
            ValueError: If a limit is not positive.
        """
        if sweep_page_size < 1:
            raise ValueError(f"sweep_page_size must be positive, got {sweep_page_size}")
        if max_sweep_pages < 1:
            raise ValueError(f"max_sweep_pages must be positive, got {max_sweep_pages}")
        if store_call_timeout_seconds <= 0:
            raise ValueError("store_call_timeout_seconds must be positive")
        if time_budget_seconds <= 0:
            raise ValueError("time_budget_seconds must be positive")

        self._router = router
        self._store = record_store
        self._evaluator = evaluator
        self._dispatcher = dispatcher
        self._executor = executor
        self._time = time_authority
        self._page_size = sweep_page_size
        self._max_pages = max_sweep_pages
        self._store_timeout = store_call_timeout_seconds
        self._time_budget = time_budget_seconds

    async def handle(self, raw_trigger: Any) -> ModerationRunResult:
        """Process one invocation to completion.

        Args:
            raw_trigger: Decoded JSON payload of the invocation.

        Returns:
            ModerationRunResult with one outcome per processed record.

        Raises:
            InvalidTriggerError: If the payload cannot be routed. This is
                the only error that escapes; everything else is reported
                in the result.
        """
        commands = self._router.route(raw_trigger)

        run = _RunState(deadline=self._time.monotonic() + self._time_budget)
        log = logger.bind(policy_version=self._evaluator.policy_version)
        log.info("moderation_run_started", command_count=len(commands))

        for index, command in enumerate(commands):
            if self._out_of_time(run):
                self._stop_for_budget(run, commands[index:])
                break
            if command.is_sweep:
                await self._run_sweep(command, run)
            else:
                await self._moderate_record_id(command.record_id or "", run, command)

        result = run.to_result(self._evaluator.policy_version)
        log_method = log.warning if result.degraded or result.timed_out else log.info
        log_method(
            "moderation_run_completed",
            processed=result.processed_count,
            evaluated=result.evaluated_count,
            failed=result.failed_count,
            alerted=result.alerted_count,
            pages_processed=result.pages_processed,
            continuation_token=result.continuation_token,
            timed_out=result.timed_out,
            degraded=result.degraded,
        )
        return result

    # =========================================================================
    # Time budget
    # =========================================================================

    def _out_of_time(self, run: _RunState) -> bool:
        return self._time.monotonic() >= run.deadline

    def _stop_for_budget(
        self, run: _RunState, remaining: list[ModerationCommand]
    ) -> None:
        """Mark the run timed out and report what was never started."""
        run.timed_out = True
        for command in remaining:
            if command.is_sweep:
                if run.continuation_token is None:
                    run.continuation_token = command.continuation_token
            elif command.record_id is not None:
                run.unprocessed_record_ids.append(command.record_id)
        logger.warning(
            "time_budget_exhausted",
            budget_seconds=self._time_budget,
            unstarted_commands=len(remaining),
        )

    # =========================================================================
    # Sweep
    # =========================================================================

    async def _run_sweep(self, command: ModerationCommand, run: _RunState) -> None:
        """Page through the collection until exhausted, capped or out of time."""
        log = logger.bind(**command.to_log_context())
        page_command = command
        pages = 0

        while True:
            if pages >= self._max_pages:
                run.continuation_token = page_command.continuation_token
                log.info(
                    "sweep_page_cap_reached",
                    max_pages=self._max_pages,
                    next_token=page_command.continuation_token,
                )
                return

            if self._out_of_time(run):
                self._stop_for_budget(run, [page_command])
                return

            try:
                page = await self._fetch_page(page_command)
            except Exception as exc:
                run.command_failures.append(
                    CommandFailure(
                        mode=page_command.mode,
                        error=error_kind_for(exc),
                        error_message=str(exc),
                        continuation_token=page_command.continuation_token,
                    )
                )
                run.continuation_token = page_command.continuation_token
                if isinstance(exc, StoreError):
                    log.error(
                        "sweep_page_failed",
                        page_token=page_command.continuation_token,
                        error=str(exc),
                    )
                else:
                    log.exception(
                        "sweep_page_crashed",
                        page_token=page_command.continuation_token,
                    )
                return

            pages += 1
            run.pages_processed += 1
            log.debug(
                "sweep_page_fetched",
                page_number=pages,
                record_count=len(page),
                has_next=not page.is_last,
            )

            for scanned in page.records:
                if self._out_of_time(run):
                    # Resume from the start of this page; already-alerted
                    # records keep their idempotency keys.
                    self._stop_for_budget(run, [page_command])
                    return
                await self._moderate_record_id(scanned.id, run, page_command)

            if page.next_token is None:
                log.info("sweep_exhausted", pages=pages)
                return
            page_command = page_command.next_page(page.next_token)

    async def _fetch_page(self, command: ModerationCommand) -> RecordPage:
        token = command.continuation_token
        record_filter = command.record_filter

        if record_filter is not None:
            operation = "query_by_owner_or_filter"

            def fetch() -> Any:
                return self._store.query_by_owner_or_filter(
                    record_filter, continuation_token=token, limit=self._page_size
                )

        else:
            operation = "scan_all"

            def fetch() -> Any:
                return self._store.scan_all(
                    continuation_token=token, limit=self._page_size
                )

        return await self._executor.call(
            operation,
            fetch,
            timeout_seconds=self._store_timeout,
            on_timeout=lambda exc: StoreUnavailableError(operation, "timed out"),
            log_context={"continuation_token": token},
        )

    # =========================================================================
    # Per-record pipeline
    # =========================================================================

    async def _moderate_record_id(
        self, record_id: str, run: _RunState, command: ModerationCommand
    ) -> None:
        """Resolve, evaluate and alert one record, recording its outcome."""
        log = logger.bind(**command.to_log_context()).bind(record_id=record_id)
        try:
            record = await self._fetch_record(record_id)
        except RecordNotFoundError as exc:
            log.warning("record_not_found")
            run.outcomes.append(_failure(record_id, exc))
            return
        except StoreError as exc:
            log.error("record_fetch_failed", error=str(exc))
            run.outcomes.append(_failure(record_id, exc))
            return
        except Exception as exc:
            log.exception("record_fetch_crashed")
            run.outcomes.append(_failure(record_id, exc))
            return

        try:
            outcome = await self._moderate_record(record, run, log)
        except Exception as exc:
            log.exception("record_moderation_failed")
            outcome = _failure(record_id, exc)
        run.outcomes.append(outcome)

    async def _fetch_record(self, record_id: str) -> ContentRecord:
        return await self._executor.call(
            "get_by_id",
            lambda: self._store.get_by_id(record_id),
            timeout_seconds=self._store_timeout,
            on_timeout=lambda exc: StoreUnavailableError("get_by_id", "timed out"),
            log_context={"record_id": record_id},
        )

    async def _moderate_record(
        self, record: ContentRecord, run: _RunState, log: Any
    ) -> RecordOutcome:
        verdict = self._evaluator.evaluate(
            record.content,
            record_id=record.id,
            evaluated_at=self._time.utcnow(),
        )
        log.info(
            "record_evaluated",
            owner=record.owner,
            verdict=verdict.verdict.value,
            severity=verdict.severity,
            reason_codes=list(verdict.reason_codes),
        )

        if not verdict.requires_alert:
            return RecordOutcome(record_id=record.id, verdict=verdict)

        message = self._dispatcher.build_alert(verdict, record)
        key = message.idempotency_key

        if key in run.published_keys:
            log.info("alert_suppressed_duplicate", idempotency_key=key)
            return RecordOutcome(
                record_id=record.id,
                verdict=verdict,
                alert_suppressed=True,
                idempotency_key=key,
            )

        run.alert_attempts += 1
        try:
            await self._dispatcher.publish(message)
        except DispatchError as exc:
            if isinstance(exc, DispatchPermanentError):
                run.permanent_dispatch_failures += 1
            log.error(
                "alert_dispatch_failed",
                idempotency_key=key,
                permanent=isinstance(exc, DispatchPermanentError),
                error=str(exc),
            )
            return RecordOutcome(
                record_id=record.id,
                verdict=verdict,
                error=error_kind_for(exc),
                error_message=str(exc),
                idempotency_key=key,
            )

        run.published_keys.add(key)
        return RecordOutcome(
            record_id=record.id,
            verdict=verdict,
            alerted=True,
            idempotency_key=key,
        )


def _failure(record_id: str, error: Exception) -> RecordOutcome:
    return RecordOutcome(
        record_id=record_id,
        error=error_kind_for(error),
        error_message=str(error),
    )
