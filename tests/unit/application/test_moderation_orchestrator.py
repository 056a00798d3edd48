"""Unit tests for ModerationOrchestrator.

The orchestrator is assembled with build_orchestrator over the in-memory
record store and alert channel, a frozen clock and a recording sleep.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any
from unittest.mock import MagicMock

import pytest

from content_moderator.application.ports.alert_channel import PublishAck
from content_moderator.application.services.moderation_orchestrator import (
    ModerationOrchestrator,
    error_kind_for,
)
from content_moderator.bootstrap.moderation import build_orchestrator
from content_moderator.config import TEST_MODERATION_CONFIG, ModerationConfig
from content_moderator.domain.errors import (
    DispatchPermanentError,
    DispatchTransientError,
    InvalidTriggerError,
    RecordNotFoundError,
    StoreInvalidQueryError,
    StoreUnavailableError,
)
from content_moderator.domain.models.alert_message import AlertMessage
from content_moderator.domain.models.moderation_command import CommandMode
from content_moderator.domain.models.moderation_verdict import Verdict
from content_moderator.domain.models.run_result import ErrorKind
from content_moderator.infrastructure.adapters.persistence import encode_token
from content_moderator.infrastructure.stubs import AlertChannelStub, RecordStoreStub
from tests.helpers import FakeTimeAuthority, SleepRecorder, make_record, make_records

BLOCKED_CONTENT = "buy cheap followers now"


def _change_event(*record_ids: str) -> dict[str, Any]:
    return {
        "eventSource": "store-stream",
        "records": [{"id": rid, "changeType": "INSERT"} for rid in record_ids],
    }


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_orchestrator(
    record_store: RecordStoreStub,
    alert_channel: AlertChannelStub,
    fake_time_authority: FakeTimeAuthority,
    sleep: SleepRecorder,
):
    def _make(**overrides: Any) -> ModerationOrchestrator:
        config: ModerationConfig = replace(TEST_MODERATION_CONFIG, **overrides)
        return build_orchestrator(
            config,
            record_store,
            alert_channel,
            time_authority=fake_time_authority,
            sleep=sleep,
        )

    return _make


@pytest.fixture
def orchestrator(make_orchestrator) -> ModerationOrchestrator:
    return make_orchestrator()


class TestSingleRecord:
    """Test single lookups and change events."""

    @pytest.mark.asyncio
    async def test_clean_record_allowed(
        self,
        orchestrator: ModerationOrchestrator,
        record_store: RecordStoreStub,
        alert_channel: AlertChannelStub,
    ) -> None:
        """Test that clean content is allowed without an alert."""
        record_store.add_record(make_record("r1"))

        result = await orchestrator.handle({"mode": "single", "recordId": "r1"})

        outcome = result.outcome_for("r1")
        assert outcome is not None
        assert outcome.verdict is not None
        assert outcome.verdict.verdict is Verdict.ALLOW
        assert not outcome.alerted
        assert alert_channel.attempts == []
        assert result.is_complete
        assert result.policy_version

    @pytest.mark.asyncio
    async def test_missing_record_reports_not_found(
        self,
        orchestrator: ModerationOrchestrator,
        alert_channel: AlertChannelStub,
    ) -> None:
        """Test that a missing record yields one NotFound outcome."""
        result = await orchestrator.handle({"mode": "single", "recordId": "gone"})

        assert result.processed_count == 1
        outcome = result.outcomes[0]
        assert outcome.record_id == "gone"
        assert outcome.error is ErrorKind.NOT_FOUND
        assert outcome.verdict is None
        assert not outcome.alerted
        assert alert_channel.attempts == []

    @pytest.mark.asyncio
    async def test_blocked_record_alerts_once(
        self,
        orchestrator: ModerationOrchestrator,
        record_store: RecordStoreStub,
        alert_channel: AlertChannelStub,
        fake_time_authority: FakeTimeAuthority,
    ) -> None:
        """Test that a disallowed term produces BLOCK and exactly one alert."""
        record_store.add_record(make_record("r1", BLOCKED_CONTENT, owner="u-7"))

        result = await orchestrator.handle(_change_event("r1"))

        outcome = result.outcomes[0]
        assert outcome.verdict is not None
        assert outcome.verdict.verdict is Verdict.BLOCK
        assert outcome.alerted
        assert len(alert_channel.published) == 1
        message = alert_channel.published[0]
        assert message.record_id == "r1"
        assert message.owner == "u-7"
        assert message.timestamp == fake_time_authority.utcnow()
        assert outcome.idempotency_key == message.idempotency_key
        assert result.alerted_count == 1

    @pytest.mark.asyncio
    async def test_transient_store_failure_is_transparent(
        self,
        orchestrator: ModerationOrchestrator,
        record_store: RecordStoreStub,
        sleep: SleepRecorder,
    ) -> None:
        """Test that one transient read failure is retried away."""
        record_store.add_record(make_record("r1"))
        record_store.fail_next("get_by_id", StoreUnavailableError("get_by_id", "blip"))

        result = await orchestrator.handle({"mode": "single", "recordId": "r1"})

        assert result.outcomes[0].succeeded
        assert record_store.get_calls == ["r1", "r1"]
        assert len(sleep.delays) == 1

    @pytest.mark.asyncio
    async def test_store_unavailable_after_retries(
        self,
        orchestrator: ModerationOrchestrator,
        record_store: RecordStoreStub,
    ) -> None:
        """Test that exhausted retries are reported as Unavailable."""
        record_store.set_unavailable()

        result = await orchestrator.handle({"mode": "single", "recordId": "r1"})

        assert result.outcomes[0].error is ErrorKind.STORE_UNAVAILABLE
        assert len(record_store.get_calls) == 3

    @pytest.mark.asyncio
    async def test_unexpected_fetch_error_stays_with_its_record(
        self,
        orchestrator: ModerationOrchestrator,
        record_store: RecordStoreStub,
    ) -> None:
        """Test that an unclassified store error fails only its own record."""
        record_store.add_records([make_record("r1"), make_record("r2")])
        record_store.fail_next("get_by_id", RuntimeError("driver exploded"), times=3)

        result = await orchestrator.handle(_change_event("r1", "r2"))

        assert [o.record_id for o in result.outcomes] == ["r1", "r2"]
        assert result.outcomes[0].error is ErrorKind.INTERNAL
        assert "driver exploded" in (result.outcomes[0].error_message or "")
        assert result.outcomes[1].error is None
        assert result.outcomes[1].verdict is not None
        assert result.outcomes[1].verdict.verdict is Verdict.ALLOW

    @pytest.mark.asyncio
    async def test_partial_success_keeps_order(
        self,
        orchestrator: ModerationOrchestrator,
        record_store: RecordStoreStub,
    ) -> None:
        """Test that one failing record does not stop the others."""
        record_store.add_records(
            [make_record("r1"), make_record("r3", BLOCKED_CONTENT)]
        )

        result = await orchestrator.handle(_change_event("r1", "r2", "r3"))

        assert [o.record_id for o in result.outcomes] == ["r1", "r2", "r3"]
        assert result.outcomes[1].error is ErrorKind.NOT_FOUND
        assert result.outcomes[2].alerted
        assert result.failed_count == 1
        assert not result.is_complete

    @pytest.mark.asyncio
    async def test_native_stream_batch(
        self,
        orchestrator: ModerationOrchestrator,
        record_store: RecordStoreStub,
    ) -> None:
        """Test that native stream events are moderated like change events."""
        record_store.add_record(make_record("r1"))
        trigger = {
            "Records": [
                {"eventName": "MODIFY", "dynamodb": {"Keys": {"id": {"S": "r1"}}}},
                {"eventName": "REMOVE", "dynamodb": {"Keys": {"id": {"S": "r2"}}}},
            ]
        }

        result = await orchestrator.handle(trigger)

        assert [o.record_id for o in result.outcomes] == ["r1"]


class TestInvalidTrigger:
    """Test rejection of malformed payloads."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "trigger",
        [
            {},
            {"mode": "single"},
            {"mode": "sweep", "recordId": "r1"},
            {"eventSource": "store-stream", "records": []},
            [1, 2],
        ],
    )
    async def test_invalid_trigger_raises(
        self,
        orchestrator: ModerationOrchestrator,
        record_store: RecordStoreStub,
        trigger: Any,
    ) -> None:
        """Test that invalid payloads raise before touching the store."""
        with pytest.raises(InvalidTriggerError):
            await orchestrator.handle(trigger)

        assert record_store.get_calls == []
        assert record_store.scan_calls == []


class TestAlertDeduplication:
    """Test alert idempotency within one invocation."""

    @pytest.mark.asyncio
    async def test_duplicate_record_in_batch_suppressed(
        self,
        orchestrator: ModerationOrchestrator,
        record_store: RecordStoreStub,
        alert_channel: AlertChannelStub,
    ) -> None:
        """Test that the same violation is published once per invocation."""
        record_store.add_record(make_record("r1", BLOCKED_CONTENT))

        result = await orchestrator.handle(_change_event("r1", "r1"))

        first, second = result.outcomes
        assert first.alerted
        assert not second.alerted
        assert second.alert_suppressed
        assert second.idempotency_key == first.idempotency_key
        assert len(alert_channel.published) == 1

    @pytest.mark.asyncio
    async def test_failed_publish_not_suppressed(
        self,
        orchestrator: ModerationOrchestrator,
        record_store: RecordStoreStub,
        alert_channel: AlertChannelStub,
    ) -> None:
        """Test that a key is only remembered once it was published."""
        record_store.add_record(make_record("r1", BLOCKED_CONTENT))
        alert_channel.fail_transiently(times=3)

        result = await orchestrator.handle(_change_event("r1", "r1"))

        first, second = result.outcomes
        assert first.error is ErrorKind.DISPATCH_TRANSIENT
        assert second.alerted
        assert len(alert_channel.published) == 1


class TestDegradedRuns:
    """Test the degraded flag."""

    @pytest.mark.asyncio
    async def test_all_alerts_permanently_failed(
        self,
        orchestrator: ModerationOrchestrator,
        record_store: RecordStoreStub,
        alert_channel: AlertChannelStub,
    ) -> None:
        """Test that a missing topic degrades the run."""
        record_store.add_records(
            [make_record("r1", BLOCKED_CONTENT), make_record("r2", BLOCKED_CONTENT)]
        )
        alert_channel.fail_permanently()

        result = await orchestrator.handle(_change_event("r1", "r2"))

        assert result.degraded
        assert all(o.error is ErrorKind.DISPATCH_PERMANENT for o in result.outcomes)
        assert all(o.verdict is not None for o in result.outcomes)
        assert len(alert_channel.attempts) == 2

    @pytest.mark.asyncio
    async def test_transient_failures_do_not_degrade(
        self,
        orchestrator: ModerationOrchestrator,
        record_store: RecordStoreStub,
        alert_channel: AlertChannelStub,
    ) -> None:
        """Test that exhausted transient failures leave the run healthy."""
        record_store.add_record(make_record("r1", BLOCKED_CONTENT))
        alert_channel.fail_transiently(times=3)

        result = await orchestrator.handle(_change_event("r1"))

        assert result.outcomes[0].error is ErrorKind.DISPATCH_TRANSIENT
        assert not result.degraded

    @pytest.mark.asyncio
    async def test_no_alerts_not_degraded(
        self,
        orchestrator: ModerationOrchestrator,
        record_store: RecordStoreStub,
        alert_channel: AlertChannelStub,
    ) -> None:
        """Test that a run without alerts is never degraded."""
        record_store.add_record(make_record("r1"))
        alert_channel.fail_permanently()

        result = await orchestrator.handle(_change_event("r1"))

        assert not result.degraded

    @pytest.mark.asyncio
    async def test_unexpected_channel_error_is_internal(
        self,
        record_store: RecordStoreStub,
        fake_time_authority: FakeTimeAuthority,
        sleep: SleepRecorder,
    ) -> None:
        """Test that an unexpected error is isolated to its record."""

        class _BrokenChannel:
            topic = "broken"

            async def publish(self, message: AlertMessage) -> PublishAck:
                raise RuntimeError("boom")

        record_store.add_records(
            [make_record("r1", BLOCKED_CONTENT), make_record("r2")]
        )
        orchestrator = build_orchestrator(
            TEST_MODERATION_CONFIG,
            record_store,
            _BrokenChannel(),
            time_authority=fake_time_authority,
            sleep=sleep,
        )

        result = await orchestrator.handle(_change_event("r1", "r2"))

        assert result.outcomes[0].error is ErrorKind.INTERNAL
        assert result.outcomes[0].error_message == "boom"
        assert result.outcomes[1].succeeded


class TestSweep:
    """Test bulk sweeps."""

    @pytest.mark.asyncio
    async def test_record_deleted_mid_sweep(
        self,
        orchestrator: ModerationOrchestrator,
        record_store: RecordStoreStub,
    ) -> None:
        """Test that a record deleted after its page was scanned is NotFound."""
        record_store.add_records(make_records(6))
        record_store.delete_after_scan("r003")

        result = await orchestrator.handle({"mode": "sweep"})

        assert result.pages_processed == 3
        assert result.processed_count == 6
        assert result.evaluated_count == 5
        assert result.outcome_for("r003").error is ErrorKind.NOT_FOUND
        assert result.continuation_token is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page_size", [1, 2, 3, 4, 5, 6, 7])
    async def test_every_record_visited_once(
        self,
        make_orchestrator,
        record_store: RecordStoreStub,
        page_size: int,
    ) -> None:
        """Test that pagination neither skips nor repeats records."""
        records = make_records(6)
        record_store.add_records(records)
        orchestrator = make_orchestrator(sweep_page_size=page_size)

        result = await orchestrator.handle({"mode": "sweep"})

        assert [o.record_id for o in result.outcomes] == [r.id for r in records]
        assert result.continuation_token is None
        assert result.is_complete

    @pytest.mark.asyncio
    async def test_empty_collection(
        self,
        orchestrator: ModerationOrchestrator,
    ) -> None:
        """Test that an empty collection is a complete, empty run."""
        result = await orchestrator.handle({"mode": "sweep"})

        assert result.outcomes == ()
        assert result.pages_processed == 1
        assert result.is_complete

    @pytest.mark.asyncio
    async def test_page_cap_returns_token(
        self,
        make_orchestrator,
        record_store: RecordStoreStub,
    ) -> None:
        """Test that the page cap hands back a resumable token."""
        record_store.add_records(make_records(6))
        orchestrator = make_orchestrator(sweep_max_pages=2)

        first = await orchestrator.handle({"mode": "sweep"})

        assert first.pages_processed == 2
        assert [o.record_id for o in first.outcomes] == ["r000", "r001", "r002", "r003"]
        assert first.continuation_token == encode_token("r003")

        second = await orchestrator.handle(
            {"mode": "sweep", "continuationToken": first.continuation_token}
        )

        assert [o.record_id for o in second.outcomes] == ["r004", "r005"]
        assert second.continuation_token is None

    @pytest.mark.asyncio
    async def test_filtered_sweep_uses_query(
        self,
        orchestrator: ModerationOrchestrator,
        record_store: RecordStoreStub,
    ) -> None:
        """Test that owner filters go through query_by_owner_or_filter."""
        record_store.add_records(
            [
                make_record("a1", owner="u-1"),
                make_record("a2", owner="u-2"),
                make_record("a3", owner="u-2"),
            ]
        )

        result = await orchestrator.handle({"mode": "sweep", "owner": "u-2"})

        assert [o.record_id for o in result.outcomes] == ["a2", "a3"]
        assert record_store.scan_calls == []
        assert len(record_store.query_calls) == 1

    @pytest.mark.asyncio
    async def test_invalid_token_is_command_failure(
        self,
        orchestrator: ModerationOrchestrator,
    ) -> None:
        """Test that a malformed token fails the sweep without raising."""
        result = await orchestrator.handle(
            {"mode": "sweep", "continuationToken": "not-a-token"}
        )

        assert result.outcomes == ()
        (failure,) = result.command_failures
        assert failure.mode is CommandMode.BULK_SWEEP
        assert failure.error is ErrorKind.INVALID_QUERY
        assert failure.continuation_token == "not-a-token"
        assert not result.is_complete

    @pytest.mark.asyncio
    async def test_unavailable_page_keeps_resume_point(
        self,
        orchestrator: ModerationOrchestrator,
        record_store: RecordStoreStub,
    ) -> None:
        """Test that a page that cannot be fetched is reported with its token."""
        record_store.add_records(make_records(4))
        record_store.set_unavailable()

        result = await orchestrator.handle({"mode": "sweep"})

        (failure,) = result.command_failures
        assert failure.error is ErrorKind.STORE_UNAVAILABLE
        assert len(record_store.scan_calls) == 3
        assert result.pages_processed == 0

    @pytest.mark.asyncio
    async def test_unexpected_page_error_is_command_failure(
        self,
        orchestrator: ModerationOrchestrator,
        record_store: RecordStoreStub,
    ) -> None:
        """Test that an unclassified page error is reported with its token."""
        record_store.add_records(make_records(4))
        record_store.fail_next("scan_all", ValueError("bad row"), times=3)
        token = encode_token("r001")

        result = await orchestrator.handle(
            {"mode": "sweep", "continuationToken": token}
        )

        (failure,) = result.command_failures
        assert failure.mode is CommandMode.BULK_SWEEP
        assert failure.error is ErrorKind.INTERNAL
        assert failure.error_message == "bad row"
        assert failure.continuation_token == token
        assert result.continuation_token == token
        assert result.outcomes == ()


class TestTimeBudget:
    """Test the invocation time budget."""

    @pytest.mark.asyncio
    async def test_unstarted_records_reported(
        self,
        make_orchestrator,
        record_store: RecordStoreStub,
        fake_time_authority: FakeTimeAuthority,
    ) -> None:
        """Test that records not started before the deadline are listed."""
        record_store.add_records(make_records(4))
        orchestrator = make_orchestrator(invocation_time_budget_seconds=30.0)
        fake_time_authority.advance_on_monotonic_call(seconds=10)

        result = await orchestrator.handle(
            _change_event("r000", "r001", "r002", "r003")
        )

        assert result.timed_out
        assert [o.record_id for o in result.outcomes] == ["r000", "r001"]
        assert result.unprocessed_record_ids == ("r002", "r003")
        assert not result.is_complete

    @pytest.mark.asyncio
    async def test_sweep_resumes_from_current_page(
        self,
        make_orchestrator,
        record_store: RecordStoreStub,
        fake_time_authority: FakeTimeAuthority,
    ) -> None:
        """Test that a timed-out sweep returns the token of its current page."""
        record_store.add_records(make_records(8))
        orchestrator = make_orchestrator(invocation_time_budget_seconds=10.0)
        fake_time_authority.advance_on_monotonic_call(seconds=1)

        result = await orchestrator.handle({"mode": "sweep"})

        assert result.timed_out
        assert result.pages_processed == 3
        assert [o.record_id for o in result.outcomes] == [
            "r000",
            "r001",
            "r002",
            "r003",
            "r004",
        ]
        assert result.continuation_token == encode_token("r003")


class TestConstruction:
    """Test constructor validation and error mapping."""

    @pytest.mark.parametrize(
        ("overrides", "match"),
        [
            ({"sweep_page_size": 0}, "sweep_page_size"),
            ({"max_sweep_pages": 0}, "max_sweep_pages"),
            ({"store_call_timeout_seconds": 0.0}, "store_call_timeout_seconds"),
            ({"time_budget_seconds": -1.0}, "time_budget_seconds"),
        ],
    )
    def test_rejects_non_positive_limits(
        self, overrides: dict[str, Any], match: str
    ) -> None:
        """Test that limits must be positive."""
        with pytest.raises(ValueError, match=match):
            ModerationOrchestrator(
                MagicMock(),
                MagicMock(),
                MagicMock(),
                MagicMock(),
                MagicMock(),
                MagicMock(),
                **overrides,
            )

    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (RecordNotFoundError("r1"), ErrorKind.NOT_FOUND),
            (StoreUnavailableError("scan_all"), ErrorKind.STORE_UNAVAILABLE),
            (StoreInvalidQueryError("bad"), ErrorKind.INVALID_QUERY),
            (DispatchTransientError("t", "k", "x"), ErrorKind.DISPATCH_TRANSIENT),
            (DispatchPermanentError("t", "k", "x"), ErrorKind.DISPATCH_PERMANENT),
            (RuntimeError("x"), ErrorKind.INTERNAL),
        ],
    )
    def test_error_kind_mapping(self, error: Exception, kind: ErrorKind) -> None:
        """Test that errors map to reported kinds."""
        assert error_kind_for(error) is kind
