"""Unit tests for AlertDispatcher."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from content_moderator.application.ports.alert_channel import PublishAck
from content_moderator.application.services.alert_dispatcher import AlertDispatcher
from content_moderator.application.services.error_handler import (
    ErrorHandler,
    RetryExecutor,
)
from content_moderator.domain.errors import (
    DispatchPermanentError,
    DispatchTransientError,
)
from content_moderator.domain.models.alert_message import AlertMessage
from content_moderator.domain.models.moderation_policy import ModerationPolicy
from content_moderator.domain.models.moderation_verdict import (
    ModerationVerdict,
    Verdict,
)
from content_moderator.domain.services.policy_evaluator import PolicyEvaluator
from content_moderator.infrastructure.stubs import AlertChannelStub
from tests.helpers import FakeTimeAuthority, SleepRecorder, make_record


class _HangingChannel:
    topic = "slow-alerts"

    async def publish(self, message: AlertMessage) -> PublishAck:
        await asyncio.sleep(10)
        raise AssertionError("unreachable")


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def dispatcher(
    alert_channel: AlertChannelStub,
    fake_time_authority: FakeTimeAuthority,
    sleep: SleepRecorder,
) -> AlertDispatcher:
    executor = RetryExecutor(ErrorHandler(max_attempts=3), sleep=sleep)
    return AlertDispatcher(alert_channel, executor, fake_time_authority)


@pytest.fixture
def block_verdict() -> ModerationVerdict:
    evaluator = PolicyEvaluator(ModerationPolicy.default())
    return evaluator.evaluate(
        "buy cheap followers now",
        record_id="r1",
        evaluated_at=datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc),
    )


class TestBuildAlert:
    """Test alert construction."""

    def test_uses_clock_and_owner(
        self,
        dispatcher: AlertDispatcher,
        block_verdict: ModerationVerdict,
        fake_time_authority: FakeTimeAuthority,
    ) -> None:
        """Test that the alert carries the clock's time and record owner."""
        message = dispatcher.build_alert(block_verdict, make_record("r1", owner="u-9"))

        assert message.record_id == "r1"
        assert message.verdict is Verdict.BLOCK
        assert message.timestamp == fake_time_authority.utcnow()
        assert message.owner == "u-9"

    def test_without_record(
        self, dispatcher: AlertDispatcher, block_verdict: ModerationVerdict
    ) -> None:
        """Test that the owner is optional."""
        assert dispatcher.build_alert(block_verdict).owner is None

    def test_allow_rejected(self, dispatcher: AlertDispatcher) -> None:
        """Test that ALLOW verdicts never become alerts."""
        allow = PolicyEvaluator(ModerationPolicy.default()).evaluate(
            "hello", record_id="r1"
        )

        with pytest.raises(ValueError, match="FLAG or BLOCK"):
            dispatcher.build_alert(allow)

    def test_key_stable_across_builds(
        self,
        dispatcher: AlertDispatcher,
        block_verdict: ModerationVerdict,
        fake_time_authority: FakeTimeAuthority,
    ) -> None:
        """Test that the key ignores the timestamp."""
        first = dispatcher.build_alert(block_verdict)
        fake_time_authority.advance(seconds=3600)
        second = dispatcher.build_alert(block_verdict)

        assert first.timestamp != second.timestamp
        assert first.idempotency_key == second.idempotency_key


class TestPublish:
    """Test publishing through the channel."""

    @pytest.mark.asyncio
    async def test_publish_returns_ack(
        self,
        dispatcher: AlertDispatcher,
        alert_channel: AlertChannelStub,
        block_verdict: ModerationVerdict,
    ) -> None:
        """Test a successful publish."""
        message = dispatcher.build_alert(block_verdict)

        ack = await dispatcher.publish(message)

        assert ack.topic == "test-moderation-alerts"
        assert ack.idempotency_key == message.idempotency_key
        assert alert_channel.published == [message]
        assert dispatcher.topic == "test-moderation-alerts"

    @pytest.mark.asyncio
    async def test_transient_failure_retried_with_same_key(
        self,
        dispatcher: AlertDispatcher,
        alert_channel: AlertChannelStub,
        block_verdict: ModerationVerdict,
        sleep: SleepRecorder,
    ) -> None:
        """Test that a retried publish resends the same message."""
        alert_channel.fail_transiently(times=2)
        message = dispatcher.build_alert(block_verdict)

        await dispatcher.publish(message)

        assert len(alert_channel.attempts) == 3
        assert {m.idempotency_key for m in alert_channel.attempts} == {
            message.idempotency_key
        }
        assert alert_channel.published_keys() == [message.idempotency_key]
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_transient_exhaustion(
        self,
        dispatcher: AlertDispatcher,
        alert_channel: AlertChannelStub,
        block_verdict: ModerationVerdict,
    ) -> None:
        """Test that exhausted retries surface the transient error."""
        alert_channel.fail_transiently(times=5)

        with pytest.raises(DispatchTransientError, match="broker not available"):
            await dispatcher.publish(dispatcher.build_alert(block_verdict))

        assert len(alert_channel.attempts) == 3
        assert alert_channel.published == []

    @pytest.mark.asyncio
    async def test_permanent_failure_not_retried(
        self,
        dispatcher: AlertDispatcher,
        alert_channel: AlertChannelStub,
        block_verdict: ModerationVerdict,
        sleep: SleepRecorder,
    ) -> None:
        """Test that a missing topic fails immediately."""
        alert_channel.fail_permanently()

        with pytest.raises(DispatchPermanentError, match="topic does not exist"):
            await dispatcher.publish(dispatcher.build_alert(block_verdict))

        assert len(alert_channel.attempts) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_timeout_becomes_transient_error(
        self,
        fake_time_authority: FakeTimeAuthority,
        block_verdict: ModerationVerdict,
    ) -> None:
        """Test that a hung publish is reported as a transient failure."""
        executor = RetryExecutor(ErrorHandler(max_attempts=2), sleep=SleepRecorder())
        dispatcher = AlertDispatcher(
            _HangingChannel(),
            executor,
            fake_time_authority,
            publish_timeout_seconds=0.01,
        )

        with pytest.raises(DispatchTransientError, match="timed out") as exc_info:
            await dispatcher.publish(dispatcher.build_alert(block_verdict))

        assert exc_info.value.topic == "slow-alerts"
