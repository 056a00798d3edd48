"""
Pytest configuration and shared fixtures for content moderator tests.

Testing Standards:
- All async tests use pytest.mark.asyncio (auto mode enabled in pyproject.toml)
- Use AsyncMock for async function mocking
- Use the in-memory stubs for ports; they expose test control methods
- Unit tests go in tests/unit/<layer>/
"""

from datetime import datetime, timezone

import pytest

from content_moderator.infrastructure.stubs import AlertChannelStub, RecordStoreStub
from tests.helpers import FakeTimeAuthority


@pytest.fixture
def anyio_backend() -> str:
    """Use asyncio as the async backend."""
    return "asyncio"


@pytest.fixture
def project_version() -> str:
    """Provide the current project version for tests."""
    from content_moderator import __version__

    return __version__


@pytest.fixture
def fake_time_authority() -> FakeTimeAuthority:
    """Provide a frozen, controllable clock."""
    return FakeTimeAuthority(
        frozen_at=datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
    )


@pytest.fixture
def record_store() -> RecordStoreStub:
    """Provide an empty in-memory record store."""
    return RecordStoreStub()


@pytest.fixture
def alert_channel() -> AlertChannelStub:
    """Provide an in-memory alert channel."""
    return AlertChannelStub(topic="test-moderation-alerts")
