"""Test helpers for content moderator tests.

Helpers:
    FakeTimeAuthority: Controllable time authority for deterministic tests
    SleepRecorder: Backoff sleep replacement that records delays
    make_record / make_records: ContentRecord builders

Usage:
    from tests.helpers import FakeTimeAuthority, make_record
"""

from tests.helpers.fake_time_authority import FakeTimeAuthority, SleepRecorder
from tests.helpers.records import make_record, make_records

__all__ = ["FakeTimeAuthority", "SleepRecorder", "make_record", "make_records"]
