"""Record store stub for testing.

In-memory implementation of RecordStoreProtocol. Pages are served in
ascending ID order with the same opaque keyset tokens the PostgreSQL
adapter issues, so sweep behaviour matches production.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

from content_moderator.application.ports.record_store import (
    RecordPage,
    RecordStoreProtocol,
)
from content_moderator.domain.errors import (
    RecordNotFoundError,
    StoreInvalidQueryError,
    StoreUnavailableError,
)
from content_moderator.domain.models.content_record import (
    ContentRecord,
    RecordFilter,
)
from content_moderator.infrastructure.adapters.persistence.continuation_token import (
    decode_token,
    encode_token,
)

DEFAULT_PAGE_SIZE: int = 25


class RecordStoreStub(RecordStoreProtocol):
    """In-memory record store for testing.

    Beyond the port methods it exposes fault injection (queued failures,
    latency, an unavailable switch) and deferred deletion, which removes
    a record right after a scan page containing it has been served.
    """

    def __init__(
        self,
        records: Iterable[ContentRecord] = (),
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        """Initialize the store with optional seed records."""
        self._records: dict[str, ContentRecord] = {}
        self._default_page_size = default_page_size
        self._failures: dict[str, list[Exception]] = {}
        self._latency_seconds: float = 0.0
        self._unavailable: bool = False
        self._pending_deletions: set[str] = set()
        self.get_calls: list[str] = []
        self.scan_calls: list[str | None] = []
        self.query_calls: list[tuple[RecordFilter, str | None]] = []
        self.add_records(records)

    async def get_by_id(self, record_id: str) -> ContentRecord:
        """Return a record or raise RecordNotFoundError."""
        self.get_calls.append(record_id)
        await self._before_call("get_by_id")
        record = self._records.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    async def query_by_owner_or_filter(
        self,
        record_filter: RecordFilter,
        continuation_token: str | None = None,
        limit: int | None = None,
    ) -> RecordPage:
        """Return one page of records matching the filter."""
        self.query_calls.append((record_filter, continuation_token))
        await self._before_call("query_by_owner_or_filter")
        return self._page(
            [r for r in self._sorted() if record_filter.matches(r)],
            continuation_token,
            limit,
        )

    async def scan_all(
        self,
        continuation_token: str | None = None,
        limit: int | None = None,
    ) -> RecordPage:
        """Return one page of all records in ID order."""
        self.scan_calls.append(continuation_token)
        await self._before_call("scan_all")
        page = self._page(self._sorted(), continuation_token, limit)
        for record in page.records:
            if record.id in self._pending_deletions:
                self._pending_deletions.discard(record.id)
                self._records.pop(record.id, None)
        return page

    def _sorted(self) -> list[ContentRecord]:
        return [self._records[key] for key in sorted(self._records)]

    def _page(
        self,
        records: list[ContentRecord],
        continuation_token: str | None,
        limit: int | None,
    ) -> RecordPage:
        page_size = self._default_page_size if limit is None else limit
        if page_size < 1:
            raise StoreInvalidQueryError(f"limit must be positive, got {page_size}")
        if continuation_token is not None:
            after = decode_token(continuation_token)
            records = [r for r in records if r.id > after]

        page = tuple(records[:page_size])
        next_token = encode_token(page[-1].id) if len(records) > page_size else None
        return RecordPage(records=page, next_token=next_token)

    async def _before_call(self, operation: str) -> None:
        if self._latency_seconds:
            await asyncio.sleep(self._latency_seconds)
        if self._unavailable:
            raise StoreUnavailableError(operation, "store marked unavailable")
        queued = self._failures.get(operation)
        if queued:
            raise queued.pop(0)

    # =========================================================================
    # Test Control Methods
    # =========================================================================

    def add_record(self, record: ContentRecord) -> None:
        """Insert or replace a record."""
        self._records[record.id] = record

    def add_records(self, records: Iterable[ContentRecord]) -> None:
        """Insert or replace several records."""
        for record in records:
            self.add_record(record)

    def remove_record(self, record_id: str) -> None:
        """Delete a record immediately."""
        self._records.pop(record_id, None)

    def delete_after_scan(self, record_id: str) -> None:
        """Delete a record right after the scan page that returns it."""
        self._pending_deletions.add(record_id)

    def fail_next(self, operation: str, error: Exception, times: int = 1) -> None:
        """Raise ``error`` on the next ``times`` calls of ``operation``."""
        self._failures.setdefault(operation, []).extend([error] * times)

    def set_unavailable(self, unavailable: bool = True) -> None:
        """Make every call raise StoreUnavailableError."""
        self._unavailable = unavailable

    def set_latency(self, seconds: float) -> None:
        """Delay every call by ``seconds``."""
        self._latency_seconds = seconds

    def clear(self) -> None:
        """Reset records, faults and call history."""
        self._records.clear()
        self._failures.clear()
        self._pending_deletions.clear()
        self._latency_seconds = 0.0
        self._unavailable = False
        self.get_calls.clear()
        self.scan_calls.clear()
        self.query_calls.clear()

    @property
    def record_count(self) -> int:
        """Number of stored records."""
        return len(self._records)
