"""Record store port.

Protocol definition for read-only access to the content record
collection. The pipeline needs three access paths, one per invocation
mode: point lookup (change events and manual re-checks), filtered query
(owner-scoped audits) and full scan (audit sweeps).

Implementations never write to the store.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from content_moderator.domain.models.content_record import (
    ContentRecord,
    RecordFilter,
)


@dataclass(frozen=True)
class RecordPage:
    """One bounded page of records.

    Attributes:
        records: Records on this page (may be empty).
        next_token: Opaque cursor for the next page, None when exhausted.
    """

    records: tuple[ContentRecord, ...]
    next_token: str | None = None

    @property
    def is_last(self) -> bool:
        """Whether no further pages follow."""
        return self.next_token is None

    def __len__(self) -> int:
        """Return the number of records on the page."""
        return len(self.records)


class RecordStoreProtocol(Protocol):
    """Protocol for read-only record access.

    All methods are async for non-blocking I/O. Failures are reported as
    StoreError subclasses:
    - RecordNotFoundError: the record does not exist
    - StoreUnavailableError: transient failure, safe to retry
    - StoreInvalidQueryError: bad filter or continuation token
    """

    async def get_by_id(self, record_id: str) -> ContentRecord:
        """Retrieve a record by ID.

        Args:
            record_id: The unique identifier of the record.

        Returns:
            The ContentRecord.

        Raises:
            RecordNotFoundError: If no record has this ID.
            StoreUnavailableError: On transient store failure.
        """
        ...

    async def query_by_owner_or_filter(
        self,
        record_filter: RecordFilter,
        continuation_token: str | None = None,
        limit: int | None = None,
    ) -> RecordPage:
        """Return one page of records matching a filter.

        Args:
            record_filter: Owner and/or content criteria.
            continuation_token: Cursor from a previous page, None for the first.
            limit: Maximum records per page (implementation default if None).

        Returns:
            RecordPage with matching records and the next cursor.

        Raises:
            StoreInvalidQueryError: If the token or filter is invalid.
            StoreUnavailableError: On transient store failure.
        """
        ...

    async def scan_all(
        self,
        continuation_token: str | None = None,
        limit: int | None = None,
    ) -> RecordPage:
        """Return one page of a full collection scan.

        Across a complete sweep (following next_token until None) every
        record appears in exactly one page, absent concurrent mutation.
        Ordering across pages is not guaranteed.

        Args:
            continuation_token: Cursor from a previous page, None for the first.
            limit: Maximum records per page (implementation default if None).

        Returns:
            RecordPage with records and the next cursor.

        Raises:
            StoreInvalidQueryError: If the token is invalid.
            StoreUnavailableError: On transient store failure.
        """
        ...
