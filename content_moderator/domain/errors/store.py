"""Record store errors.

Error classes raised by RecordStoreProtocol implementations:
- RecordNotFoundError: the referenced record does not exist
- StoreUnavailableError: transient failure, safe to retry
- StoreInvalidQueryError: the query, filter or continuation token is invalid

None of these abort an invocation. The orchestrator records them
against the affected record (or page) and moves on.
"""

from __future__ import annotations

from content_moderator.domain.exceptions import ModerationError


class StoreError(ModerationError):
    """Base error for record store failures."""

    pass


class RecordNotFoundError(StoreError):
    """Error raised when a record does not exist in the store.

    Attributes:
        record_id: The ID of the record that was not found.
    """

    def __init__(self, record_id: str) -> None:
        """Initialize the error.

        Args:
            record_id: The ID of the record that was not found.
        """
        self.record_id = record_id
        super().__init__(f"Record not found: {record_id}")


class StoreUnavailableError(StoreError):
    """Error raised when the store cannot serve a request right now.

    Covers timeouts, dropped connections and throttling. Callers retry
    with backoff before giving up on the affected record.

    Attributes:
        operation: Store operation that failed (get_by_id, scan_all, ...).
    """

    def __init__(self, operation: str, detail: str = "") -> None:
        """Initialize the error.

        Args:
            operation: Store operation that failed.
            detail: Underlying error description.
        """
        self.operation = operation
        self.detail = detail
        message = f"Record store unavailable during {operation}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class StoreInvalidQueryError(StoreError):
    """Error raised when a query cannot be executed as given.

    Raised for malformed continuation tokens, empty filters and
    rejected statements. Retrying does not help.

    Attributes:
        detail: Description of what was invalid.
    """

    def __init__(self, detail: str) -> None:
        """Initialize the error.

        Args:
            detail: Description of what was invalid.
        """
        self.detail = detail
        super().__init__(f"Invalid store query: {detail}")
