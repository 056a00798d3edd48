"""Moderation command domain model.

The Invocation Router turns every raw trigger into one or more
ModerationCommands. The mode is resolved once, at routing time, so the
orchestrator never has to inspect the raw payload again.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from content_moderator.domain.models.content_record import RecordFilter


class CommandMode(str, Enum):
    """How the records of a command are resolved."""

    SINGLE_EVENT = "SINGLE_EVENT"  # Change event from the store stream
    SINGLE_LOOKUP = "SINGLE_LOOKUP"  # Manual re-check of one record
    BULK_SWEEP = "BULK_SWEEP"  # Paginated audit of the collection


class ChangeType(str, Enum):
    """Kind of write that produced a change event."""

    INSERT = "INSERT"
    MODIFY = "MODIFY"


@dataclass(frozen=True)
class ModerationCommand:
    """Normalized unit of work for the orchestrator.

    Created per invocation, consumed immediately, never persisted.

    Attributes:
        mode: Resolution mode.
        record_id: Target record (SINGLE_* modes only).
        continuation_token: Page cursor (BULK_SWEEP only, None = first page).
        change_type: Write kind for SINGLE_EVENT (audit logging only).
        record_filter: Optional filter narrowing a BULK_SWEEP.
    """

    mode: CommandMode
    record_id: str | None = None
    continuation_token: str | None = None
    change_type: ChangeType | None = None
    record_filter: RecordFilter | None = None

    def __post_init__(self) -> None:
        """Validate the field combination for the mode."""
        if self.mode is CommandMode.BULK_SWEEP:
            if self.record_id is not None:
                raise ValueError("BULK_SWEEP command must not carry a record_id")
            if self.change_type is not None:
                raise ValueError("BULK_SWEEP command must not carry a change_type")
        else:
            if not self.record_id:
                raise ValueError(f"{self.mode.value} command requires a record_id")
            if self.continuation_token is not None or self.record_filter is not None:
                raise ValueError(
                    f"{self.mode.value} command must not carry sweep parameters"
                )
        if self.mode is CommandMode.SINGLE_LOOKUP and self.change_type is not None:
            raise ValueError("SINGLE_LOOKUP command must not carry a change_type")

    @classmethod
    def single_event(
        cls, record_id: str, change_type: ChangeType = ChangeType.INSERT
    ) -> ModerationCommand:
        """Create a command for one change-event record."""
        return cls(
            mode=CommandMode.SINGLE_EVENT,
            record_id=record_id,
            change_type=change_type,
        )

    @classmethod
    def single_lookup(cls, record_id: str) -> ModerationCommand:
        """Create a command for a manual re-check."""
        return cls(mode=CommandMode.SINGLE_LOOKUP, record_id=record_id)

    @classmethod
    def bulk_sweep(
        cls,
        continuation_token: str | None = None,
        record_filter: RecordFilter | None = None,
    ) -> ModerationCommand:
        """Create a sweep command starting at the given page."""
        return cls(
            mode=CommandMode.BULK_SWEEP,
            continuation_token=continuation_token,
            record_filter=record_filter,
        )

    @property
    def is_sweep(self) -> bool:
        """Whether this command pages through the collection."""
        return self.mode is CommandMode.BULK_SWEEP

    def next_page(self, continuation_token: str) -> ModerationCommand:
        """Return the sweep command for the following page.

        Raises:
            ValueError: If this is not a sweep command.
        """
        if not self.is_sweep:
            raise ValueError("Only BULK_SWEEP commands have a next page")
        return ModerationCommand.bulk_sweep(
            continuation_token=continuation_token,
            record_filter=self.record_filter,
        )

    def to_log_context(self) -> dict[str, Any]:
        """Key/value pairs to bind on a structured logger."""
        context: dict[str, Any] = {"mode": self.mode.value}
        if self.record_id is not None:
            context["record_id"] = self.record_id
        if self.change_type is not None:
            context["change_type"] = self.change_type.value
        if self.is_sweep:
            context["continuation_token"] = self.continuation_token
            if self.record_filter is not None:
                context["record_filter"] = self.record_filter.to_dict()
        return context
