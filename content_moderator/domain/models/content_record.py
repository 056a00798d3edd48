"""Content record domain models.

A ContentRecord is one moderatable unit as stored by the external
record-storage collaborator. The moderation pipeline only ever reads
records; it never mutates or deletes them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


def _parse_timestamp(value: Any) -> datetime | None:
    """Parse a stored timestamp into an aware datetime.

    Accepts datetime instances and ISO 8601 strings (with or without a
    trailing ``Z``). Anything unparseable is treated as missing, since
    timestamps are informational only.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


@dataclass(frozen=True)
class ContentRecord:
    """One moderatable unit of user content.

    Attributes:
        id: Opaque unique identifier, immutable once created.
        content: Free-form text body evaluated by the policy.
        owner: Identifier of the submitting principal (audit/logging only).
        created_at: Creation timestamp (informational).
        updated_at: Last update timestamp (informational).
    """

    id: str
    content: str | None
    owner: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        """Validate record fields."""
        if not self.id:
            raise ValueError("ContentRecord id must be a non-empty string")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ContentRecord:
        """Build a record from a stored row or document.

        Both camelCase (``createdAt``) and snake_case (``created_at``)
        keys are understood, since rows come from different backends.

        Args:
            data: Mapping with at least an ``id`` key.

        Returns:
            ContentRecord populated from the mapping.

        Raises:
            ValueError: If ``id`` is missing or empty.
        """
        record_id = data.get("id")
        if record_id is None:
            raise ValueError("ContentRecord mapping is missing 'id'")
        content = data.get("content")
        if isinstance(content, (bytes, bytearray, memoryview)):
            content = bytes(content).decode("utf-8", errors="replace")
        elif content is not None:
            content = str(content)
        return cls(
            id=str(record_id),
            content=content,
            owner=data.get("owner"),
            created_at=_parse_timestamp(data.get("createdAt", data.get("created_at"))),
            updated_at=_parse_timestamp(data.get("updatedAt", data.get("updated_at"))),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "content": self.content,
            "owner": self.owner,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class RecordFilter:
    """Filter for owner-scoped or content-scoped audit queries.

    At least one criterion must be set. When both are set a record must
    satisfy both.

    Attributes:
        owner: Only records submitted by this principal.
        contains: Only records whose content contains this substring
            (case-insensitive).
    """

    owner: str | None = None
    contains: str | None = None

    def __post_init__(self) -> None:
        """Validate that the filter narrows the collection."""
        if not self.owner and not self.contains:
            raise ValueError("RecordFilter requires an owner or a contains term")

    def matches(self, record: ContentRecord) -> bool:
        """Check whether a record satisfies this filter."""
        if self.owner and record.owner != self.owner:
            return False
        if self.contains:
            body = (record.content or "").lower()
            if self.contains.lower() not in body:
                return False
        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {"owner": self.owner, "contains": self.contains}
