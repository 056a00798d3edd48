"""Invocation router.

Classifies a raw invocation payload into normalized ModerationCommands.
The trigger shape is inspected exactly once, here; everything
downstream works with the ``CommandMode`` tagged union.

Accepted payloads:

- Change event::

    {"eventSource": "store-stream",
     "records": [{"id": "r1", "changeType": "INSERT"}]}

- Native store change stream::

    {"Records": [{"eventName": "MODIFY",
                  "dynamodb": {"Keys": {"id": {"S": "r1"}}}}]}

- Manual single record::

    {"mode": "single", "recordId": "r1"}

- Manual sweep (optionally narrowed and/or resumed)::

    {"mode": "sweep", "continuationToken": "...", "owner": "u1"}

Anything else raises InvalidTriggerError and produces no commands.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from structlog import get_logger

from content_moderator.domain.errors import InvalidTriggerError
from content_moderator.domain.models.content_record import RecordFilter
from content_moderator.domain.models.moderation_command import (
    ChangeType,
    ModerationCommand,
)

logger = get_logger()

EVENT_SOURCE_STORE_STREAM = "store-stream"
MODE_SINGLE = "single"
MODE_SWEEP = "sweep"

# Native stream event names; REMOVE has nothing left to moderate
_STREAM_REMOVE = "REMOVE"


class InvocationRouter:
    """Turns raw triggers into moderation commands.

    The router is stateless and performs no I/O.
    """

    def route(self, raw_trigger: Any) -> list[ModerationCommand]:
        """Classify a trigger and build its commands.

        Args:
            raw_trigger: Decoded JSON payload of the invocation.

        Returns:
            Commands in the order they must be processed. A native stream
            batch made only of REMOVE events yields an empty list.

        Raises:
            InvalidTriggerError: If the payload is malformed or unknown.
        """
        if not isinstance(raw_trigger, Mapping):
            raise InvalidTriggerError(
                f"payload must be an object, got {type(raw_trigger).__name__}"
            )

        if "eventSource" in raw_trigger:
            commands = self._route_change_event(raw_trigger)
        elif "Records" in raw_trigger:
            commands = self._route_stream_batch(raw_trigger)
        elif "mode" in raw_trigger:
            commands = self._route_manual(raw_trigger)
        else:
            raise InvalidTriggerError(
                "payload has neither 'eventSource', 'Records' nor 'mode'"
            )

        logger.debug(
            "trigger_routed",
            command_count=len(commands),
            modes=sorted({command.mode.value for command in commands}),
        )
        return commands

    def _route_change_event(
        self, payload: Mapping[str, Any]
    ) -> list[ModerationCommand]:
        source = payload.get("eventSource")
        if source != EVENT_SOURCE_STORE_STREAM:
            raise InvalidTriggerError(f"unknown eventSource {source!r}")

        records = payload.get("records")
        if not isinstance(records, list) or not records:
            raise InvalidTriggerError("change event requires a non-empty 'records' list")

        commands: list[ModerationCommand] = []
        for index, entry in enumerate(records):
            if not isinstance(entry, Mapping):
                raise InvalidTriggerError(f"records[{index}] must be an object")
            record_id = _require_id(entry.get("id"), f"records[{index}].id")
            change_type = _parse_change_type(
                entry.get("changeType"), f"records[{index}].changeType"
            )
            commands.append(ModerationCommand.single_event(record_id, change_type))
        return commands

    def _route_stream_batch(
        self, payload: Mapping[str, Any]
    ) -> list[ModerationCommand]:
        records = payload.get("Records")
        if not isinstance(records, list) or not records:
            raise InvalidTriggerError("stream batch requires a non-empty 'Records' list")

        commands: list[ModerationCommand] = []
        for index, entry in enumerate(records):
            if not isinstance(entry, Mapping):
                raise InvalidTriggerError(f"Records[{index}] must be an object")
            event_name = entry.get("eventName")
            if event_name == _STREAM_REMOVE:
                logger.debug("stream_remove_event_skipped", index=index)
                continue
            change_type = _parse_change_type(event_name, f"Records[{index}].eventName")

            image = entry.get("dynamodb")
            keys = image.get("Keys") if isinstance(image, Mapping) else None
            id_attribute = keys.get("id") if isinstance(keys, Mapping) else None
            raw_id = id_attribute.get("S") if isinstance(id_attribute, Mapping) else None
            record_id = _require_id(raw_id, f"Records[{index}].dynamodb.Keys.id.S")
            commands.append(ModerationCommand.single_event(record_id, change_type))
        return commands

    def _route_manual(self, payload: Mapping[str, Any]) -> list[ModerationCommand]:
        mode = payload.get("mode")

        if mode == MODE_SINGLE:
            record_id = _require_id(payload.get("recordId"), "recordId")
            return [ModerationCommand.single_lookup(record_id)]

        if mode == MODE_SWEEP:
            if payload.get("recordId") is not None:
                raise InvalidTriggerError("sweep payload must not carry a recordId")
            token = payload.get("continuationToken")
            if token is not None and (not isinstance(token, str) or not token):
                raise InvalidTriggerError("continuationToken must be a non-empty string")
            return [
                ModerationCommand.bulk_sweep(
                    continuation_token=token,
                    record_filter=_parse_filter(payload),
                )
            ]

        raise InvalidTriggerError(f"unknown mode {mode!r}")


def _require_id(value: Any, field_name: str) -> str:
    """Validate a record ID taken from a payload."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidTriggerError(f"{field_name} must be a non-empty string")
    return value


def _parse_change_type(value: Any, field_name: str) -> ChangeType:
    """Parse INSERT/MODIFY, rejecting everything else."""
    try:
        return ChangeType(value)
    except ValueError:
        raise InvalidTriggerError(
            f"{field_name} must be INSERT or MODIFY, got {value!r}"
        ) from None


def _parse_filter(payload: Mapping[str, Any]) -> RecordFilter | None:
    """Build the optional sweep filter from ``owner`` / ``contains``."""
    owner = payload.get("owner")
    contains = payload.get("contains")
    if owner is None and contains is None:
        return None
    for name, value in (("owner", owner), ("contains", contains)):
        if value is not None and (not isinstance(value, str) or not value.strip()):
            raise InvalidTriggerError(f"{name} must be a non-empty string")
    return RecordFilter(owner=owner, contains=contains)
