#!/usr/bin/env python3
"""Run audit sweeps over the content record collection.

Each iteration is one moderation invocation. When an invocation stops at
the page cap or the time budget, its continuation token feeds the next
one, so a single run of this script can walk the whole collection while
every invocation stays bounded.

Examples:
    # Sweep the PostgreSQL table until exhausted
    python scripts/run_moderation_sweep.py --until-complete

    # Resume from a token, only records owned by u-42
    python scripts/run_moderation_sweep.py --continuation-token <token> --owner u-42

    # Dry run against seeded in-memory records
    python scripts/run_moderation_sweep.py --seed-file records.json --until-complete
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from content_moderator.bootstrap.database import close_database_engine  # noqa: E402
from content_moderator.bootstrap.logging import configure_structlog  # noqa: E402
from content_moderator.bootstrap.moderation import (  # noqa: E402
    get_moderation_config,
    get_orchestrator,
    set_moderation_dependencies,
)
from content_moderator.domain.errors import (  # noqa: E402
    ConfigurationError,
    InvalidTriggerError,
)
from content_moderator.domain.models.content_record import ContentRecord  # noqa: E402
from content_moderator.infrastructure.observability import (  # noqa: E402
    correlation_scope,
)
from content_moderator.infrastructure.stubs import (  # noqa: E402
    AlertChannelStub,
    RecordStoreStub,
)


def _load_seed_records(path: Path) -> list[ContentRecord]:
    """Load records from a JSON array or a JSON-lines file."""
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".jsonl":
        rows = [json.loads(line) for line in text.splitlines() if line.strip()]
    else:
        rows = json.loads(text)
    return [ContentRecord.from_mapping(row) for row in rows]


def _build_trigger(args: argparse.Namespace, token: str | None) -> dict[str, Any]:
    trigger: dict[str, Any] = {"mode": "sweep"}
    if token:
        trigger["continuationToken"] = token
    if args.owner:
        trigger["owner"] = args.owner
    if args.contains:
        trigger["contains"] = args.contains
    return trigger


async def _run(args: argparse.Namespace) -> list[dict[str, Any]]:
    orchestrator = get_orchestrator()
    results: list[dict[str, Any]] = []
    token: str | None = args.continuation_token

    try:
        for invocation in range(1, args.max_invocations + 1):
            with correlation_scope():
                result = await orchestrator.handle(_build_trigger(args, token))
            summary = result.to_dict()
            results.append(summary)

            counts = summary["summary"]
            print(
                f"Invocation {invocation}: pages={result.pages_processed} "
                f"processed={counts['processed']} failed={counts['failed']} "
                f"alerted={counts['alerted']} verdicts={counts['verdicts']}"
            )
            if result.degraded:
                print("  Warning: every alert in this invocation failed permanently")

            token = result.continuation_token
            if token is None or not args.until_complete:
                break
    finally:
        await close_database_engine()

    if token is not None:
        print(f"\nResume with: --continuation-token {token}")
    return results


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run moderation audit sweeps over the content collection"
    )
    parser.add_argument(
        "--continuation-token",
        type=str,
        default=None,
        help="Resume a previous sweep from this token",
    )
    parser.add_argument(
        "--owner",
        type=str,
        default=None,
        help="Only sweep records owned by this principal",
    )
    parser.add_argument(
        "--contains",
        type=str,
        default=None,
        help="Only sweep records whose content contains this text",
    )
    parser.add_argument(
        "--until-complete",
        action="store_true",
        help="Keep invoking with the returned token until the sweep is exhausted",
    )
    parser.add_argument(
        "--max-invocations",
        type=int,
        default=100,
        help="Upper bound on invocations with --until-complete (default: 100)",
    )
    parser.add_argument(
        "--seed-file",
        type=Path,
        default=None,
        help="JSON or JSONL records to sweep with in-memory store and channel",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the run results as JSON to this file",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()
    if args.max_invocations < 1:
        parser.error("--max-invocations must be at least 1")

    if args.seed_file is not None:
        os.environ.setdefault("NOTIFICATION_TOPIC", "local-moderation-alerts")
        os.environ.setdefault("STORE_TABLE_NAME", "content_records")

    try:
        config = get_moderation_config()
    except ConfigurationError as e:
        print(f"Error: {e}")
        sys.exit(1)

    configure_structlog(
        config.environment, "DEBUG" if args.verbose else config.log_level
    )

    channel: AlertChannelStub | None = None
    if args.seed_file is not None:
        if not args.seed_file.exists():
            print(f"Error: seed file not found: {args.seed_file}")
            sys.exit(1)
        records = _load_seed_records(args.seed_file)
        channel = AlertChannelStub(topic=config.notification_topic)
        set_moderation_dependencies(
            record_store=RecordStoreStub(
                records, default_page_size=config.sweep_page_size
            ),
            alert_channel=channel,
        )
        print(f"Seeded {len(records)} record(s) into the in-memory store")

    try:
        results = asyncio.run(_run(args))
    except InvalidTriggerError as e:
        print(f"Error: {e}")
        sys.exit(1)

    if channel is not None:
        print(f"Alerts captured by the in-memory channel: {len(channel.published)}")

    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(results, f, indent=2)
        print(f"Results saved to: {args.output}")


if __name__ == "__main__":
    main()
