#!/usr/bin/env python3
"""
Create the Kafka topic moderation alerts are published to.

Alerts are keyed by idempotency key, so every retry of one alert lands on
the same partition. Retention is bounded: alerts are notifications for
reviewers, not the system of record.

Usage:
    python scripts/create_alert_topic.py [--topic moderation-alerts] [--verify]

NOTIFICATION_TOPIC and KAFKA_BOOTSTRAP_SERVERS (from the environment or
a .env file) are used when the flags are omitted.
"""

import argparse
import os
import sys
from dataclasses import dataclass

from confluent_kafka.admin import AdminClient, NewTopic
from dotenv import load_dotenv

DEFAULT_TOPIC = "moderation-alerts"
DEFAULT_BOOTSTRAP_SERVERS = "localhost:9092"


@dataclass
class TopicConfig:
    """Configuration for a Kafka topic."""

    name: str
    partitions: int
    replication_factor: int
    retention_ms: int | None  # None = infinite
    cleanup_policy: str  # "delete" or "compact"
    description: str


def alert_topic(name: str, partitions: int, replication_factor: int) -> TopicConfig:
    """Build the alert topic definition."""
    return TopicConfig(
        name=name,
        partitions=partitions,
        replication_factor=replication_factor,
        retention_ms=14 * 24 * 60 * 60 * 1000,  # 14 days
        cleanup_policy="delete",
        description="FLAG/BLOCK moderation alerts for human review",
    )


def create_topic(
    bootstrap_servers: str, topic: TopicConfig, dry_run: bool = False
) -> bool:
    """
    Create the alert topic unless it already exists.

    Args:
        bootstrap_servers: Kafka bootstrap servers address
        topic: Topic to create
        dry_run: If True, only print what would be created

    Returns:
        True if the topic exists afterwards
    """
    if dry_run:
        print(f"DRY RUN: Would connect to {bootstrap_servers}")
        print(f"  Would create: {topic.name}")
        print(f"    Partitions: {topic.partitions}")
        print(f"    Retention: {topic.retention_ms}ms")
        print(f"    Cleanup: {topic.cleanup_policy}")
        return True

    print(f"Connecting to Kafka at {bootstrap_servers}...")
    admin_client = AdminClient({"bootstrap.servers": bootstrap_servers})

    metadata = admin_client.list_topics(timeout=10)
    if topic.name in metadata.topics:
        print(f"  SKIP: {topic.name} (already exists)")
        return True

    config = {"cleanup.policy": topic.cleanup_policy}
    config["retention.ms"] = (
        str(topic.retention_ms) if topic.retention_ms is not None else "-1"
    )

    print(f"  CREATE: {topic.name} ({topic.description})")
    futures = admin_client.create_topics(
        [
            NewTopic(
                topic=topic.name,
                num_partitions=topic.partitions,
                replication_factor=topic.replication_factor,
                config=config,
            )
        ],
        operation_timeout=30,
    )

    success = True
    for topic_name, future in futures.items():
        try:
            future.result()
            print(f"  OK: {topic_name}")
        except Exception as e:
            print(f"  FAILED: {topic_name} - {e}")
            success = False
    return success


def verify_topic(bootstrap_servers: str, topic: TopicConfig) -> bool:
    """Verify the alert topic exists with the expected partition count."""
    print(f"\nVerifying {topic.name} on {bootstrap_servers}...")

    admin_client = AdminClient({"bootstrap.servers": bootstrap_servers})
    metadata = admin_client.list_topics(timeout=10)

    if topic.name not in metadata.topics:
        print(f"  MISSING: {topic.name}")
        return False

    partition_count = len(metadata.topics[topic.name].partitions)
    if partition_count != topic.partitions:
        print(
            f"  WARN: {topic.name} has {partition_count} partitions, "
            f"expected {topic.partitions}"
        )
    else:
        print(f"  OK: {topic.name} ({partition_count} partitions)")
    return True


def main() -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Create the Kafka topic for moderation alerts"
    )
    parser.add_argument(
        "--topic",
        default=os.environ.get("NOTIFICATION_TOPIC", DEFAULT_TOPIC),
        help="Alert topic name (default: $NOTIFICATION_TOPIC or moderation-alerts)",
    )
    parser.add_argument(
        "--bootstrap-servers",
        default=os.environ.get("KAFKA_BOOTSTRAP_SERVERS", DEFAULT_BOOTSTRAP_SERVERS),
        help="Kafka bootstrap servers (default: $KAFKA_BOOTSTRAP_SERVERS)",
    )
    parser.add_argument(
        "--partitions",
        type=int,
        default=3,
        help="Partition count (default: 3)",
    )
    parser.add_argument(
        "--replication-factor",
        type=int,
        default=1,
        help="Replication factor (default: 1, single-node dev broker)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print what would be created without actually creating",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Verify the topic exists instead of creating it",
    )

    args = parser.parse_args()
    topic = alert_topic(args.topic, args.partitions, args.replication_factor)

    try:
        if args.verify:
            success = verify_topic(args.bootstrap_servers, topic)
        else:
            success = create_topic(args.bootstrap_servers, topic, dry_run=args.dry_run)
    except Exception as e:
        print(f"\nERROR: {e}")
        return 1

    if success:
        print("\nDone.")
        return 0
    print("\nCompleted with errors.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
