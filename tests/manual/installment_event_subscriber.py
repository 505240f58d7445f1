#!/usr/bin/env python3
"""Subscribe to installment lifecycle events published by the reprocessor.

Listens on the configured Pub/Sub topic (creating the subscription if it does
not exist yet) and prints every InstallmentEvent as it arrives. Start the
reprocessor with events.enabled: true in config/reprocessing.yaml first.

Usage:
    export PUBSUB_EMULATOR_HOST=localhost:8085
    python tests/manual/installment_event_subscriber.py
"""

import json
import os
import sys
from typing import Any, Dict

from google.api_core.exceptions import AlreadyExists
from google.cloud import pubsub_v1

from installment_reprocessor.models.events import InstallmentEventType

PROJECT_ID = os.environ.get("PUBSUB_PROJECT_ID", "local-project")
TOPIC_NAME = os.environ.get("PUBSUB_TOPIC_NAME", "installment-events")
SUBSCRIPTION_NAME = os.environ.get("PUBSUB_SUBSCRIPTION_NAME", "installment-events-sub")


def format_event(data: Dict[str, Any]) -> str:
    """Format an installment event for printing."""
    event_type = data.get("event_type", 0)
    try:
        type_name = InstallmentEventType(event_type).name
    except ValueError:
        type_name = f"UNKNOWN_{event_type}"

    lines = [
        f"Type: {type_name} ({event_type})",
        f"Time: {data.get('event_time', 'N/A')}",
        f"Installment: {data.get('installment_id', 'N/A')}",
        f"Subscription: {data.get('subscription_id', 'N/A')}",
        f"Next attempt: {data.get('actionable_date') or 'not scheduled'}",
    ]
    if data.get("order_number"):
        lines.append(f"Order: {data['order_number']}")
    return "\n".join(lines)


def callback(message: Any) -> None:
    """Print and acknowledge a received event."""
    try:
        data = json.loads(message.data.decode("utf-8"))

        print(f"\n{'-' * 50}")
        print("Installment event received")
        print("-" * 50)
        print(format_event(data))

        message.ack()
    except Exception as e:
        print(f"\nError processing message: {e}")
        print(f"   Message data: {message.data}")
        # malformed messages are acked too
        message.ack()


def ensure_subscription(subscriber: pubsub_v1.SubscriberClient, subscription_path: str) -> None:
    topic_path = pubsub_v1.PublisherClient.topic_path(PROJECT_ID, TOPIC_NAME)
    try:
        subscriber.create_subscription(request={"name": subscription_path, "topic": topic_path})
        print(f"   Created subscription {subscription_path}")
    except AlreadyExists:
        pass


def main() -> None:
    """Main subscriber loop."""
    emulator_host = os.environ.get("PUBSUB_EMULATOR_HOST")
    if not emulator_host:
        print("ERROR: PUBSUB_EMULATOR_HOST not set!")
        print("\nSet it with:")
        print("  export PUBSUB_EMULATOR_HOST=localhost:8085")
        sys.exit(1)

    print("Listening for installment events...")
    print(f"   Project: {PROJECT_ID}")
    print(f"   Topic: {TOPIC_NAME}")
    print(f"   Subscription: {SUBSCRIPTION_NAME}")
    print(f"   Emulator: {emulator_host}")
    print("   Press Ctrl+C to stop\n")

    subscriber = pubsub_v1.SubscriberClient()
    subscription_path = subscriber.subscription_path(PROJECT_ID, SUBSCRIPTION_NAME)
    ensure_subscription(subscriber, subscription_path)

    streaming_pull_future = subscriber.subscribe(subscription_path, callback=callback)

    try:
        streaming_pull_future.result()
    except KeyboardInterrupt:
        print("\nStopping subscriber...")
        streaming_pull_future.cancel()
        streaming_pull_future.result()
    except Exception as e:
        print(f"\nSubscriber error: {e}")
        streaming_pull_future.cancel()
        sys.exit(1)


if __name__ == "__main__":
    main()
