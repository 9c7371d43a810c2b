"""Print payment confirmation envelopes as they arrive on the bus.

Reads with a throwaway consumer group so committed offsets of real consumers
are untouched.
"""

import argparse
import asyncio
import json
from uuid import uuid4

from aiokafka import AIOKafkaConsumer


async def tail(bootstrap_servers: str, topic: str, from_beginning: bool, limit: int | None) -> int:
    """Consume and print envelopes until `limit` is reached or interrupted."""

    consumer = AIOKafkaConsumer(
        topic,
        bootstrap_servers=bootstrap_servers,
        group_id=f"payrelay-tail-{uuid4()}",
        auto_offset_reset="earliest" if from_beginning else "latest",
        enable_auto_commit=False,
    )
    await consumer.start()
    seen = 0
    try:
        async for msg in consumer:
            envelope = json.loads(msg.value.decode("utf-8"))
            print(
                json.dumps(
                    {
                        "offset": msg.offset,
                        "event_id": envelope.get("event_id"),
                        "aggregate_id": envelope.get("aggregate_id"),
                        "payload": envelope.get("payload"),
                    }
                )
            )
            seen += 1
            if limit is not None and seen >= limit:
                break
    finally:
        await consumer.stop()
    return seen


def main() -> None:
    """Parse CLI args and tail one topic."""

    parser = argparse.ArgumentParser(description="Tail payment confirmation events.")
    parser.add_argument("--bootstrap-servers", default="localhost:9092")
    parser.add_argument("--topic", default="payment.succeeded")
    parser.add_argument("--from-beginning", action="store_true")
    parser.add_argument("--limit", type=int, default=None)
    args = parser.parse_args()

    try:
        count = asyncio.run(tail(args.bootstrap_servers, args.topic, args.from_beginning, args.limit))
    except KeyboardInterrupt:
        return
    print(f"consumed={count}")


if __name__ == "__main__":
    main()
