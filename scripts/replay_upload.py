"""Script to re-run the creation pipeline for an already uploaded object."""

import argparse
import asyncio
import sys

sys.path.insert(0, ".")

from radiocap.db.session import init_db
from radiocap.services.pipeline import EventAction, StorageEvent, build_event_handler


async def main(bucket: str, keys: list[str]):
    """Replay ObjectCreated events for the given keys."""
    print("Initializing database...")
    await init_db()

    handler = build_event_handler()
    events = [StorageEvent(action=EventAction.CREATED, bucket=bucket, key=key) for key in keys]

    print(f"Replaying {len(events)} upload(s) from {bucket}...")
    summary = await handler.handle_batch(events)

    print("\n" + "=" * 60)
    print(f"Received:  {summary.received}")
    print(f"Succeeded: {summary.succeeded}")
    print(f"Failed:    {summary.failed}")
    print("=" * 60)
    return summary.failed


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("bucket", help="Bucket holding the recordings")
    parser.add_argument("keys", nargs="+", help="Object keys to replay")
    args = parser.parse_args()

    failed = asyncio.run(main(args.bucket, args.keys))
    sys.exit(1 if failed else 0)
