"""
Ledger indexer CLI commands.

Run a single pass, inspect the checkpoint, or run the poller in the
foreground without the HTTP control surface.
"""

import asyncio
import sys

import structlog

from ledger_indexer.core.config import get_settings
from ledger_indexer.core.logging import configure_logging
from ledger_indexer.db.init import create_tables
from ledger_indexer.ledger.pipeline import build_pipeline
from ledger_indexer.ledger.progress import ProgressStore

logger = structlog.get_logger()


def print_result(result: dict):
    """Pretty print a poll result."""
    print(f"\nRun ID: {result['run_id']}")
    print(f"Status: {result['status']}")
    print(f"Checkpoint: {result.get('to_version')}")
    print(f"Latest: {result.get('latest_version')}")
    if result.get("error"):
        print(f"Error: {result['error']}")
        return
    print(f"Fetched: {result['transactions_fetched']}")
    print(f"Processed: {result['transactions_processed']}")
    print(f"Events handled: {result['events_handled']}")
    if result["transactions_failed"] > 0:
        print(f"Failed: {result['transactions_failed']}")
    print(f"Duration: {result['duration_seconds']:.2f}s")


async def poll_command():
    """Run a single pass from the stored checkpoint."""
    await create_tables()
    pipeline = build_pipeline()
    try:
        result = await pipeline.poller.poll_once()
        print_result(result)
        return 0 if result["status"] != "failed" else 1
    finally:
        await pipeline.aclose()


async def checkpoint_command():
    """Show the stored checkpoint."""
    await create_tables()
    version = await ProgressStore().load()
    print(f"Last indexed version: {version if version is not None else 'none'}")
    return 0


async def run_command():
    """Run the poller continuously."""
    settings = get_settings()
    await create_tables()
    pipeline = build_pipeline(settings)
    print(f"Poll interval: {settings.POLL_INTERVAL_SECONDS} seconds")
    print("Press Ctrl+C to stop\n")

    try:
        await pipeline.poller.start()
        while True:
            await asyncio.sleep(1)
    finally:
        await pipeline.aclose()
        print("Poller stopped.")


def main():
    """Main CLI entry point."""
    if len(sys.argv) < 2:
        print("Usage: python -m ledger_indexer.ledger.cli <command>")
        print("\nCommands:")
        print("  poll         Run a single pass")
        print("  checkpoint   Show the stored checkpoint")
        print("  run          Run poller continuously")
        return 1

    configure_logging(get_settings().ENV)
    command = sys.argv[1]

    try:
        if command == "poll":
            return asyncio.run(poll_command())
        elif command == "checkpoint":
            return asyncio.run(checkpoint_command())
        elif command == "run":
            return asyncio.run(run_command())
        else:
            print(f"Unknown command: {command}")
            return 1
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    except Exception as e:
        print(f"Error: {str(e)}")
        logger.exception("cli.error", command=command)
        return 1


if __name__ == "__main__":
    sys.exit(main())
