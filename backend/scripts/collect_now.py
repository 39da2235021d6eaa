#!/usr/bin/env python3
"""Run one stats collection sweep over all tracked channels and exit."""

import asyncio
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import engine
from services.scheduler import CollectionScheduler


async def collect_now() -> int:
    """Run a sweep without starting the hourly cadence."""
    scheduler = CollectionScheduler()
    try:
        summary = await scheduler.run_sweep()
    finally:
        await engine.dispose()

    if summary is None:
        print("A sweep is already running.")
        return 1

    print(f"Collected {summary.collected}/{summary.total} channels")
    print(f"  Failed:  {summary.failed}")
    print(f"  Skipped: {summary.skipped}")
    if summary.error:
        print(f"  Error:   {summary.error}")
        return 1
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    sys.exit(asyncio.run(collect_now()))
