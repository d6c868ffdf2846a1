"""
Script to run groundwater ingestion for one or more states
"""

import argparse
import asyncio
import signal
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.exceptions import DatabaseConnectionError
from core.logging import setup_logging
from ingestion.pipeline import IngestionPipeline
from ingestion.scheduler import IngestionScheduler

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Ingest India-WRIS groundwater stations")
    parser.add_argument(
        "states",
        nargs="*",
        help="States to ingest (defaults to INGEST_STATES)"
    )
    parser.add_argument("--district", help="Restrict a single state to one district")
    parser.add_argument(
        "--schedule",
        action="store_true",
        help="Run the daily scheduler instead of a one-off ingestion"
    )
    return parser.parse_args(argv)


async def run_once(states, district=None):
    """Ingest each state sequentially; one failure never stops the rest"""
    async with IngestionPipeline() as pipeline:
        for state in states:
            try:
                result = await pipeline.ingest(state, district)
                logger.info(
                    f"Ingestion completed for {state}: "
                    f"Fetched={result.fetched}, Saved={result.saved_count}, "
                    f"Rejected={result.rejected}, Failed={result.failed}"
                )
            except DatabaseConnectionError as e:
                logger.error(f"Store unreachable, aborting: {e}")
                return 1
            except Exception as e:
                logger.error(f"Ingestion failed for {state}: {str(e)}")
                continue

    logger.info("All ingestion jobs completed")
    return 0


async def run_scheduled():
    """Run the daily scheduler until SIGINT / SIGTERM"""
    stopped = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stopped.set)

    async with IngestionPipeline() as pipeline:
        scheduler = IngestionScheduler(pipeline)
        scheduler.start()
        await stopped.wait()
        scheduler.stop()
    return 0


def main(argv=None):
    setup_logging()
    args = parse_args(argv)

    if args.schedule:
        return asyncio.run(run_scheduled())

    states = args.states or settings.INGEST_STATES
    if args.district and len(states) != 1:
        logger.error("--district needs exactly one state")
        return 2
    return asyncio.run(run_once(states, args.district))


if __name__ == "__main__":
    sys.exit(main())
