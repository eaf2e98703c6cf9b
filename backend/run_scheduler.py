#!/usr/bin/env python3
"""Standalone worker that runs the periodic jobs (certificate auto-send, session cleanup).

Run this OR enable RUN_SCHEDULER_IN_WEB in the API process, not both.
"""
import asyncio
import logging
import signal
import sys

from app.tasks.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
logging.getLogger('sqlalchemy.pool').setLevel(logging.WARNING)
logging.getLogger('apscheduler').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


async def main():
    """Start the scheduler and block until SIGINT/SIGTERM."""
    logger.info("Starting background worker scheduler...")
    await start_scheduler()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    logger.info("Scheduler is running. Press Ctrl+C to stop.")
    await stop_event.wait()

    logger.info("Received shutdown signal")
    await stop_scheduler()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        sys.exit(0)
