#!/usr/bin/env python
"""
Channel Sync Worker

Standalone process for deployments that keep SYNC_ENABLED=false on the
API instances and run channel sync separately:
1. Pushes availability and rates to every configured provider
2. Pulls reservations from every configured provider

Run with:
    python worker.py

Or run a single pass and exit:
    python worker.py --once
"""

import sys
import signal
import logging

from apscheduler.schedulers.blocking import BlockingScheduler

from podnbeyond.config import settings
from podnbeyond.database import create_tables
from podnbeyond.services.channels.registry import configured_providers
from podnbeyond.services.sync_scheduler import configure_jobs, trigger_sync
from podnbeyond.utils.logging_config import setup_logging

logger = logging.getLogger("worker")

scheduler = BlockingScheduler(timezone="UTC")


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully"""
    logger.info("Received shutdown signal, finishing current job...")
    scheduler.shutdown(wait=True)


def run_once():
    result = trigger_sync("all")
    logger.info(f"Single pass finished: {result}")


def run_worker():
    """Start the blocking scheduler"""
    logger.info("=" * 50)
    logger.info("Starting Channel Sync Worker")
    logger.info(f"Providers: {configured_providers() or 'none configured'}")
    logger.info(f"Push every {settings.sync_push_interval_minutes}m, pull every {settings.sync_pull_interval_minutes}m")
    logger.info("=" * 50)

    configure_jobs(scheduler)
    scheduler.start()

    logger.info("Worker shutdown complete")


if __name__ == "__main__":
    setup_logging(settings.log_level, json_format=settings.log_json)
    create_tables()

    if "--once" in sys.argv:
        run_once()
        sys.exit(0)

    # Register signal handlers for graceful shutdown
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        run_worker()
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    except Exception as e:
        logger.critical(f"Worker crashed: {e}")
        sys.exit(1)
