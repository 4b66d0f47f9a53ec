"""
Collection Scheduler - Cron and On-Demand Execution

Manages scheduled and manual collection using APScheduler on a thread pool.

Features:
- Cron-based polling of all configured locations (POLL_SCHEDULE_CRON)
- Cron-based sealing of previous days' archives (SEAL_SCHEDULE_CRON)
- RUN_ONCE mode for immediate execution
- Graceful shutdown handling

Usage:
    # Scheduled mode (default)
    python -m apps.collector

    # Run once and exit
    RUN_ONCE=true python -m apps.collector
"""

import logging
import os
import signal
import sys
import threading
from typing import Optional

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from apps.collector.client import SearchClient
from apps.collector.job import SearchSource, run_collection_cycle, seal_stale_archives
from geoarchive.registry import Registry
from utils.config import settings
from utils.db import LocationStore
from utils.logging import setup_logging
from utils.mq import RedisPublisher

logger = logging.getLogger(__name__)


class CollectorScheduler:
    """
    Scheduler for periodic or on-demand collection jobs.

    Handles:
    - APScheduler setup and management
    - Cron-based polling and sealing
    - RUN_ONCE immediate execution
    - Signal handling for graceful shutdown
    """

    def __init__(
        self,
        registry: Registry,
        store: LocationStore,
        client: SearchSource,
        publisher: Optional[RedisPublisher] = None,
        run_once: bool = False,
    ) -> None:
        """
        Initialize scheduler.

        Args:
            registry: Archive registry shared by all jobs
            store: Location store
            client: Search API client
            publisher: Redis publisher for sealed events (None disables events)
            run_once: If True, run one collection and one sealing pass, then exit
        """
        self.registry = registry
        self.store = store
        self.client = client
        self.publisher = publisher
        self.run_once = run_once
        self.scheduler: Optional[BackgroundScheduler] = None
        self.shutdown_event = threading.Event()

        logger.info(
            "CollectorScheduler initialized",
            extra={
                "run_once": run_once,
                "poll_schedule": settings.POLL_SCHEDULE_CRON,
                "seal_schedule": settings.SEAL_SCHEDULE_CRON,
                "archive_dir": str(registry.base_dir),
            },
        )

    def execute_collection(self) -> None:
        """Execute one collection cycle."""
        run_collection_cycle(registry=self.registry, store=self.store, client=self.client)

    def execute_sealing(self) -> None:
        """Seal archives left over from previous days."""
        seal_stale_archives(registry=self.registry, publisher=self.publisher)

    def setup_signal_handlers(self) -> None:
        """Setup handlers for graceful shutdown on SIGINT/SIGTERM."""

        def signal_handler(signum: int, frame: object) -> None:
            logger.info(f"Received signal {signum}, initiating graceful shutdown")
            self.shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def start(self) -> None:
        """
        Start scheduler or execute once.

        In scheduled mode, runs continuously until shutdown signal.
        In RUN_ONCE mode, seals stale archives, collects once and returns.
        """
        self.setup_signal_handlers()

        if self.run_once:
            logger.info("Running in RUN_ONCE mode")
            self.execute_sealing()
            self.execute_collection()
            return

        logger.info("Running in scheduled mode")

        self.scheduler = BackgroundScheduler(
            executors={"default": ThreadPoolExecutor(settings.COLLECTOR_WORKERS)},
            job_defaults={"coalesce": True, "max_instances": 1},
        )

        self.scheduler.add_job(
            self.execute_collection,
            trigger=CronTrigger.from_crontab(settings.POLL_SCHEDULE_CRON),
            id="collection_job",
            name="Periodic Location Collection",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.execute_sealing,
            trigger=CronTrigger.from_crontab(settings.SEAL_SCHEDULE_CRON),
            id="sealing_job",
            name="Daily Archive Sealing",
            replace_existing=True,
        )

        self.scheduler.start()
        logger.info("Scheduler started")

        for job in self.scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            logger.info(
                "Scheduled job",
                extra={"job_id": job.id, "next_run": str(next_run) if next_run is not None else None},
            )

        # Archives left unsealed by a previous process
        self.execute_sealing()

        logger.info("Waiting for jobs...")
        self.shutdown_event.wait()

        logger.info("Shutting down scheduler")
        self.scheduler.shutdown(wait=True)
        logger.info("Scheduler shutdown complete")


def main() -> None:
    """Main entry point for the collector."""
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    run_once = os.getenv("RUN_ONCE", "false").lower() in ("true", "1", "yes")

    registry = Registry(settings.SEARCH_GEO_DIR)
    store = LocationStore(settings.SQLITE_PATH)
    client = SearchClient()
    publisher = RedisPublisher() if settings.REDIS_URL else None

    scheduler = CollectorScheduler(registry, store, client, publisher=publisher, run_once=run_once)

    try:
        scheduler.start()
    except Exception as e:
        logger.error("Scheduler failed", extra={"error": str(e)}, exc_info=True)
        sys.exit(1)
    finally:
        client.close()
        if publisher is not None:
            publisher.close()


if __name__ == "__main__":
    main()
