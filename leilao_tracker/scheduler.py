"""
Scheduler module for the Leilão Tracker.

Uses APScheduler to run the pipeline once a day (SCHEDULE_HOUR:SCHEDULE_MINUTE).
Runs never overlap: a day's snapshot must be written before the next run
reads it as "yesterday".

Can also be run manually via command line.
"""

import sys
import logging
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from .config import AppConfig, get_app_config
from .exceptions import LeilaoTrackerError
from .market import PriceTable, load_price_table
from .pipeline import run_full_pipeline

logger = logging.getLogger(__name__)


def run_daily_job(table: PriceTable, config: AppConfig) -> None:
    """Wrapper for the pipeline so a failed run is logged, not raised into APScheduler."""
    try:
        summary = run_full_pipeline(table=table, config=config)
        logger.info(f"Scheduled run finished: {summary}")
    except LeilaoTrackerError as e:
        logger.error(f"Scheduled run aborted: {e}")


def create_scheduler(config: AppConfig, table: PriceTable) -> BlockingScheduler:
    """
    Create and configure the APScheduler.

    Jobs:
    1. daily_run: every day at the configured time - scrape, score, save, notify

    Returns:
        Configured BlockingScheduler
    """
    scheduler = BlockingScheduler()

    scheduler.add_job(
        run_daily_job,
        trigger=CronTrigger(hour=config.schedule_hour, minute=config.schedule_minute),
        kwargs={"table": table, "config": config},
        id="daily_run",
        name="Scrape, score and snapshot auction listings",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    logger.info(f"Scheduler configured: daily at {config.schedule_hour:02d}:{config.schedule_minute:02d}")
    return scheduler


def start_scheduler() -> None:
    """Start the scheduler (blocking)."""
    config = get_app_config()
    # The price table is loaded once per process
    try:
        table = load_price_table(config.price_table_file)
    except LeilaoTrackerError as e:
        logger.error(f"Scheduler not started: {e}")
        sys.exit(1)
    scheduler = create_scheduler(config, table)

    logger.info("Starting Leilão Tracker scheduler...")
    logger.info("Press Ctrl+C to stop")

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler stopped")


# =============================================================================
# CLI ENTRY POINT
# =============================================================================

def main():
    """CLI entry point for the scheduler."""
    import argparse

    parser = argparse.ArgumentParser(description="Leilão Tracker Scheduler")
    parser.add_argument(
        "--mode",
        choices=["schedule", "once"],
        default="schedule",
        help="Mode to run: schedule (continuous), once (single run)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level"
    )

    args = parser.parse_args()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    if args.mode == "schedule":
        start_scheduler()
    elif args.mode == "once":
        logger.info("Running single pipeline execution...")
        config = get_app_config()
        try:
            table = load_price_table(config.price_table_file)
        except LeilaoTrackerError as e:
            logger.error(f"Run aborted: {e}")
            sys.exit(1)
        run_daily_job(table, config)


if __name__ == "__main__":
    main()
