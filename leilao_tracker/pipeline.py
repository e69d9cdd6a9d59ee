"""
Main Pipeline module for the Leilão Tracker.

Orchestrates the daily run:
1. Scrape → Fetch raw records from all sources concurrently
2. Normalize → Map to the canonical Property model
3. Deduplicate → One record per physical property
4. Novelty → Compare with yesterday's snapshot
5. Overrides → Apply manual corrections
6. Enrich → R$/m² and real discount vs market
7. Score → Rank by deal quality
8. Save → Write today's snapshot
9. Notify → E-mail the top-N opportunities

This is the main entry point for running the pipeline.
"""

import sys
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, datetime
from typing import Optional

from .alerts import SummaryNotifier
from .config import AppConfig, get_app_config
from .dedup import deduplicate_properties
from .exceptions import BatchFailure, LeilaoTrackerError, SnapshotExistsError, SourceFailure
from .market import MarketEnricher, PriceTable, load_price_table
from .models import Property
from .normalization import RecordNormalizer
from .novelty import mark_new_properties
from .overrides import apply_overrides, load_overrides
from .scoring import DealScorer
from .sources import BaseScraper, default_scrapers
from .storage import SnapshotStore

logger = logging.getLogger(__name__)


# =============================================================================
# PIPELINE FUNCTIONS
# =============================================================================

def collect_sources(scrapers: list[BaseScraper]) -> list[list[dict]]:
    """
    Run every scraper concurrently and wait for all of them.

    A failing or slow source never affects the others. The result keeps
    the order of `scrapers`, minus the ones that failed.

    Raises:
        BatchFailure: if every source failed
    """
    results: dict[int, list[dict]] = {}

    with ThreadPoolExecutor(max_workers=max(1, len(scrapers))) as executor:
        futures = {executor.submit(scraper.scrape): idx for idx, scraper in enumerate(scrapers)}
        for future in as_completed(futures):
            idx = futures[future]
            name = scrapers[idx].name
            try:
                results[idx] = future.result()
                logger.info(f"Got {len(results[idx])} records from {name}")
            except SourceFailure as e:
                logger.error(f"Source failed: {e}")
            except Exception as e:
                logger.error(f"Source failed: {name}: {e}")

    if not results:
        raise BatchFailure(f"All {len(scrapers)} sources failed")

    logger.info(f"Scrapers completed: {len(results)}/{len(scrapers)} sources succeeded")
    return [results[idx] for idx in sorted(results)]


def normalize_sources(
    raw_sources: list[list[dict]],
    normalizer: Optional[RecordNormalizer] = None,
) -> list[list[Property]]:
    """Normalize each source's raw records; malformed ones are skipped and counted."""
    normalizer = normalizer or RecordNormalizer()
    return [normalizer.normalize_batch(raw_items) for raw_items in raw_sources]


def process_records(
    sources: list[list[Property]],
    yesterday: list[Property],
    overrides: dict,
    table: PriceTable,
    now: Optional[datetime] = None,
) -> list[Property]:
    """
    The core pass: dedup → novelty → overrides → enrichment → scoring.

    No I/O happens here; every input is handed in by the caller.

    Returns:
        Enriched records ranked by score, best first
    """
    records = deduplicate_properties(sources)
    if not records:
        logger.warning("No properties found matching filters")

    mark_new_properties(records, yesterday)
    apply_overrides(records, overrides)
    MarketEnricher(table).enrich_all(records)
    return DealScorer(now=now).score_all(records)


def filter_opportunities(
    records: list[Property],
    min_discount: float,
    max_price: float,
) -> list[Property]:
    """Records within the price cap whose discount is high enough (or unknown)."""
    return [
        r for r in records
        if r.lance <= max_price and (r.desconto is None or r.desconto >= min_discount)
    ]


def run_full_pipeline(
    scrapers: Optional[list[BaseScraper]] = None,
    table: Optional[PriceTable] = None,
    config: Optional[AppConfig] = None,
    day: Optional[date] = None,
    overwrite: bool = False,
    notify: bool = True,
    notifier: Optional[SummaryNotifier] = None,
) -> dict:
    """
    Run the complete daily pipeline.

    Raises:
        BatchFailure: when every source failed (no snapshot is written)
        SnapshotExistsError: when today's snapshot exists and overwrite is False

    Returns:
        Summary dict with counts and status
    """
    config = config or get_app_config()
    table = table or load_price_table(config.price_table_file)
    day = day or date.today()
    store = SnapshotStore(config.data_dir)

    if not overwrite and store.exists(day):
        raise SnapshotExistsError(f"Snapshot {store.path_for(day)} already exists")

    start_time = datetime.now()
    logger.info(f"Starting daily run for {day.isoformat()}")

    summary = {
        "date": day.isoformat(),
        "started_at": start_time.isoformat(),
        "sources": 0,
        "scraped": 0,
        "skipped": 0,
        "properties": 0,
        "new": 0,
        "opportunities": 0,
        "snapshot": None,
        "notified": False,
    }

    # Step 1: Scrape all sources (barrier before the core)
    raw_sources = collect_sources(scrapers if scrapers is not None else default_scrapers())
    summary["sources"] = len(raw_sources)
    summary["scraped"] = sum(len(raw) for raw in raw_sources)

    # Step 2: Normalize
    normalizer = RecordNormalizer(config.priority_neighborhoods)
    sources = normalize_sources(raw_sources, normalizer)
    summary["skipped"] = normalizer.skipped

    # Steps 3-7: Core pass
    yesterday = store.load_previous(day)
    overrides = load_overrides(config.overrides_path)
    ranked = process_records(sources, yesterday, overrides, table)
    summary["properties"] = len(ranked)
    summary["new"] = sum(1 for r in ranked if r.novo)

    # Step 8: Save today's snapshot
    summary["snapshot"] = store.save(ranked, day, overwrite=overwrite)

    # Step 9: Notify
    opportunities = filter_opportunities(ranked, config.min_discount, config.max_price)
    summary["opportunities"] = len(opportunities)
    if notify:
        notifier = notifier or SummaryNotifier()
        summary["notified"] = notifier.send_summary(
            opportunities[:config.top_n],
            day,
            min_discount=config.min_discount,
            max_price=config.max_price,
        )

    duration = (datetime.now() - start_time).total_seconds()
    summary["duration_seconds"] = duration
    logger.info(f"Daily run complete in {duration:.1f}s: {summary['properties']} properties, {summary['new']} new")
    return summary


# =============================================================================
# CLI ENTRY POINT
# =============================================================================

def main():
    """CLI entry point for running the pipeline once."""
    import argparse

    parser = argparse.ArgumentParser(description="Leilão Tracker Pipeline")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        help="Run date (YYYY-MM-DD), defaults to today"
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the snapshot if it already exists"
    )
    parser.add_argument(
        "--no-notify",
        action="store_true",
        help="Do not send the summary e-mail"
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

    try:
        config = get_app_config()
        table = load_price_table(config.price_table_file)
        result = run_full_pipeline(
            table=table,
            config=config,
            day=args.date,
            overwrite=args.force,
            notify=not args.no_notify,
        )
    except LeilaoTrackerError as e:
        logger.error(f"Run aborted: {e}")
        sys.exit(1)

    print(f"Pipeline complete: {result}")


if __name__ == "__main__":
    main()
