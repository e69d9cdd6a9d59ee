"""
Leilão Tracker - Daily Curitiba property auction digest

Collects auction listings from several sources, merges the ones that
describe the same property, flags what is new since yesterday and ranks
everything by how good a deal it looks.

Modules:
- config: Configuration and environment variables
- models: Canonical property record (dataclass)
- sources: Scrapers for Caixa and Portal Zuk
- normalization: Map source data to the canonical record
- dedup: Cross-source identity resolution
- novelty: Compare with yesterday's snapshot
- overrides: Manual corrections file
- market: R$/m² and real discount vs neighborhood prices
- scoring: 0-100 deal score with breakdown
- storage: Dated JSON snapshots
- alerts: Top-N summary e-mail
- scheduler: APScheduler setup for daily runs
- pipeline: Main orchestration
"""

__version__ = "0.1.0"

# Convenient imports
from .exceptions import (
    LeilaoTrackerError,
    SourceFailure,
    BatchFailure,
    ParseFailure,
    OverrideLoadFailure,
    SnapshotExistsError,
    ConfigurationError,
)
from .models import Property, Ocupacao, Fonte
from .normalization import normalize_records, normalize_text, RecordNormalizer
from .dedup import deduplicate_properties, records_match, Deduplicator
from .novelty import mark_new_properties
from .overrides import load_overrides, apply_overrides
from .market import enrich_properties, load_price_table, MarketEnricher, PriceTable
from .scoring import score_properties, calculate_score, DealScorer, ScoreResult
from .storage import SnapshotStore
from .alerts import send_summary, SummaryNotifier
from .pipeline import run_full_pipeline, collect_sources, process_records, filter_opportunities

__all__ = [
    # Errors
    "LeilaoTrackerError",
    "SourceFailure",
    "BatchFailure",
    "ParseFailure",
    "OverrideLoadFailure",
    "SnapshotExistsError",
    "ConfigurationError",
    # Models
    "Property",
    "Ocupacao",
    "Fonte",
    # Normalization
    "normalize_records",
    "normalize_text",
    "RecordNormalizer",
    # Identity resolution
    "deduplicate_properties",
    "records_match",
    "Deduplicator",
    # Novelty / overrides
    "mark_new_properties",
    "load_overrides",
    "apply_overrides",
    # Market
    "enrich_properties",
    "load_price_table",
    "MarketEnricher",
    "PriceTable",
    # Scoring
    "score_properties",
    "calculate_score",
    "DealScorer",
    "ScoreResult",
    # Storage
    "SnapshotStore",
    # Alerts
    "send_summary",
    "SummaryNotifier",
    # Pipeline
    "run_full_pipeline",
    "collect_sources",
    "process_records",
    "filter_opportunities",
]
