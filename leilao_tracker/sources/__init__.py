"""
Sources package - Scrapers for property auction sources.

Each scraper module handles:
1. Fetching the raw CSV/HTML from the source
2. Extracting raw records for normalization

Scrapers raise SourceFailure instead of returning partial garbage, so the
pipeline can drop one source and keep the others.
"""

from .base import BaseScraper
from .caixa import CaixaScraper
from .zuk import ZukScraper

__all__ = [
    "BaseScraper",
    "CaixaScraper",
    "ZukScraper",
]


def default_scrapers() -> list[BaseScraper]:
    """Scrapers run by the daily pipeline, most trusted first."""
    return [CaixaScraper(), ZukScraper()]
