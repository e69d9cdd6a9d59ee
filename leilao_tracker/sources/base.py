"""
Base scraper class for property sources.

Every auction source subclasses BaseScraper. fetch_listings() downloads
and returns raw record dicts; parse_listing() turns one downloaded
HTML page or CSV file into such dicts.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Optional
import requests

from ..config import AppConfig, get_app_config
from ..exceptions import SourceFailure
from ..models import Fonte

logger = logging.getLogger(__name__)


class BaseScraper(ABC):
    """
    Abstract base class for property scrapers.

    Shares one requests.Session per source, spaces requests by
    REQUEST_DELAY and turns any failure of a scrape into SourceFailure.
    Subclasses set `source` and implement fetch_listings / parse_listing.
    """

    source: Fonte  # Subclass must set this

    def __init__(self, config: Optional[AppConfig] = None, session: Optional[requests.Session] = None):
        """config and session can be injected for tests."""
        self.config = config or get_app_config()
        self.session = session or requests.Session()

        self.session.headers.update({
            "User-Agent": (
                "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
            ),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "pt-BR,pt;q=0.9,en;q=0.8",
        })

        self._last_request_time: float = 0

    @property
    def name(self) -> str:
        return self.source.value

    def _rate_limit(self, delay: Optional[float] = None) -> None:
        """Enforce a minimum delay between consecutive requests."""
        delay = self.config.request_delay if delay is None else delay
        elapsed = time.time() - self._last_request_time
        if elapsed < delay:
            time.sleep(delay - elapsed)
        self._last_request_time = time.time()

    def _get(self, url: str, delay: Optional[float] = None, **kwargs) -> Optional[requests.Response]:
        """
        Rate-limited GET; request errors are logged and yield None.

        Args:
            url: The URL to fetch
            delay: Minimum seconds since the previous request
            **kwargs: Additional arguments to pass to session.get()

        Returns:
            Response object or None if the request failed
        """
        self._rate_limit(delay)

        try:
            kwargs.setdefault("timeout", self.config.request_timeout)
            response = self.session.get(url, **kwargs)
            response.raise_for_status()
            return response
        except requests.RequestException as e:
            logger.error(f"Request failed for {url}: {e}")
            return None

    @abstractmethod
    def fetch_listings(self, **kwargs) -> list[dict]:
        """
        Download and parse every listing of this source.

        Returns:
            List of raw record dictionaries (not yet normalized)

        Raises:
            SourceFailure: when the source produced no usable data at all
        """
        pass

    @abstractmethod
    def parse_listing(self, raw_data: str, url: str) -> list[dict]:
        """
        Parse raw HTML/CSV into record dictionaries.

        Args:
            raw_data: The downloaded content
            url: Where raw_data came from (used in log messages)

        Returns:
            List of raw record dictionaries
        """
        pass

    def scrape(self, **kwargs) -> list[dict]:
        """
        Fetch this source's listings.

        Returns:
            List of raw record dictionaries ready for normalization

        Raises:
            SourceFailure: on any failure, so the caller can isolate this source
        """
        logger.info(f"Starting scrape for {self.name}")

        try:
            items = self.fetch_listings(**kwargs)
        except SourceFailure:
            raise
        except Exception as e:
            raise SourceFailure(self.name, str(e)) from e

        logger.info(f"Scraped {len(items)} records from {self.name}")
        return items
