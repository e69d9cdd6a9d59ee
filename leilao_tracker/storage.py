"""
Snapshot storage for the Leilão Tracker.

Each run writes one file per calendar day, data/YYYY-MM-DD.json, holding
the full JSON array of enriched records. Files are never edited after they
are written; the next run reads yesterday's file back as its baseline.
"""

import os
import json
import logging
import tempfile
from datetime import date, timedelta
from typing import Optional

from .exceptions import ParseFailure, SnapshotExistsError
from .models import Property

logger = logging.getLogger(__name__)


class SnapshotStore:
    """
    Dated JSON snapshot archive.

    Usage:
        store = SnapshotStore("data")
        yesterday = store.load_previous()
        store.save(records)
    """

    def __init__(self, data_dir: str):
        self.data_dir = data_dir

    def path_for(self, day: date) -> str:
        return os.path.join(self.data_dir, f"{day.isoformat()}.json")

    def exists(self, day: date) -> bool:
        return os.path.exists(self.path_for(day))

    def load(self, day: date) -> list[Property]:
        """
        Load the snapshot for a day.

        A missing file is an empty baseline. A corrupt file is logged and
        also treated as empty; unparsable entries are skipped one by one.
        """
        path = self.path_for(day)
        if not os.path.exists(path):
            logger.info(f"No snapshot for {day.isoformat()}")
            return []

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Could not load snapshot {path}: {e}")
            return []

        if not isinstance(data, list):
            logger.warning(f"Snapshot {path} is not a JSON array, ignoring it")
            return []

        records = []
        for entry in data:
            try:
                records.append(Property.from_dict(entry))
            except ParseFailure as e:
                logger.warning(f"Skipping bad entry in {path}: {e}")
            except Exception as e:
                logger.warning(f"Failed to load entry in {path}: {e}")

        logger.info(f"Loaded {len(records)} properties from {path}")
        return records

    def load_previous(self, today: Optional[date] = None) -> list[Property]:
        """Load the snapshot of the day before `today`."""
        today = today or date.today()
        return self.load(today - timedelta(days=1))

    def save(self, records: list[Property], day: Optional[date] = None, overwrite: bool = False) -> str:
        """
        Write the snapshot for a day atomically.

        Raises:
            SnapshotExistsError: if the day already has a snapshot and overwrite is False

        Returns:
            Path of the written file
        """
        day = day or date.today()
        path = self.path_for(day)
        if os.path.exists(path) and not overwrite:
            raise SnapshotExistsError(f"Snapshot {path} already exists")

        os.makedirs(self.data_dir, exist_ok=True)
        payload = [record.to_dict() for record in records]

        # Write to a temp file in the same directory, then rename into place
        fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix=f".{day.isoformat()}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

        logger.info(f"Saved {len(records)} properties to {path}")
        return path
