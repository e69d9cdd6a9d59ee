"""
Novelty tracking for the Leilão Tracker.

Compares today's resolved records with yesterday's snapshot and flags the
listings that were not there before. Yesterday's list is read-only here.
"""

import logging

from .dedup import records_match
from .models import Property

logger = logging.getLogger(__name__)


def mark_new_properties(
    today: list[Property],
    yesterday: list[Property],
    match_similar: bool = True,
) -> list[Property]:
    """
    Set `novo` on each of today's records.

    A record is new when no record from yesterday shares any of its ids
    and, with match_similar, none matches it under the deduplicator's
    similarity rule (ids are not always stable across runs).

    Args:
        today: Today's resolved records (annotated in place)
        yesterday: Yesterday's records, as loaded from the snapshot
        match_similar: Also fall back to the similarity rule

    Returns:
        The same list, for chaining
    """
    known_ids: set[str] = set()
    for old in yesterday:
        known_ids.add(old.id)
        known_ids.update(old.ids_origem)

    for record in today:
        ids = {record.id, *record.ids_origem}
        if ids & known_ids:
            record.novo = False
        elif match_similar and any(records_match(record, old) for old in yesterday):
            record.novo = False
        else:
            record.novo = True

    new_count = sum(1 for r in today if r.novo)
    logger.info(f"Marked {new_count}/{len(today)} properties as new (yesterday had {len(yesterday)})")
    return today
