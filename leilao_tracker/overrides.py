"""
Manual overrides for the Leilão Tracker.

data/property-overrides.json lets a human correct what scrapers get wrong:

    {
      "caixa-1444419970935": {"semVagas": true},
      "zuk-12345": {"alertas": ["Condomínio atrasado"]}
    }

Overrides only add information. They never create, remove or rename a
record. An override keyed by any source id of a merged record applies to
it; ids that are not in today's set are ignored.
"""

import os
import json
import logging

from .exceptions import OverrideLoadFailure
from .models import Property

logger = logging.getLogger(__name__)


def read_overrides(path: str) -> dict:
    """
    Read and validate the override file.

    Raises:
        OverrideLoadFailure: unreadable file, invalid JSON, or not an object
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise OverrideLoadFailure(f"Could not read {path}: {e}") from e

    if not isinstance(data, dict):
        raise OverrideLoadFailure(f"{path} must hold a JSON object keyed by property id")
    return data


def load_overrides(path: str) -> dict:
    """Load overrides; any problem degrades to "no overrides" with a warning."""
    if not os.path.exists(path):
        logger.debug(f"No override file at {path}")
        return {}

    try:
        overrides = read_overrides(path)
    except OverrideLoadFailure as e:
        logger.warning(f"Could not load overrides: {e}")
        return {}

    logger.info(f"Loaded {len(overrides)} overrides from {path}")
    return overrides


def apply_overrides(records: list[Property], overrides: dict) -> int:
    """
    Merge manual corrections into the records, in place.

    Returns:
        Number of records that received an override
    """
    applied = 0

    for record in records:
        override = _find_override(record, overrides)
        if override is None:
            continue
        if not isinstance(override, dict):
            logger.warning(f"Ignoring malformed override for {record.id}: {override!r}")
            continue

        if override.get("semVagas") is True:
            record.sem_vagas = True

        alertas = override.get("alertas")
        if isinstance(alertas, list):
            for alerta in alertas:
                if isinstance(alerta, str) and alerta:
                    record.add_alert(alerta)
        elif alertas is not None:
            logger.warning(f"Ignoring non-list alertas override for {record.id}")

        applied += 1

    if applied:
        logger.info(f"Applied {applied} manual overrides")
    return applied


def _find_override(record: Property, overrides: dict):
    """Override for the canonical id, else for the first merged source id that has one."""
    if record.id in overrides:
        return overrides[record.id]
    for record_id in record.ids_origem:
        if record_id in overrides:
            return overrides[record_id]
    return None
