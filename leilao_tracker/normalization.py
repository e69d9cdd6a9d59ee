"""
Normalization module for the Leilão Tracker.

Two jobs:
1. Canonical text/number forms shared by matching and price lookup
   (normalize_text, parse_brl, parse_area). Dedup and market enrichment
   must call these same functions or they silently disagree.
2. Map raw source records (dicts with loosely formatted values) into the
   canonical Property model.
"""

import re
import math
import logging
import unicodedata
from datetime import date, datetime
from typing import Optional, Iterable

from .config import PRIORITY_NEIGHBORHOODS
from .exceptions import ParseFailure
from .models import Property, Ocupacao

logger = logging.getLogger(__name__)


# =============================================================================
# TEXT AND NUMBER CANONICALIZATION
# =============================================================================

def normalize_text(text) -> str:
    """
    Lower-case, strip accents, collapse whitespace, trim.

    normalize_text(normalize_text(s)) == normalize_text(s) for every s.
    """
    if not text:
        return ""
    text = unicodedata.normalize("NFKD", str(text).lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    # NFKD can expose upper-case compatibility forms (e.g. "ℌ" -> "H")
    text = text.lower()
    return " ".join(text.split())


def clean_text(text) -> str:
    """Collapse whitespace for display fields, keeping case and accents."""
    if not text:
        return ""
    return " ".join(str(text).split())


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up (not banker's rounding)."""
    return int(math.floor(value + 0.5))


_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")


def parse_brl(value) -> float:
    """
    Parse a Brazilian currency value ("R$ 123.456,78" -> 123456.78).

    Dots are thousands separators and the comma is the decimal separator.
    Unparseable input returns 0.0, which callers must read as "missing".
    """
    if value is None or isinstance(value, bool):
        return 0.0

    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return 0.0
        return round(float(value), 2)

    if isinstance(value, str):
        cleaned = re.sub(r"[R$\s ]", "", value)
        cleaned = cleaned.replace(".", "").replace(",", ".")
        if not _NUMBER_RE.match(cleaned):
            return 0.0
        return round(float(cleaned), 2)

    return 0.0


def parse_percent(value) -> Optional[float]:
    """Parse a percentage ("45%", "45,5", 45.5); None when absent or out of [0, 100]."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = re.search(r"-?\d+(?:[.,]\d+)?", str(value))
        if not match:
            return None
        number = float(match.group().replace(",", "."))

    if math.isnan(number) or number < 0 or number > 100:
        return None
    return round(number, 2)


_AREA_RE = re.compile(r"([\d.,]+)\s*m", re.IGNORECASE)


def parse_area(text) -> Optional[float]:
    """Extract the first area in m² from an area string ("156.18m²" -> 156.18)."""
    if text is None:
        return None
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        return float(text) if text > 0 else None

    match = _AREA_RE.search(str(text))
    if not match:
        return None

    number_str = match.group(1).strip(".,")
    if "," in number_str:
        number_str = number_str.replace(".", "").replace(",", ".")
    elif number_str.count(".") > 1:
        number_str = number_str.replace(".", "")

    try:
        value = float(number_str)
    except ValueError:
        return None
    return value if value > 0 else None


_BR_DATE_RE = re.compile(r"(\d{2})/(\d{2})/(\d{4})")


def parse_br_date(value) -> Optional[date]:
    """Parse "dd/mm/yyyy" (or ISO) into a date; None for open-ended or garbage."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    match = _BR_DATE_RE.search(text)
    try:
        if match:
            day, month, year = (int(g) for g in match.groups())
            return date(year, month, day)
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def parse_int(value) -> Optional[int]:
    """First integer in value, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) else int(value)
    match = re.search(r"\d+", str(value))
    return int(match.group()) if match else None


def is_priority_neighborhood(bairro: str, priority: Optional[Iterable[str]] = None) -> bool:
    """
    True when bairro names one of the priority neighborhoods.

    Neighborhoods carrying a "(City)" suffix lie outside Curitiba and are
    never priority, even when the name collides (e.g. "Centro (Pinhais)").
    """
    if not bairro or re.search(r"\(.*\)\s*$", bairro):
        return False
    norm = normalize_text(bairro)
    if not norm:
        return False
    names = PRIORITY_NEIGHBORHOODS if priority is None else priority
    return any(normalize_text(name) in norm for name in names)


# =============================================================================
# NORMALIZER CLASS
# =============================================================================

class RecordNormalizer:
    """
    Normalizes raw scraped records into canonical Property objects.

    Usage:
        normalizer = RecordNormalizer()
        records = normalizer.normalize_batch(raw_items)
        print(normalizer.skipped)
    """

    def __init__(self, priority_neighborhoods: Optional[list[str]] = None):
        self.priority_neighborhoods = priority_neighborhoods
        self.skipped = 0

    def normalize_batch(self, raw_items: list[dict]) -> list[Property]:
        """
        Normalize a batch of raw records, skipping (and counting) malformed ones.

        Args:
            raw_items: Raw record dictionaries from one source

        Returns:
            List of normalized Property objects
        """
        normalized = []

        for raw in raw_items:
            try:
                normalized.append(self.normalize(raw))
            except ParseFailure as e:
                self.skipped += 1
                logger.warning(f"Skipping malformed record: {e}")
            except Exception as e:
                self.skipped += 1
                logger.warning(f"Failed to normalize record {_raw_id(raw)}: {e}")

        logger.info(f"Normalized {len(normalized)}/{len(raw_items)} records")
        return normalized

    def normalize(self, raw: dict) -> Property:
        """
        Normalize a single raw record.

        Raises:
            ParseFailure: if the record has no id, no source, or no usable price
        """
        if not isinstance(raw, dict):
            raise ParseFailure(f"Expected a dict, got {type(raw).__name__}")

        record_id = clean_text(raw.get("id"))
        fonte = clean_text(raw.get("fonte"))
        if not record_id or not fonte:
            raise ParseFailure(f"Missing id or fonte in raw record {_raw_id(raw)}")

        lance = parse_brl(raw.get("lance"))
        if lance <= 0:
            raise ParseFailure(f"Zero or unparseable price for {record_id}: {raw.get('lance')!r}")

        avaliacao = parse_brl(raw.get("avaliacao")) or None
        desconto = parse_percent(raw.get("desconto"))
        if desconto is None and avaliacao and avaliacao > lance:
            desconto = float(round_half_up((1 - lance / avaliacao) * 100))

        bairro = clean_text(raw.get("bairro"))
        prioridade = raw.get("prioridade")
        if not isinstance(prioridade, bool):
            prioridade = is_priority_neighborhood(bairro, self.priority_neighborhoods)

        sem_vagas = raw.get("semVagas")
        alertas = raw.get("alertas") or []
        if isinstance(alertas, str):
            alertas = [alertas]

        return Property(
            id=record_id,
            fonte=fonte,
            link=clean_text(raw.get("link")),
            tipo=clean_text(raw.get("tipo")) or "Imóvel",
            bairro=bairro,
            endereco=clean_text(raw.get("endereco")),
            lance=lance,
            avaliacao=avaliacao,
            desconto=desconto,
            modalidade=clean_text(raw.get("modalidade")),
            encerramento=parse_br_date(raw.get("encerramento")),
            ocupacao=Ocupacao.parse(raw.get("ocupacao") or "desconhecido"),
            area=clean_text(raw.get("area")) or None,
            quartos=parse_int(raw.get("quartos")),
            vagas=parse_int(raw.get("vagas")),
            sem_vagas=True if sem_vagas is True else None,
            prioridade=prioridade,
            alertas=[str(a) for a in alertas if a],
            fontes=[fonte],
            ids_origem=[record_id],
        )


def _raw_id(raw) -> str:
    if isinstance(raw, dict):
        return str(raw.get("id", "unknown"))
    return "unknown"


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def normalize_records(raw_items: list[dict]) -> list[Property]:
    """
    Convenience function to normalize records.

    Args:
        raw_items: List of raw record dictionaries

    Returns:
        List of normalized Property objects
    """
    normalizer = RecordNormalizer()
    return normalizer.normalize_batch(raw_items)
