"""
Market enrichment for the Leilão Tracker.

Computes R$/m² for each property and compares it with an adjusted
neighborhood average, giving a "real" discount that does not trust the
auctioneer's appraisal.

The neighborhood table holds LISTING averages (Loft/FipeZAP, Dec 2025 /
Jan 2026), which skew toward newer and premium units. Auction properties
are older and sold as-is, so the average takes a flat haircut and a
property-type multiplier before any comparison.
"""

import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from .exceptions import ConfigurationError
from .models import Property
from .normalization import normalize_text, parse_area, round_half_up

logger = logging.getLogger(__name__)


# Below this area the R$/m² is garbage (parking spot, typo, parse error)
MIN_AREA_M2 = 10.0

# Listing averages run ~10% above the resale market
DEFAULT_HAIRCUT = 0.90

# Checked in order against the normalized tipo; apartments use 1.0
DEFAULT_TYPE_FACTORS: tuple[tuple[tuple[str, ...], float], ...] = (
    (("casa", "sobrado"), 0.85),
    (("terreno",), 0.50),
    (("sala", "comercial"), 0.65),
)

# Average listing R$/m² per neighborhood, Curitiba + Grande Curitiba
DEFAULT_PRICES_M2: dict[str, int] = {
    # Premium
    "batel": 16240,
    "bigorrilho": 15061,
    "cabral": 13180,
    "campo comprido": 12450,
    "agua verde": 11768,
    "ecoville": 12000,
    "centro": 10250,
    # Mid-tier
    "portao": 8331,
    "novo mundo": 7732,
    "alto da xv": 9000,
    "hugo lange": 8500,
    "juveve": 8800,
    "reboucas": 8500,
    "cristo rei": 9200,
    "jardim social": 7500,
    "boa vista": 6845,
    "bacacheri": 7200,
    "taruma": 6500,
    # Affordable
    "cajuru": 5500,
    "boqueirao": 5800,
    "alto boqueirao": 5200,
    "xaxim": 5500,
    "pinheirinho": 5200,
    "sitio cercado": 4800,
    "cidade industrial": 7251,
    # Grande Curitiba
    "fazenda rio grande": 4500,
    "colombo": 4800,
    "sao jose dos pinhais": 5800,
    "pinhais": 5500,
    "araucaria": 5200,
    "campo largo": 4800,
    "almirante tamandare": 4200,
}


# =============================================================================
# PRICE TABLE
# =============================================================================

@dataclass(frozen=True)
class PriceTable:
    """
    Read-only neighborhood price table plus its adjustment factors.

    Loaded once at startup and handed to MarketEnricher explicitly.
    """
    prices: Mapping[str, int]
    haircut: float = DEFAULT_HAIRCUT
    type_factors: tuple[tuple[tuple[str, ...], float], ...] = field(default=DEFAULT_TYPE_FACTORS)

    def __post_init__(self):
        normalized = {normalize_text(name): value for name, value in self.prices.items()}
        object.__setattr__(self, "prices", MappingProxyType(normalized))

    def base_price(self, bairro: str) -> Optional[int]:
        """
        Unadjusted R$/m² for a neighborhood.

        Exact normalized match first, then the first entry (in table order)
        that is contained in, or contains, the neighborhood name.
        """
        norm = normalize_text(bairro)
        if not norm:
            return None
        if norm in self.prices:
            return self.prices[norm]
        for name, value in self.prices.items():
            if name in norm or norm in name:
                return value
        return None

    def type_factor(self, tipo: str) -> float:
        tipo_norm = normalize_text(tipo)
        for keywords, factor in self.type_factors:
            if any(keyword in tipo_norm for keyword in keywords):
                return factor
        return 1.0

    def adjusted_price(self, base: float, tipo: str) -> int:
        """Base R$/m² after the resale haircut and the property-type factor."""
        return round_half_up(base * self.haircut * self.type_factor(tipo))

    def market_price(self, bairro: str, tipo: str) -> Optional[int]:
        base = self.base_price(bairro)
        if not base:
            return None
        return self.adjusted_price(base, tipo)


def default_price_table() -> PriceTable:
    return PriceTable(prices=DEFAULT_PRICES_M2)


def load_price_table(path: Optional[str] = None) -> PriceTable:
    """
    Load the price table from a JSON file, or the built-in table when path is empty.

    File format:
        {"prices": {"batel": 16240, ...},
         "haircut": 0.9,
         "typeFactors": [{"keywords": ["casa", "sobrado"], "factor": 0.85}, ...]}
    """
    if not path:
        return default_price_table()

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        prices = {str(k): int(v) for k, v in data["prices"].items()}
        haircut = float(data.get("haircut", DEFAULT_HAIRCUT))
        if "typeFactors" in data:
            type_factors = tuple(
                (tuple(normalize_text(k) for k in entry["keywords"]), float(entry["factor"]))
                for entry in data["typeFactors"]
            )
        else:
            type_factors = DEFAULT_TYPE_FACTORS
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
        raise ConfigurationError(f"Invalid price table {path}: {e}") from e

    logger.info(f"Loaded price table with {len(prices)} neighborhoods from {path}")
    return PriceTable(prices=prices, haircut=haircut, type_factors=type_factors)


# =============================================================================
# ENRICHER
# =============================================================================

class MarketEnricher:
    """
    Adds precoM2, mediaM2Bairro and descontoReal to properties.

    Usage:
        enricher = MarketEnricher(load_price_table())
        enricher.enrich_all(records)
    """

    def __init__(self, table: PriceTable, min_area: float = MIN_AREA_M2):
        self.table = table
        self.min_area = min_area

    def enrich_all(self, records: list[Property]) -> list[Property]:
        for record in records:
            try:
                self.enrich(record)
            except Exception as e:
                logger.warning(f"Market enrichment failed for {record.id}: {e}")

        with_m2 = sum(1 for r in records if r.preco_m2 is not None)
        above = sum(1 for r in records if r.desconto_real is not None and r.desconto_real < 0)
        logger.info(f"Enriched {len(records)} properties: {with_m2} with R$/m², {above} above market")
        return records

    def enrich(self, record: Property) -> Property:
        """
        Enrich one property in place.

        Missing/tiny area or an unknown neighborhood leaves the fields unset;
        nothing is guessed.
        """
        record.preco_m2 = None
        record.media_m2_bairro = None
        record.desconto_real = None

        area = parse_area(record.area)
        if area is None or area <= self.min_area:
            return record

        record.preco_m2 = round_half_up(record.lance / area)

        avg_m2 = self.table.market_price(record.bairro, record.tipo)
        if not avg_m2:
            return record

        record.media_m2_bairro = avg_m2
        record.desconto_real = round_half_up((1 - record.preco_m2 / avg_m2) * 100)

        if record.desconto_real < -20:
            record.add_alert(
                f"📈 Acima do mercado! R${record.preco_m2}/m² vs média ajustada R${avg_m2}/m²"
            )
        elif record.desconto_real < 0:
            record.add_alert(
                f"⚠️ Próximo do mercado: R${record.preco_m2}/m² vs média ajustada R${avg_m2}/m²"
            )
        return record


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def enrich_properties(records: list[Property], table: PriceTable) -> list[Property]:
    """Convenience function to run market enrichment over a list."""
    return MarketEnricher(table).enrich_all(records)
