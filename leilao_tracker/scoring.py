"""
Deal scoring for the Leilão Tracker.

Turns an enriched property into a 0-100 score plus a breakdown string that
shows the points of every factor, so a ranking can always be audited:

    Desc:18/25 | Real:25/25 | Vagas:3/15(?) | Bairro:10/10 | Ocup:5/10(?) | Prazo:12/15

A "(?)" marks a factor that fell back to a neutral value for missing data.
Everything is deterministic except Prazo, which depends on today's date.
"""

import math
import logging
from datetime import date, datetime
from dataclasses import dataclass, field
from typing import Optional

from .models import Property, Ocupacao
from .normalization import normalize_text, round_half_up

logger = logging.getLogger(__name__)


# Types that normally come with a garage spot
PARKING_TYPES = ("apartamento", "casa", "sobrado", "kitnet")


def expects_parking(tipo: str) -> bool:
    tipo_norm = normalize_text(tipo)
    return any(t in tipo_norm for t in PARKING_TYPES)


@dataclass
class ScoreResult:
    """Score of one property with its per-factor points."""
    score: int
    breakdown: str
    factors: dict[str, int] = field(default_factory=dict)
    unknown: list[str] = field(default_factory=list)


class DealScorer:
    """
    Scores properties with six independently capped factors.

    Usage:
        scorer = DealScorer()
        ranked = scorer.score_all(records)
    """

    # Maximum points per factor (sum = 100)
    WEIGHTS = {
        "Desc": 25,     # Nominal discount vs appraisal
        "Real": 25,     # Discount vs adjusted market R$/m²
        "Vagas": 15,    # Parking
        "Bairro": 10,   # Priority neighborhood
        "Ocup": 10,     # Occupancy
        "Prazo": 15,    # Days until the auction closes
    }

    NOMINAL_SATURATION = 70   # % discount worth full points
    REAL_SATURATION = 50      # % real discount worth full points
    REAL_UNKNOWN = 10
    OPEN_ENDED_URGENCY = 7

    # (max days until close, points), checked in order
    URGENCY_TIERS = ((3, 15), (7, 12), (14, 8), (30, 5))
    URGENCY_FAR = 2

    def __init__(self, now: Optional[datetime] = None):
        """now is fixed for tests; by default each score uses the current time."""
        self.now = now

    def score_all(self, records: list[Property]) -> list[Property]:
        """Score every record in place and return them ranked, best first."""
        for record in records:
            try:
                self.apply(record)
            except Exception as e:
                logger.warning(f"Scoring failed for {record.id}: {e}")

        ranked = sorted(records, key=lambda r: r.score or 0, reverse=True)

        if ranked:
            scored = [r.score for r in ranked if r.score is not None]
            avg = round_half_up(sum(scored) / len(scored)) if scored else 0
            logger.info(f"Scored {len(scored)} properties, avg {avg}/100, best {ranked[0].score}/100")
        return ranked

    def apply(self, record: Property) -> Property:
        result = self.score(record)
        record.score = result.score
        record.score_breakdown = result.breakdown
        return record

    def score(self, record: Property) -> ScoreResult:
        """
        Score a single property.

        Args:
            record: An enriched property

        Returns:
            ScoreResult with the clamped total and the breakdown string
        """
        parts: list[str] = []
        result = ScoreResult(score=0, breakdown="")

        for name, scorer in (
            ("Desc", self._score_nominal),
            ("Real", self._score_real),
            ("Vagas", self._score_parking),
            ("Bairro", self._score_neighborhood),
            ("Ocup", self._score_occupancy),
            ("Prazo", self._score_urgency),
        ):
            points, note = scorer(record)
            points = max(0, min(self.WEIGHTS[name], points))
            result.factors[name] = points
            if note == "(?)":
                result.unknown.append(name)
            parts.append(f"{name}:{points}/{self.WEIGHTS[name]}{note}")

        result.score = max(0, min(100, sum(result.factors.values())))
        result.breakdown = " | ".join(parts)
        return result

    def _score_nominal(self, record: Property) -> tuple[int, str]:
        """Linear in desconto, full points at 70%."""
        disc = record.desconto or 0
        return min(self.WEIGHTS["Desc"], round_half_up(disc * self.WEIGHTS["Desc"] / self.NOMINAL_SATURATION)), ""

    def _score_real(self, record: Property) -> tuple[int, str]:
        """Linear in descontoReal, floor 0, full points at +50%."""
        if record.desconto_real is None:
            return self.REAL_UNKNOWN, "(?)"
        points = round_half_up(record.desconto_real * self.WEIGHTS["Real"] / self.REAL_SATURATION)
        return max(0, min(self.WEIGHTS["Real"], points)), ""

    def _score_parking(self, record: Property) -> tuple[int, str]:
        # A manual "no parking" flag beats whatever the scraper parsed
        if record.sem_vagas:
            return 0, "⛔"
        if record.vagas is not None:
            if record.vagas >= 2:
                return 15, ""
            if record.vagas == 1:
                return 10, ""
            return 0, "⛔"
        if expects_parking(record.tipo):
            return 3, "(?)"
        return 8, "(n/a)"

    def _score_neighborhood(self, record: Property) -> tuple[int, str]:
        return (10, "") if record.prioridade else (3, "")

    def _score_occupancy(self, record: Property) -> tuple[int, str]:
        if record.ocupacao == Ocupacao.DESOCUPADO:
            return 10, ""
        if record.ocupacao == Ocupacao.OCUPADO:
            return 2, ""
        return 5, "(?)"

    def _score_urgency(self, record: Property) -> tuple[int, str]:
        """Closer deadlines score higher; open-ended sales get a fixed mid credit."""
        if record.encerramento is None:
            return self.OPEN_ENDED_URGENCY, "(aberto)"

        days = self.days_until(record.encerramento)
        for max_days, points in self.URGENCY_TIERS:
            if days <= max_days:
                return points, ""
        return self.URGENCY_FAR, ""

    def days_until(self, encerramento: date) -> int:
        """Whole days until the close date (midnight), rounded up."""
        now = self.now or datetime.now()
        closes = datetime.combine(encerramento, datetime.min.time())
        return math.ceil((closes - now).total_seconds() / 86400)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def score_properties(records: list[Property], now: Optional[datetime] = None) -> list[Property]:
    """
    Convenience function to score and rank properties.

    Args:
        records: Enriched properties
        now: Reference time for the urgency factor (defaults to now)

    Returns:
        The records sorted by score, best first
    """
    return DealScorer(now=now).score_all(records)


def calculate_score(record: Property, now: Optional[datetime] = None) -> ScoreResult:
    """Score one property without modifying it."""
    return DealScorer(now=now).score(record)
