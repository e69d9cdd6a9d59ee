"""
Identity resolution for the Leilão Tracker.

The same apartment is often listed by Caixa, Portal Zuk and others with
different ids, slightly different address spellings and independently
rounded prices. This module groups those raw records into one canonical
record per physical property.

Matching is conservative: records with an empty neighborhood or address
are never merged.
"""

import re
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from .models import Property, source_rank
from .normalization import normalize_text, parse_area

logger = logging.getLogger(__name__)


# Minimum Jaccard overlap between address token sets
ADDRESS_SIMILARITY_THRESHOLD = 0.6

# Maximum relative price difference: |a - b| / max(a, b)
PRICE_TOLERANCE = 0.02

STREET_ABBREVIATIONS = {
    "r": "rua",
    "av": "avenida",
    "avda": "avenida",
    "al": "alameda",
    "tv": "travessa",
    "trav": "travessa",
    "pc": "praca",
    "pca": "praca",
    "rod": "rodovia",
    "est": "estrada",
}

ADDRESS_STOP_TOKENS = {"n", "no", "numero", "num"}

# Fields the canonical record takes from another member when it lacks them
BACKFILL_FIELDS = (
    "link", "tipo", "endereco", "avaliacao", "desconto", "modalidade",
    "encerramento", "area", "quartos", "vagas", "sem_vagas", "prioridade",
)


# =============================================================================
# MATCHING RULE
# =============================================================================

def address_tokens(endereco: str) -> set[str]:
    """Token set of an address, with street-type abbreviations expanded."""
    text = re.sub(r"[^a-z0-9]+", " ", normalize_text(endereco))
    tokens = set()
    for token in text.split():
        token = STREET_ABBREVIATIONS.get(token, token)
        if token not in ADDRESS_STOP_TOKENS:
            tokens.add(token)
    return tokens


def street_number(endereco: str) -> Optional[str]:
    """First all-digit token of the address (the street number), if any."""
    for token in re.sub(r"[^a-z0-9]+", " ", normalize_text(endereco)).split():
        if token.isdigit():
            return token
    return None


def jaccard(a: set, b: set) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def prices_close(a: float, b: float, tolerance: float = PRICE_TOLERANCE) -> bool:
    if a <= 0 or b <= 0:
        return False
    return abs(a - b) / max(a, b) <= tolerance


def matching_key(bairro: str) -> str:
    """Normalized neighborhood, or "" when it is empty/unknown."""
    key = normalize_text(bairro)
    if not re.search(r"[a-z0-9]", key) or key in ("desconhecido", "nao informado"):
        return ""
    return key


def records_match(
    a: Property,
    b: Property,
    threshold: float = ADDRESS_SIMILARITY_THRESHOLD,
    price_tolerance: float = PRICE_TOLERANCE,
) -> bool:
    """
    True when a and b look like the same physical property.

    Same neighborhood, AND similar address tokens, AND either close prices
    or the street number of one address appearing in the other.
    """
    bairro = matching_key(a.bairro)
    if not bairro or bairro != matching_key(b.bairro):
        return False

    tokens_a = address_tokens(a.endereco)
    tokens_b = address_tokens(b.endereco)
    if not tokens_a or not tokens_b:
        return False
    if jaccard(tokens_a, tokens_b) < threshold:
        return False

    if prices_close(a.lance, b.lance, price_tolerance):
        return True

    number_a = street_number(a.endereco)
    number_b = street_number(b.endereco)
    return (number_a is not None and number_a in tokens_b) or (
        number_b is not None and number_b in tokens_a
    )


# =============================================================================
# UNION-FIND
# =============================================================================

class UnionFind:
    """Disjoint sets over record positions 0..size-1."""

    def __init__(self, size: int):
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, x: int) -> int:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        # Path compression
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, x: int, y: int) -> bool:
        """Merge the sets holding x and y. Returns False if already joined."""
        root_x, root_y = self.find(x), self.find(y)
        if root_x == root_y:
            return False
        if self.rank[root_x] < self.rank[root_y]:
            root_x, root_y = root_y, root_x
        self.parent[root_y] = root_x
        if self.rank[root_x] == self.rank[root_y]:
            self.rank[root_x] += 1
        return True

    def groups(self) -> list[list[int]]:
        """Members of every set, sets ordered by their lowest index."""
        clusters: dict[int, list[int]] = {}
        for idx in range(len(self.parent)):
            clusters.setdefault(self.find(idx), []).append(idx)
        return list(clusters.values())


# =============================================================================
# DEDUPLICATOR
# =============================================================================

@dataclass
class IdentityCluster:
    """Raw records believed to denote one physical unit."""
    members: list[Property]
    representative: Property

    @property
    def size(self) -> int:
        return len(self.members)


def _has_area(record: Property) -> bool:
    return parse_area(record.area) is not None


def _is_missing(value) -> bool:
    return value is None or value == ""


class Deduplicator:
    """
    Clusters records from all sources into one record per property.

    Usage:
        dedup = Deduplicator()
        canonical = dedup.resolve([caixa_records, zuk_records])
    """

    def __init__(
        self,
        threshold: float = ADDRESS_SIMILARITY_THRESHOLD,
        price_tolerance: float = PRICE_TOLERANCE,
    ):
        self.threshold = threshold
        self.price_tolerance = price_tolerance

    def clusters(self, sources: list[list[Property]]) -> list[IdentityCluster]:
        """Group the records of all sources into identity clusters."""
        records = [record for source in sources for record in source]
        uf = UnionFind(len(records))

        # A repeated id is the same record, whatever the rule says
        first_by_id: dict[str, int] = {}
        for idx, record in enumerate(records):
            if record.id in first_by_id:
                uf.union(first_by_id[record.id], idx)
            else:
                first_by_id[record.id] = idx

        # Only records sharing a neighborhood can match
        blocks: dict[str, list[int]] = defaultdict(list)
        for idx, record in enumerate(records):
            key = matching_key(record.bairro)
            if key and record.endereco:
                blocks[key].append(idx)

        edges = 0
        for indices in blocks.values():
            for pos, i in enumerate(indices):
                for j in indices[pos + 1:]:
                    if records[i].fonte == records[j].fonte:
                        continue
                    if records_match(records[i], records[j], self.threshold, self.price_tolerance):
                        uf.union(i, j)
                        edges += 1

        logger.debug(f"Found {edges} match edges among {len(records)} records")

        result = []
        for group in uf.groups():
            members = [records[idx] for idx in group]
            result.append(IdentityCluster(members=members, representative=self._pick_representative(members)))
        return result

    def resolve(self, sources: list[list[Property]]) -> list[Property]:
        """
        Resolve all sources into canonical records.

        Args:
            sources: One record list per source

        Returns:
            One canonical Property per cluster, in first-seen order
        """
        total = sum(len(source) for source in sources)
        canonical = []
        merged = 0

        for cluster in self.clusters(sources):
            record = self._merge(cluster)
            if cluster.size > 1:
                merged += cluster.size - 1
                logger.debug(f"Merged {record.ids_origem} into {record.id}")
            canonical.append(record)

        logger.info(f"Deduplicated {total} records into {len(canonical)} properties ({merged} duplicates merged)")
        return canonical

    def _pick_representative(self, members: list[Property]) -> Property:
        """Occupancy known, then area known, then most trusted source; ties keep input order."""
        return min(
            members,
            key=lambda r: (not r.ocupacao_conhecida, not _has_area(r), source_rank(r.fonte)),
        )

    def _merge(self, cluster: IdentityCluster) -> Property:
        canonical = cluster.representative.copy()
        if cluster.size == 1:
            if not canonical.fontes:
                canonical.fontes = [canonical.fonte]
            if not canonical.ids_origem:
                canonical.ids_origem = [canonical.id]
            return canonical

        for name in BACKFILL_FIELDS:
            if not _is_missing(getattr(canonical, name)):
                continue
            for member in cluster.members:
                value = getattr(member, name)
                if not _is_missing(value):
                    setattr(canonical, name, value)
                    break

        alertas: list[str] = []
        fontes: list[str] = []
        ids: list[str] = []
        for member in cluster.members:
            for alerta in member.alertas:
                if alerta not in alertas:
                    alertas.append(alerta)
            for fonte in member.fontes or [member.fonte]:
                if fonte not in fontes:
                    fontes.append(fonte)
            for record_id in member.ids_origem or [member.id]:
                if record_id not in ids:
                    ids.append(record_id)

        canonical.alertas = alertas
        canonical.fontes = fontes
        canonical.ids_origem = ids
        return canonical


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def deduplicate_properties(sources: list[list[Property]]) -> list[Property]:
    """
    Convenience function to deduplicate records across sources.

    Args:
        sources: One list of normalized records per source

    Returns:
        List of canonical Property objects with unique ids
    """
    return Deduplicator().resolve(sources)
