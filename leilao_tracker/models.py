"""
Data models for the Leilão Tracker.

Defines the single property record every source normalizes into. Derived
fields are optional and stay None until the stage that owns them runs.
The snapshot wire format keeps the camelCase keys of the published JSON.
"""

from dataclasses import dataclass, field, fields, replace
from datetime import date
from typing import Optional
from enum import Enum

from .exceptions import ParseFailure


class Ocupacao(str, Enum):
    """Occupancy status of a property."""
    OCUPADO = "ocupado"
    DESOCUPADO = "desocupado"
    DESCONHECIDO = "desconhecido"

    @classmethod
    def parse(cls, value) -> "Ocupacao":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.DESCONHECIDO


class Fonte(str, Enum):
    """Known sources. Lower rank = more trusted when picking a representative."""
    CAIXA = "Caixa Econômica"
    LEILAO_IMOVEL = "Leilão Imóvel"
    ZUK = "Portal Zuk"

    @property
    def rank(self) -> int:
        return list(Fonte).index(self)


def source_rank(fonte: str) -> int:
    """Priority of a source name; unknown sources rank last."""
    try:
        return Fonte(fonte).rank
    except ValueError:
        return len(Fonte)


# Attribute name -> wire key, for the fields whose names differ
_WIRE_KEYS = {
    "sem_vagas": "semVagas",
    "preco_m2": "precoM2",
    "media_m2_bairro": "mediaM2Bairro",
    "desconto_real": "descontoReal",
    "score_breakdown": "scoreBreakdown",
    "ids_origem": "idsOrigem",
}


@dataclass
class Property:
    """
    Canonical representation of one physical property listing.

    Created by the normalizer from a raw source record, merged by the
    deduplicator, then mutated in place by overrides, market enrichment
    and scoring.
    """
    # Identity
    id: str
    fonte: str
    link: str = ""

    # Classification
    tipo: str = "Imóvel"
    bairro: str = ""
    endereco: str = ""

    # Economics
    lance: float = 0.0
    avaliacao: Optional[float] = None
    desconto: Optional[float] = None
    modalidade: str = ""

    # Timing (None = open-ended sale)
    encerramento: Optional[date] = None

    # Attributes
    ocupacao: Ocupacao = Ocupacao.DESCONHECIDO
    area: Optional[str] = None
    quartos: Optional[int] = None
    vagas: Optional[int] = None
    sem_vagas: Optional[bool] = None

    # Flags
    novo: Optional[bool] = None
    prioridade: Optional[bool] = None
    alertas: list[str] = field(default_factory=list)

    # Provenance (set by the deduplicator)
    fontes: list[str] = field(default_factory=list)
    ids_origem: list[str] = field(default_factory=list)

    # Enrichment
    preco_m2: Optional[int] = None
    media_m2_bairro: Optional[int] = None
    desconto_real: Optional[int] = None
    score: Optional[int] = None
    score_breakdown: Optional[str] = None

    @property
    def ocupacao_conhecida(self) -> bool:
        return self.ocupacao != Ocupacao.DESCONHECIDO

    def add_alert(self, alerta: str) -> None:
        """Append a warning unless it is already present."""
        if alerta not in self.alertas:
            self.alertas.append(alerta)

    def copy(self) -> "Property":
        return replace(self, alertas=list(self.alertas), fontes=list(self.fontes),
                       ids_origem=list(self.ids_origem))

    def to_dict(self) -> dict:
        """Convert to the snapshot wire format."""
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, date):
                value = value.isoformat()
            elif isinstance(value, list):
                value = list(value)
            data[_WIRE_KEYS.get(f.name, f.name)] = value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Property":
        """Create from a snapshot entry (e.g., yesterday's data)."""
        if not isinstance(data, dict):
            raise ParseFailure(f"Expected an object, got {type(data).__name__}")
        if not data.get("id"):
            raise ParseFailure("Record without id")

        try:
            lance = float(data.get("lance") or 0)
        except (TypeError, ValueError):
            raise ParseFailure(f"Invalid lance for {data['id']}: {data.get('lance')!r}")
        if lance <= 0:
            raise ParseFailure(f"Non-positive lance for {data['id']}")

        encerramento = data.get("encerramento")
        if encerramento and not isinstance(encerramento, date):
            try:
                encerramento = date.fromisoformat(str(encerramento)[:10])
            except ValueError:
                encerramento = None

        return cls(
            id=str(data["id"]),
            fonte=data.get("fonte", ""),
            link=data.get("link", "") or "",
            tipo=data.get("tipo", "Imóvel") or "Imóvel",
            bairro=data.get("bairro", "") or "",
            endereco=data.get("endereco", "") or "",
            lance=lance,
            avaliacao=data.get("avaliacao"),
            desconto=data.get("desconto"),
            modalidade=data.get("modalidade", "") or "",
            encerramento=encerramento or None,
            ocupacao=Ocupacao.parse(data.get("ocupacao", "desconhecido")),
            area=data.get("area"),
            quartos=data.get("quartos"),
            vagas=data.get("vagas"),
            sem_vagas=data.get("semVagas"),
            novo=data.get("novo"),
            prioridade=data.get("prioridade"),
            alertas=_str_list(data, "alertas"),
            fontes=_str_list(data, "fontes"),
            ids_origem=_str_list(data, "idsOrigem"),
            preco_m2=data.get("precoM2"),
            media_m2_bairro=data.get("mediaM2Bairro"),
            desconto_real=data.get("descontoReal"),
            score=data.get("score"),
            score_breakdown=data.get("scoreBreakdown"),
        )


def _str_list(data: dict, key: str) -> list[str]:
    """A list-of-strings field; a bare string counts as one element."""
    value = data.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if not isinstance(value, list):
        raise ParseFailure(f"Invalid {key} for {data['id']}: expected a list, got {type(value).__name__}")
    return [str(v) for v in value if isinstance(v, (str, int)) and not isinstance(v, bool) and v != ""]
