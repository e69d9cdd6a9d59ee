"""
Caixa Econômica Federal scraper.

Caixa publishes every property it sells in Paraná as one CSV file. The
download sits behind bot protection, so a successful download is cached
under the data directory and the cache is used when a fetch is blocked.

CSV layout (";"-separated, Latin-1):
    Nº do imóvel;UF;Cidade;Bairro;Endereço;Preço;Valor de avaliação;
    Desconto;Descrição;Modalidade de venda;Link de acesso
"""

import os
import re
import logging
from typing import Optional

from .base import BaseScraper
from ..exceptions import SourceFailure
from ..models import Fonte
from ..normalization import normalize_text

logger = logging.getLogger(__name__)


CSV_MARKERS = ("Nº do imóvel", "N° do imóvel", "Lista de Im")

TIPO_RE = re.compile(r"^(Apartamento|Casa|Sobrado|Terreno|Sala|Gleba|Loja|Galpão|Prédio)", re.IGNORECASE)
# The CSV's encoding mangles "á", so match any character there
AREA_PRIV_RE = re.compile(r"([\d.,]+)\s*de\s*.rea\s*privativa", re.IGNORECASE)
AREA_TOTAL_RE = re.compile(r"([\d.,]+)\s*de\s*.rea\s*total", re.IGNORECASE)
AREA_TERRENO_RE = re.compile(r"([\d.,]+)\s*de\s*.rea\s*do\s*terreno", re.IGNORECASE)
VAGAS_RE = re.compile(r"(\d+)\s*vaga\(s\)\s*de\s*garagem", re.IGNORECASE)
QUARTOS_RE = re.compile(r"(\d+)\s*qto\(s\)", re.IGNORECASE)
ADDRESS_VAGA_RE = re.compile(r"VAGA|GARAG", re.IGNORECASE)

RESIDENTIAL_TYPES = ("apartamento", "casa", "sobrado", "kitnet")


def title_case(text: str) -> str:
    return " ".join(word.capitalize() for word in text.split())


def _positive(match: Optional[re.Match]) -> Optional[str]:
    """Matched number text when it is a positive number."""
    if not match:
        return None
    try:
        return match.group(1) if float(match.group(1).replace(",", ".")) > 0 else None
    except ValueError:
        return None


class CaixaScraper(BaseScraper):
    """
    Scraper for the Caixa Econômica Paraná property list (CSV).

    Returns structured data directly, so it is the most trusted source.
    """

    source = Fonte.CAIXA

    CSV_URL = "https://venda-imoveis.caixa.gov.br/listaweb/Lista_imoveis_PR.csv"
    REFERER = "https://venda-imoveis.caixa.gov.br/sistema/download-lista.asp"
    CACHE_FILE = "caixa_pr_cache.csv"

    @property
    def cache_path(self) -> str:
        return os.path.join(self.config.data_dir, self.CACHE_FILE)

    def fetch_listings(self, **kwargs) -> list[dict]:
        """
        Download the CSV (or fall back to the cache) and parse it.

        Raises:
            SourceFailure: when neither the download nor the cache is available
        """
        csv_text = self._download()

        if csv_text:
            os.makedirs(self.config.data_dir, exist_ok=True)
            with open(self.cache_path, "w", encoding="latin-1", errors="replace") as f:
                f.write(csv_text)
        elif os.path.exists(self.cache_path):
            logger.info("Using cached Caixa CSV")
            with open(self.cache_path, encoding="latin-1") as f:
                csv_text = f.read()
        else:
            raise SourceFailure(
                self.name,
                f"bot protection and no cache; download manually from {self.REFERER}",
            )

        return self.parse_listing(csv_text, self.CSV_URL)

    def _download(self) -> str:
        response = self._get(
            self.CSV_URL,
            headers={"Accept": "text/csv,text/html,*/*", "Referer": self.REFERER},
        )
        if response is None:
            return ""

        text = response.content.decode("latin-1")
        if any(marker in text for marker in CSV_MARKERS):
            logger.info("Caixa CSV download succeeded")
            return text

        logger.warning("Got CAPTCHA/bot protection instead of the Caixa CSV")
        return ""

    def parse_listing(self, raw_data: str, url: str) -> list[dict]:
        """Parse the CSV into raw record dicts, keeping only target cities."""
        targets = {normalize_text(city) for city in self.config.target_cities}
        items = []

        for line in raw_data.splitlines():
            if not line.strip() or any(marker in line for marker in CSV_MARKERS):
                continue

            fields = [f.strip() for f in line.split(";")]
            if len(fields) < 11:
                continue

            cidade = fields[2]
            if normalize_text(cidade) not in targets:
                continue

            try:
                items.append(self._parse_row(fields))
            except Exception as e:
                logger.warning(f"Failed to parse Caixa row {fields[0]}: {e}")

        logger.info(f"Caixa: {len(items)} properties parsed from CSV")
        return items

    def _parse_row(self, fields: list[str]) -> dict:
        (imovel_id, _uf, cidade, bairro, endereco, preco, avaliacao,
         desconto, descricao, modalidade, link) = fields[:11]

        tipo_match = TIPO_RE.match(descricao)
        tipo = title_case(tipo_match.group(1)) if tipo_match else "Imóvel"

        area = ""
        area_priv = _positive(AREA_PRIV_RE.search(descricao))
        area_total = _positive(AREA_TOTAL_RE.search(descricao))
        area_terreno = _positive(AREA_TERRENO_RE.search(descricao))
        if area_priv:
            area = f"{area_priv}m²"
        elif area_total:
            area = f"{area_total}m²"
        if area_terreno:
            area = f"{area} (terreno: {area_terreno}m²)" if area else f"terreno: {area_terreno}m²"

        vagas = None
        vagas_match = VAGAS_RE.search(descricao)
        if vagas_match:
            vagas = int(vagas_match.group(1))
        elif ADDRESS_VAGA_RE.search(endereco):
            vagas = 1  # Address names a parking spot

        quartos_match = QUARTOS_RE.search(descricao)
        quartos = int(quartos_match.group(1)) if quartos_match else None

        desc_lower = descricao.lower()
        sem_vagas = ("sem direito" in desc_lower and "vaga" in desc_lower) or vagas == 0

        alertas = []
        if sem_vagas:
            alertas.append("⛔ SEM VAGAS de garagem")
        elif vagas is None and area and "terreno:" not in area and any(
            t in normalize_text(tipo) for t in RESIDENTIAL_TYPES
        ):
            alertas.append("⚠️ Vagas não informadas")

        bairro_display = title_case(bairro.lower())
        if normalize_text(cidade) != "curitiba":
            bairro_display = f"{bairro_display} ({title_case(cidade.lower())})"

        return {
            "id": f"caixa-{imovel_id.strip()}",
            "fonte": self.source.value,
            "link": link,
            "tipo": tipo,
            "bairro": bairro_display,
            "endereco": endereco,
            "lance": preco,
            "avaliacao": avaliacao,
            "desconto": desconto,
            "modalidade": modalidade or "Caixa",
            "encerramento": None,
            "ocupacao": "desconhecido",
            "area": area or None,
            "quartos": quartos,
            "vagas": vagas,
            "semVagas": True if sem_vagas else None,
            "alertas": alertas,
        }
