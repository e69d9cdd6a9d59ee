"""
Portal Zuk scraper for Curitiba and Grande Curitiba auctions.

Listing pages are server-rendered cards. Occupancy and the real area only
appear on each property's detail page, so every card costs one follow-up
request; those are made one at a time with a fixed pause (DETAIL_DELAY)
to stay under Zuk's rate limit.
"""

import re
import logging
from typing import Optional
from bs4 import BeautifulSoup

from .base import BaseScraper
from ..exceptions import SourceFailure
from ..models import Fonte
from ..normalization import normalize_text, parse_brl, round_half_up

logger = logging.getLogger(__name__)


BASE_URL = "https://www.portalzuk.com.br"

ZUK_CITIES = {
    "curitiba": "Curitiba",
    "fazenda-rio-grande": "Fazenda Rio Grande",
    "sao-jose-dos-pinhais": "São José dos Pinhais",
    "pinhais": "Pinhais",
    "colombo": "Colombo",
    "araucaria": "Araucária",
    "campo-largo": "Campo Largo",
    "almirante-tamandare": "Almirante Tamandaré",
}

ID_RE = re.compile(r"/(\d+)-(\d+)$")
TIPO_RE = re.compile(r"^(\w[\w\s]*?) em leilão")
DATE_RE = re.compile(r"(\d{2}/\d{2}/\d{4})")
LOCATION_CITY_RE = re.compile(r"^(.+?)\s*/\s*PR")
LOCATION_BAIRRO_RE = re.compile(r"- (.+)$")
PERCENT_RE = re.compile(r"(\d+)")

OCUPADO_RE = re.compile(r"im[oó]vel\s+ocupado", re.IGNORECASE)
DESOCUPADO_RE = re.compile(r"im[oó]vel\s+desocupado", re.IGNORECASE)
AREA_CONSTRUIDA_RE = re.compile(r"Metragem constru[ií]da\s*([\d.,]+\s*m²)")
AREA_TERRENO_RE = re.compile(r"Metragem terreno\s*([\d.,]+\s*m²)")
COMPRA_DIRETA_RE = re.compile(r"compra direta", re.IGNORECASE)


def city_url(slug: str) -> str:
    return f"{BASE_URL}/leilao-de-imoveis/c/todos-imoveis/pr/regiao/{slug}"


def _date(text: str) -> Optional[str]:
    match = DATE_RE.search(text or "")
    return match.group(1) if match else None


class ZukScraper(BaseScraper):
    """
    Scraper for Portal Zuk auction listings.

    Fetches one listing page per city, then each card's detail page.
    """

    source = Fonte.ZUK

    def fetch_listings(self, cities: Optional[list[str]] = None, fetch_details: bool = True, **kwargs) -> list[dict]:
        """
        Fetch Zuk listings for the given city slugs.

        Args:
            cities: Slugs from ZUK_CITIES (defaults to all of them)
            fetch_details: Follow each card to its detail page

        Raises:
            SourceFailure: when no listing page could be downloaded
        """
        cities = cities or list(ZUK_CITIES)
        all_items = []
        pages_ok = 0

        for slug in cities:
            url = city_url(slug)
            logger.info(f"Fetching Zuk listing: {slug}")
            response = self._get(url)
            if response is None:
                continue
            pages_ok += 1
            items = self.parse_listing(response.text, url, city=ZUK_CITIES.get(slug, slug))
            logger.info(f"Zuk {slug}: {len(items)} properties found")
            all_items.extend(items)

        if cities and pages_ok == 0:
            raise SourceFailure(self.name, "no listing page could be fetched")

        if fetch_details:
            self.fetch_details(all_items)

        return all_items

    def fetch_details(self, items: list[dict]) -> None:
        """Best-effort detail pass, strictly sequential with a fixed delay."""
        logger.info(f"Fetching details for {len(items)} Zuk properties")
        for item in items:
            if not item.get("link"):
                continue
            response = self._get(item["link"], delay=self.config.detail_delay)
            if response is None:
                logger.warning(f"Could not fetch detail for {item['id']}")
                continue
            try:
                self.parse_detail(response.text, item)
            except Exception as e:
                logger.warning(f"Failed to parse detail for {item['id']}: {e}")

    def parse_listing(self, raw_data: str, url: str, city: str = "Curitiba") -> list[dict]:
        """Parse the property cards of one listing page."""
        soup = BeautifulSoup(raw_data, "html.parser")
        items = []

        for card in soup.select(".card-property.card_lotes_div"):
            try:
                item = self._parse_card(card, city)
                if item:
                    items.append(item)
            except Exception as e:
                logger.warning(f"Error parsing Zuk card at {url}: {e}")

        return items

    def _parse_card(self, card, city: str) -> Optional[dict]:
        link_el = card.select_one(".card-property-image-wrapper a")
        if link_el is None:
            return None
        link = link_el.get("href", "")
        id_match = ID_RE.search(link)
        if not id_match:
            return None
        if link.startswith("/"):
            link = f"{BASE_URL}{link}"

        title = link_el.get("title", "")
        tipo_match = TIPO_RE.match(title)
        if tipo_match:
            tipo = tipo_match.group(1)
        else:
            lote = card.select_one(".card-property-price-lote")
            tipo = (lote.get_text(strip=True) if lote else "") or "Imóvel"

        bairro, endereco = self._parse_address(card, city)

        area_el = card.select_one(".card-property-info-label")
        area = area_el.get_text(strip=True) if area_el else ""

        prices = self._parse_prices(card)
        if not prices["lance"]:
            return None

        return {
            "id": f"zuk-{id_match.group(2)}",
            "fonte": self.source.value,
            "link": link,
            "tipo": tipo,
            "bairro": bairro,
            "endereco": endereco,
            "area": area or None,
            "ocupacao": "desconhecido",
            **prices,
        }

    def _parse_address(self, card, city: str) -> tuple[str, str]:
        """(bairro, endereco); neighborhoods outside Curitiba get a "(City)" suffix."""
        address_el = card.select_one(".card-property-address")
        if address_el is None:
            return city, ""

        spans = address_el.find_all("span", style=True)
        location = spans[0].get_text(strip=True) if spans else ""
        endereco = spans[1].get_text(strip=True) if len(spans) > 1 else ""

        city_match = LOCATION_CITY_RE.match(location)
        actual_city = city_match.group(1).strip() if city_match else ""
        bairro_match = LOCATION_BAIRRO_RE.search(location)
        bairro = bairro_match.group(1).strip() if bairro_match else city

        in_curitiba = normalize_text(actual_city or city) == "curitiba"
        if not in_curitiba:
            bairro = f"{bairro} ({actual_city or city})"
        return bairro, endereco

    def _parse_prices(self, card) -> dict:
        """Prices for one or two auction rounds (praças)."""
        avaliacao = 0.0
        lance = 0.0
        desconto = None
        encerramento = None
        modalidade = "Leilão"

        pracas_el = card.select_one("[data-pracas]")
        num_pracas = pracas_el.get("data-pracas") if pracas_el else None
        price_lists = card.select("ul.card-property-prices")
        price_els = price_lists[-1].select(".card-property-price") if price_lists else []

        def text(el, selector):
            found = el.select_one(selector)
            return found.get_text(strip=True) if found else ""

        if num_pracas == "2":
            for i, el in enumerate(price_els):
                label = text(el, ".card-property-price-label")
                value = text(el, ".card-property-price-value")
                if "1º" in label:
                    avaliacao = parse_brl(value)
                if "2º" in label or i == len(price_els) - 1:
                    lance = parse_brl(value)
                    encerramento = _date(text(el, ".card-property-price-data"))
                    modalidade = "Leilão 2ª Praça"

            percent = PERCENT_RE.search(text(card, ".card-property-price-percent"))
            if percent:
                desconto = int(percent.group(1))
            elif avaliacao > 0 and lance > 0:
                desconto = round_half_up((1 - lance / avaliacao) * 100)

        elif num_pracas == "1":
            for el in price_els:
                label = text(el, ".card-property-price-label")
                if "Valor" in label or label == "":
                    lance = parse_brl(text(el, ".card-property-price-value"))
                    avaliacao = lance
                    encerramento = _date(text(el, ".card-property-price-data"))

        if not lance:
            # Fallback: last positive price on the card is the current bid
            for value_el in card.select(".card-property-price-value"):
                value = parse_brl(value_el.get_text(strip=True))
                if value > 0:
                    if not avaliacao:
                        avaliacao = value
                    lance = value
            for date_el in card.select(".card-property-price-data"):
                encerramento = _date(date_el.get_text(strip=True)) or encerramento
            if avaliacao > 0 and 0 < lance < avaliacao:
                desconto = round_half_up((1 - lance / avaliacao) * 100)
                modalidade = "Leilão 2ª Praça"

        return {
            "lance": lance,
            "avaliacao": avaliacao or None,
            "desconto": desconto or None,
            "encerramento": encerramento,
            "modalidade": modalidade,
        }

    def parse_detail(self, raw_data: str, item: dict) -> dict:
        """Fill occupancy, area and modality from a detail page, in place."""
        soup = BeautifulSoup(raw_data, "html.parser")
        body = soup.body.get_text(" ", strip=True) if soup.body else soup.get_text(" ", strip=True)

        if DESOCUPADO_RE.search(body):
            item["ocupacao"] = "desocupado"
        elif OCUPADO_RE.search(body):
            item["ocupacao"] = "ocupado"

        construida = AREA_CONSTRUIDA_RE.search(body)
        terreno = AREA_TERRENO_RE.search(body)
        if construida:
            item["area"] = construida.group(1).replace(" ", "")
            if terreno:
                item["area"] += f" (terreno: {terreno.group(1).replace(' ', '')})"
        elif terreno:
            item["area"] = f"terreno: {terreno.group(1).replace(' ', '')}"

        title = soup.title.get_text() if soup.title else ""
        if COMPRA_DIRETA_RE.search(title) or COMPRA_DIRETA_RE.search(body):
            item["modalidade"] = "Compra Direta"
        return item
