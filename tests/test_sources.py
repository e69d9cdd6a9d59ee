"""Tests for the Caixa and Portal Zuk scrapers (no network)."""

from unittest.mock import MagicMock

import pytest
import requests

from leilao_tracker.exceptions import SourceFailure
from leilao_tracker.models import Fonte
from leilao_tracker.sources import BaseScraper, CaixaScraper, ZukScraper, default_scrapers

CAIXA_CSV = "\n".join([
    " Lista de Imóveis da Caixa",
    "Nº do imóvel;UF;Cidade;Bairro;Endereço;Preço;Valor de avaliação;Desconto;Descrição;Modalidade de venda;Link de acesso",
    "1444419970935;PR;CURITIBA;BATEL;RUA A, 123 APTO 4;300.000,00;500.000,00;40,00;"
    "Apartamento, 65.50 de área privativa, 2 qto(s), 1 vaga(s) de garagem.;Venda Online;https://caixa.test/1444419970935",
    "222;PR;PINHAIS;CENTRO;RUA B 10;150.000,00;200.000,00;25,00;"
    "Casa, 120,00 de área total, 3 qto(s).;Leilão SFI;https://caixa.test/222",
    "333;PR;LONDRINA;CENTRO;RUA C 1;90.000,00;100.000,00;10,00;Apartamento.;Venda Direta;https://caixa.test/333",
    "444;PR;CURITIBA;CENTRO;RUA D 5;90.000,00;100.000,00;10,00;"
    "Apartamento, sem direito a vaga de garagem.;Venda Direta;https://caixa.test/444",
])

ZUK_LISTING = """
<html><body>
<div class="card-property card_lotes_div">
  <div class="card-property-image-wrapper">
    <a href="/imovel/pr/curitiba/batel/rua-a-123/123-45678" title="Apartamento em leilão - Batel"></a>
  </div>
  <div class="card-property-address">
    <span style="display:block">Curitiba / PR - Batel</span>
    <span style="display:block">Rua A, 123</span>
  </div>
  <span class="card-property-info-label">65m²</span>
  <div data-pracas="2"></div>
  <ul class="card-property-prices">
    <li class="card-property-price">
      <span class="card-property-price-label">1º Leilão</span>
      <span class="card-property-price-value">R$ 500.000,00</span>
      <span class="card-property-price-data">10/01/2026</span>
    </li>
    <li class="card-property-price">
      <span class="card-property-price-label">2º Leilão</span>
      <span class="card-property-price-value">R$ 300.000,00</span>
      <span class="card-property-price-data">25/01/2026 às 14:00</span>
    </li>
  </ul>
  <span class="card-property-price-percent">40% abaixo</span>
</div>
<div class="card-property card_lotes_div">
  <div class="card-property-address"><span style="x">Curitiba / PR - Centro</span></div>
</div>
<div class="card-property card_lotes_div">
  <div class="card-property-image-wrapper">
    <a href="/imovel/pr/sao-jose-dos-pinhais/centro/rua-b/77-99" title="Casa em leilão - Centro"></a>
  </div>
  <div class="card-property-address">
    <span style="display:block">São José dos Pinhais / PR - Centro</span>
    <span style="display:block">Rua B, 10</span>
  </div>
  <div data-pracas="1"></div>
  <ul class="card-property-prices">
    <li class="card-property-price">
      <span class="card-property-price-label">Valor</span>
      <span class="card-property-price-value">R$ 200.000,00</span>
      <span class="card-property-price-data">05/02/2026</span>
    </li>
  </ul>
</div>
</body></html>
"""

ZUK_DETAIL = """
<html><head><title>Casa - Compra Direta - Portal Zuk</title></head>
<body>
  <p>Imóvel desocupado</p>
  <p>Metragem construída 65,00 m²</p>
  <p>Metragem terreno 120,00 m²</p>
</body></html>
"""


def _response(text: str = "", content: bytes = b"") -> MagicMock:
    response = MagicMock()
    response.text = text
    response.content = content
    response.raise_for_status.return_value = None
    return response


def _session(response=None, error=None) -> MagicMock:
    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = response
    return session


class TestBaseScraper:
    """Tests for the shared scrape() contract."""

    def test_unexpected_error_becomes_source_failure(self, app_config) -> None:
        class BrokenScraper(BaseScraper):
            source = Fonte.LEILAO_IMOVEL

            def fetch_listings(self, **kwargs):
                raise ValueError("layout changed")

            def parse_listing(self, raw_data, url):
                return []

        with pytest.raises(SourceFailure) as exc_info:
            BrokenScraper(config=app_config, session=MagicMock()).scrape()

        assert exc_info.value.source == "Leilão Imóvel"
        assert "layout changed" in exc_info.value.reason

    def test_get_returns_none_on_request_error(self, app_config) -> None:
        scraper = ZukScraper(config=app_config, session=_session(error=requests.ConnectionError("down")))
        assert scraper._get("https://example.com") is None

    def test_default_scrapers(self, app_config, monkeypatch) -> None:
        monkeypatch.setattr("leilao_tracker.sources.base.get_app_config", lambda: app_config)
        assert [s.source for s in default_scrapers()] == [Fonte.CAIXA, Fonte.ZUK]


class TestCaixaScraper:
    """Tests for CaixaScraper."""

    @pytest.fixture
    def scraper(self, app_config) -> CaixaScraper:
        return CaixaScraper(config=app_config, session=MagicMock())

    def test_parse_filters_target_cities(self, scraper) -> None:
        items = scraper.parse_listing(CAIXA_CSV, CaixaScraper.CSV_URL)
        assert [i["id"] for i in items] == ["caixa-1444419970935", "caixa-222", "caixa-444"]

    def test_parse_apartment(self, scraper) -> None:
        item = scraper.parse_listing(CAIXA_CSV, CaixaScraper.CSV_URL)[0]

        assert item["fonte"] == "Caixa Econômica"
        assert item["tipo"] == "Apartamento"
        assert item["bairro"] == "Batel"
        assert item["endereco"] == "RUA A, 123 APTO 4"
        assert item["lance"] == "300.000,00"
        assert item["area"] == "65.50m²"
        assert item["quartos"] == 2
        assert item["vagas"] == 1
        assert item["semVagas"] is None
        assert item["alertas"] == []
        assert item["modalidade"] == "Venda Online"

    def test_parse_outside_curitiba(self, scraper) -> None:
        item = scraper.parse_listing(CAIXA_CSV, CaixaScraper.CSV_URL)[1]

        assert item["bairro"] == "Centro (Pinhais)"
        assert item["tipo"] == "Casa"
        assert item["area"] == "120,00m²"
        assert item["vagas"] is None
        assert item["alertas"] == ["⚠️ Vagas não informadas"]

    @pytest.mark.parametrize("descricao,area", [
        ("Casa, 300,00 de área do terreno.", "terreno: 300,00m²"),
        ("Casa, 90,00 de área total, 300,00 de área do terreno.", "90,00m² (terreno: 300,00m²)"),
        ("Casa, 2 qto(s).", None),
    ])
    def test_parking_unknown_needs_built_area(self, scraper, descricao, area) -> None:
        fields = ["555", "PR", "CURITIBA", "CENTRO", "RUA E 9", "200.000,00", "250.000,00", "20,00",
                  descricao, "Venda Direta", "https://caixa.test/555"]

        item = scraper._parse_row(fields)

        assert item["area"] == area
        assert item["vagas"] is None
        assert item["alertas"] == []

    def test_parse_no_parking(self, scraper) -> None:
        item = scraper.parse_listing(CAIXA_CSV, CaixaScraper.CSV_URL)[2]

        assert item["semVagas"] is True
        assert item["alertas"] == ["⛔ SEM VAGAS de garagem"]

    def test_download_writes_cache(self, app_config) -> None:
        session = _session(_response(content=CAIXA_CSV.encode("latin-1")))
        scraper = CaixaScraper(config=app_config, session=session)

        items = scraper.scrape()

        assert len(items) == 3
        with open(scraper.cache_path, encoding="latin-1") as f:
            assert "1444419970935" in f.read()

    def test_bot_protection_uses_cache(self, app_config, tmp_path) -> None:
        session = _session(_response(content=b"<html>captcha</html>"))
        scraper = CaixaScraper(config=app_config, session=session)
        (tmp_path / "data").mkdir()
        with open(scraper.cache_path, "w", encoding="latin-1") as f:
            f.write(CAIXA_CSV)

        assert len(scraper.scrape()) == 3

    def test_no_download_no_cache(self, app_config) -> None:
        scraper = CaixaScraper(config=app_config, session=_session(error=requests.ConnectionError("down")))

        with pytest.raises(SourceFailure):
            scraper.scrape()


class TestZukScraper:
    """Tests for ZukScraper."""

    @pytest.fixture
    def scraper(self, app_config) -> ZukScraper:
        return ZukScraper(config=app_config, session=MagicMock())

    def test_parse_listing(self, scraper) -> None:
        items = scraper.parse_listing(ZUK_LISTING, "https://zuk.test")
        assert [i["id"] for i in items] == ["zuk-45678", "zuk-99"]

    def test_parse_two_rounds(self, scraper) -> None:
        item = scraper.parse_listing(ZUK_LISTING, "https://zuk.test")[0]

        assert item["fonte"] == "Portal Zuk"
        assert item["link"] == "https://www.portalzuk.com.br/imovel/pr/curitiba/batel/rua-a-123/123-45678"
        assert item["tipo"] == "Apartamento"
        assert item["bairro"] == "Batel"
        assert item["endereco"] == "Rua A, 123"
        assert item["area"] == "65m²"
        assert item["avaliacao"] == 500000.0
        assert item["lance"] == 300000.0
        assert item["desconto"] == 40
        assert item["encerramento"] == "25/01/2026"
        assert item["modalidade"] == "Leilão 2ª Praça"

    def test_parse_single_round_outside_curitiba(self, scraper) -> None:
        item = scraper.parse_listing(ZUK_LISTING, "https://zuk.test", city="São José dos Pinhais")[1]

        assert item["bairro"] == "Centro (São José dos Pinhais)"
        assert item["lance"] == 200000.0
        assert item["desconto"] is None
        assert item["encerramento"] == "05/02/2026"
        assert item["modalidade"] == "Leilão"

    def test_parse_detail(self, scraper) -> None:
        item = {"id": "zuk-99", "ocupacao": "desconhecido", "modalidade": "Leilão"}

        scraper.parse_detail(ZUK_DETAIL, item)

        assert item["ocupacao"] == "desocupado"
        assert item["area"] == "65,00m² (terreno: 120,00m²)"
        assert item["modalidade"] == "Compra Direta"

    def test_fetch_with_details(self, app_config) -> None:
        session = MagicMock()
        session.get.side_effect = [_response(text=ZUK_LISTING), _response(text=ZUK_DETAIL), _response(text="<html></html>")]
        scraper = ZukScraper(config=app_config, session=session)

        items = scraper.scrape(cities=["curitiba"])

        assert len(items) == 2
        assert items[0]["ocupacao"] == "desocupado"
        assert items[1]["ocupacao"] == "desconhecido"
        assert session.get.call_count == 3

    def test_all_pages_fail(self, app_config) -> None:
        scraper = ZukScraper(config=app_config, session=_session(error=requests.ConnectionError("down")))

        with pytest.raises(SourceFailure):
            scraper.scrape(cities=["curitiba", "pinhais"])
