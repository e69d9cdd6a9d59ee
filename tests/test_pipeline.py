"""Tests for pipeline orchestration (fake sources, temporary data dir)."""

import json
import os
from datetime import date
from unittest.mock import MagicMock

import pytest

from leilao_tracker.exceptions import BatchFailure, SnapshotExistsError, SourceFailure
from leilao_tracker.market import default_price_table
from leilao_tracker.models import Fonte
from leilao_tracker.pipeline import (
    collect_sources,
    filter_opportunities,
    normalize_sources,
    process_records,
    run_full_pipeline,
)
from leilao_tracker.sources import BaseScraper

DAY = date(2026, 1, 10)

CAIXA_RAW = {
    "id": "caixa-1",
    "fonte": Fonte.CAIXA.value,
    "tipo": "Apartamento",
    "bairro": "Batel",
    "endereco": "Rua A 123",
    "lance": "300.000,00",
    "avaliacao": "500.000,00",
    "desconto": "40,00",
    "area": "50m²",
    "alertas": ["⛔ SEM VAGAS de garagem"],
    "semVagas": True,
}

ZUK_RAW = {
    "id": "zuk-1",
    "fonte": Fonte.ZUK.value,
    "tipo": "Apartamento",
    "bairro": "Batel",
    "endereco": "R. A, 123",
    "lance": 300500.0,
    "encerramento": "25/01/2026",
    "ocupacao": "desocupado",
}

ZUK_EXPENSIVE = {
    "id": "zuk-2",
    "fonte": Fonte.ZUK.value,
    "bairro": "Cabral",
    "endereco": "Rua B 7",
    "lance": 950000.0,
    "desconto": 50,
}


class FakeScraper(BaseScraper):
    """Scraper returning canned records, or failing."""

    def __init__(self, fonte: Fonte, items=None, error=None, config=None):
        super().__init__(config=config, session=MagicMock())
        self.source = fonte
        self.items = items or []
        self.error = error

    def fetch_listings(self, **kwargs):
        if self.error is not None:
            raise self.error
        return [dict(item) for item in self.items]

    def parse_listing(self, raw_data, url):
        return []


@pytest.fixture
def notifier() -> MagicMock:
    notifier = MagicMock()
    notifier.send_summary.return_value = True
    return notifier


class TestCollectSources:
    """Tests for collect_sources."""

    def test_failed_source_is_dropped(self, app_config) -> None:
        scrapers = [
            FakeScraper(Fonte.CAIXA, [CAIXA_RAW], config=app_config),
            FakeScraper(Fonte.LEILAO_IMOVEL, error=SourceFailure("Leilão Imóvel", "timeout"), config=app_config),
            FakeScraper(Fonte.ZUK, [ZUK_RAW], config=app_config),
        ]

        result = collect_sources(scrapers)

        assert [[item["id"] for item in items] for items in result] == [["caixa-1"], ["zuk-1"]]

    def test_unexpected_error_is_dropped(self, app_config) -> None:
        scrapers = [
            FakeScraper(Fonte.CAIXA, error=RuntimeError("boom"), config=app_config),
            FakeScraper(Fonte.ZUK, [ZUK_RAW], config=app_config),
        ]

        assert len(collect_sources(scrapers)) == 1

    def test_empty_source_counts_as_success(self, app_config) -> None:
        assert collect_sources([FakeScraper(Fonte.ZUK, [], config=app_config)]) == [[]]

    def test_all_failed(self, app_config) -> None:
        scrapers = [
            FakeScraper(Fonte.CAIXA, error=ValueError("x"), config=app_config),
            FakeScraper(Fonte.ZUK, error=SourceFailure("Portal Zuk", "down"), config=app_config),
        ]

        with pytest.raises(BatchFailure):
            collect_sources(scrapers)


class TestProcessRecords:
    """Tests for the I/O-free core pass."""

    def test_merge_enrich_and_score(self, now) -> None:
        sources = normalize_sources([[CAIXA_RAW], [ZUK_RAW]])

        ranked = process_records(sources, [], {}, default_price_table(), now=now)

        assert len(ranked) == 1
        record = ranked[0]
        assert record.id == "zuk-1"
        assert record.ids_origem == ["caixa-1", "zuk-1"]
        assert record.novo is True
        # Area and parking flag come from the Caixa listing
        assert record.area == "50m²"
        assert record.sem_vagas is True
        assert record.preco_m2 == 6010
        assert "Vagas:0/15⛔" in record.score_breakdown
        assert "⛔ SEM VAGAS de garagem" in record.alertas

    def test_overrides_applied(self, now) -> None:
        sources = normalize_sources([[ZUK_RAW]])

        ranked = process_records(sources, [], {"zuk-1": {"alertas": ["IPTU em aberto"]}}, default_price_table(), now=now)

        assert ranked[0].alertas == ["IPTU em aberto"]

    def test_ranked_best_first(self, now) -> None:
        sources = normalize_sources([[CAIXA_RAW], [ZUK_EXPENSIVE]])

        ranked = process_records(sources, [], {}, default_price_table(), now=now)

        assert [r.score for r in ranked] == sorted((r.score for r in ranked), reverse=True)


class TestFilterOpportunities:
    """Tests for filter_opportunities."""

    def test_filters(self, make_property) -> None:
        records = [
            make_property("a", desconto=50, lance=300000),
            make_property("b", desconto=30, lance=300000),
            make_property("c", desconto=None, lance=300000),
            make_property("d", desconto=60, lance=900000),
        ]

        kept = filter_opportunities(records, min_discount=40, max_price=800000)

        assert [r.id for r in kept] == ["a", "c"]


class TestRunFullPipeline:
    """Tests for run_full_pipeline."""

    def test_writes_snapshot(self, app_config, notifier) -> None:
        scrapers = [
            FakeScraper(Fonte.CAIXA, [CAIXA_RAW], config=app_config),
            FakeScraper(Fonte.ZUK, [ZUK_RAW, ZUK_EXPENSIVE], config=app_config),
        ]

        summary = run_full_pipeline(
            scrapers=scrapers, table=default_price_table(), config=app_config, day=DAY, notifier=notifier,
        )

        assert summary["sources"] == 2
        assert summary["scraped"] == 3
        assert summary["properties"] == 2
        assert summary["new"] == 2
        assert summary["opportunities"] == 1
        assert summary["notified"] is True
        with open(summary["snapshot"], encoding="utf-8") as f:
            assert len(json.load(f)) == 2

        sent = notifier.send_summary.call_args[0][0]
        assert [r.id for r in sent] == ["zuk-1"]

    def test_all_sources_failed_writes_nothing(self, app_config, notifier) -> None:
        scrapers = [FakeScraper(Fonte.CAIXA, error=SourceFailure("Caixa Econômica", "blocked"), config=app_config)]

        with pytest.raises(BatchFailure):
            run_full_pipeline(scrapers=scrapers, table=default_price_table(), config=app_config, day=DAY, notifier=notifier)

        assert not os.path.exists(app_config.data_dir) or os.listdir(app_config.data_dir) == []
        notifier.send_summary.assert_not_called()

    def test_uses_yesterday_snapshot(self, app_config, notifier) -> None:
        def scrapers():
            return [FakeScraper(Fonte.ZUK, [ZUK_RAW], config=app_config)]

        run_full_pipeline(scrapers=scrapers(), table=default_price_table(), config=app_config,
                          day=date(2026, 1, 9), notify=False)
        summary = run_full_pipeline(scrapers=scrapers(), table=default_price_table(), config=app_config,
                                    day=DAY, notify=False)

        assert summary["new"] == 0

    def test_same_day_twice(self, app_config) -> None:
        def scrapers():
            return [FakeScraper(Fonte.ZUK, [ZUK_RAW], config=app_config)]

        run_full_pipeline(scrapers=scrapers(), table=default_price_table(), config=app_config, day=DAY, notify=False)

        with pytest.raises(SnapshotExistsError):
            run_full_pipeline(scrapers=scrapers(), table=default_price_table(), config=app_config, day=DAY, notify=False)

        summary = run_full_pipeline(scrapers=scrapers(), table=default_price_table(), config=app_config,
                                    day=DAY, notify=False, overwrite=True)
        assert summary["snapshot"].endswith("2026-01-10.json")

    def test_existing_snapshot_checked_before_scraping(self, app_config) -> None:
        run_full_pipeline(scrapers=[FakeScraper(Fonte.ZUK, [ZUK_RAW], config=app_config)],
                          table=default_price_table(), config=app_config, day=DAY, notify=False)
        scraper = MagicMock()

        with pytest.raises(SnapshotExistsError):
            run_full_pipeline(scrapers=[scraper], table=default_price_table(), config=app_config,
                              day=DAY, notify=False)

        scraper.scrape.assert_not_called()

    def test_skipped_records_counted(self, app_config) -> None:
        bad = {"id": "zuk-bad", "fonte": Fonte.ZUK.value, "lance": "sob consulta"}
        scrapers = [FakeScraper(Fonte.ZUK, [ZUK_RAW, bad], config=app_config)]

        summary = run_full_pipeline(scrapers=scrapers, table=default_price_table(), config=app_config,
                                    day=DAY, notify=False)

        assert summary["skipped"] == 1
        assert summary["properties"] == 1
