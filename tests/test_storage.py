"""Tests for dated JSON snapshots."""

import json
import os
from datetime import date

import pytest

from leilao_tracker.exceptions import SnapshotExistsError
from leilao_tracker.models import Ocupacao
from leilao_tracker.novelty import mark_new_properties
from leilao_tracker.storage import SnapshotStore

DAY = date(2026, 1, 10)


@pytest.fixture
def store(tmp_path) -> SnapshotStore:
    return SnapshotStore(str(tmp_path / "data"))


class TestSnapshotStore:
    """Tests for SnapshotStore."""

    def test_path_for(self, store) -> None:
        assert store.path_for(DAY).endswith(os.path.join("data", "2026-01-10.json"))

    def test_save_and_load(self, store, make_property) -> None:
        record = make_property(
            encerramento=date(2026, 1, 20),
            ocupacao=Ocupacao.DESOCUPADO,
            sem_vagas=True,
            alertas=["⛔ SEM VAGAS de garagem"],
            score=61,
        )

        path = store.save([record], DAY)
        loaded = store.load(DAY)

        assert path == store.path_for(DAY)
        assert len(loaded) == 1
        assert loaded[0].id == record.id
        assert loaded[0].encerramento == date(2026, 1, 20)
        assert loaded[0].ocupacao == Ocupacao.DESOCUPADO
        assert loaded[0].sem_vagas is True
        assert loaded[0].alertas == ["⛔ SEM VAGAS de garagem"]
        assert loaded[0].score == 61

    def test_wire_format(self, store, make_property) -> None:
        store.save([make_property(sem_vagas=True)], DAY)

        with open(store.path_for(DAY), encoding="utf-8") as f:
            raw = f.read()
        data = json.loads(raw)

        assert isinstance(data, list)
        assert data[0]["semVagas"] is True
        assert "idsOrigem" in data[0]
        assert "sem_vagas" not in data[0]
        assert "Caixa Econômica" in raw

    def test_refuses_to_overwrite(self, store, make_property) -> None:
        store.save([make_property()], DAY)

        with pytest.raises(SnapshotExistsError):
            store.save([make_property("caixa-2")], DAY)

        assert [r.id for r in store.load(DAY)] == ["caixa-1"]

    def test_overwrite(self, store, make_property) -> None:
        store.save([make_property()], DAY)
        store.save([make_property("caixa-2")], DAY, overwrite=True)

        assert [r.id for r in store.load(DAY)] == ["caixa-2"]

    def test_no_temp_files_left(self, store, make_property) -> None:
        store.save([make_property()], DAY)

        assert os.listdir(store.data_dir) == ["2026-01-10.json"]

    def test_missing_snapshot(self, store) -> None:
        assert store.load(DAY) == []
        assert store.exists(DAY) is False

    def test_corrupt_snapshot(self, store) -> None:
        os.makedirs(store.data_dir)
        with open(store.path_for(DAY), "w", encoding="utf-8") as f:
            f.write("[{broken")

        assert store.load(DAY) == []

    def test_non_list_snapshot(self, store) -> None:
        os.makedirs(store.data_dir)
        with open(store.path_for(DAY), "w", encoding="utf-8") as f:
            json.dump({"id": "caixa-1"}, f)

        assert store.load(DAY) == []

    def test_bad_entries_skipped(self, store) -> None:
        os.makedirs(store.data_dir)
        with open(store.path_for(DAY), "w", encoding="utf-8") as f:
            json.dump([
                {"id": "caixa-1", "fonte": "Caixa Econômica", "lance": 1000},
                {"fonte": "Portal Zuk", "lance": 1000},
                {"id": "zuk-1", "lance": 0},
                {"id": "caixa-2", "lance": 100000, "alertas": 5},
                {"id": "caixa-3", "lance": 100000, "idsOrigem": {"a": 1}},
                "garbage",
            ], f)

        assert [r.id for r in store.load(DAY)] == ["caixa-1"]

    def test_list_fields_cleaned(self, store) -> None:
        os.makedirs(store.data_dir)
        with open(store.path_for(DAY), "w", encoding="utf-8") as f:
            json.dump([
                {"id": "caixa-1", "lance": 1000, "alertas": "Ocupado", "idsOrigem": [["x"], "caixa-1", 7, None]},
            ], f)

        loaded = store.load(DAY)

        assert loaded[0].alertas == ["Ocupado"]
        assert loaded[0].ids_origem == ["caixa-1", "7"]

    def test_cleaned_snapshot_usable_as_baseline(self, store, make_property) -> None:
        os.makedirs(store.data_dir)
        with open(store.path_for(date(2026, 1, 9)), "w", encoding="utf-8") as f:
            json.dump([{"id": "zuk-9", "lance": 1000, "idsOrigem": [["x"], "caixa-1"]}], f)

        today = [make_property("caixa-1", bairro="Centro")]
        mark_new_properties(today, store.load_previous(DAY))

        assert today[0].novo is False

    def test_load_previous(self, store, make_property) -> None:
        store.save([make_property()], date(2026, 1, 9))

        assert [r.id for r in store.load_previous(DAY)] == ["caixa-1"]
