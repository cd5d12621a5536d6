# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Sequence
from pathlib import Path

import pandas as pd
import pytest

from station_import.db.store import StoreConnectionError, StoreError
from station_import.logging.init import reset_logging
from station_import.models.candidate import CandidateRecord
from station_import.models.fields import CanonicalField


class FakeStationStore:
    """In-memory StationStore used by the tests.

    rows: station_no -> full column dict (blank fields stored as None, like the
    PostgreSQL store). Keys listed in `reject_keys` make any statement containing
    them fail as a whole (like a constraint violation). `connection_lost` makes
    every upsert raise StoreConnectionError.
    """

    def __init__(
        self,
        reject_keys: set[str] | None = None,
        fail_deactivate: bool = False,
        locked: bool = False,
        connection_lost: bool = False,
    ) -> None:
        self.rows: dict[str, dict[str, object]] = {}
        self.reject_keys = reject_keys or set()
        self.fail_deactivate = fail_deactivate
        self.locked = locked
        self.connection_lost = connection_lost
        self.calls: list[tuple[str, int]] = []

    def acquire_run_lock(self) -> bool:
        self.calls.append(("lock", 0))
        return not self.locked

    def deactivate_all(self) -> int:
        self.calls.append(("deactivate_all", len(self.rows)))
        if self.fail_deactivate:
            raise StoreError("permission denied for table stations")
        for row in self.rows.values():
            row["is_active"] = False
        return len(self.rows)

    def _write(self, record: CandidateRecord) -> None:
        if self.connection_lost:
            raise StoreConnectionError("SAVEPOINT failed: server closed the connection unexpectedly")
        self.rows[record.natural_key] = record.as_dict()

    def upsert_batch(self, records: Sequence[CandidateRecord], conflict_key: CanonicalField) -> int:
        self.calls.append(("upsert_batch", len(records)))
        bad = [r.natural_key for r in records if r.natural_key in self.reject_keys]
        if bad:
            raise StoreError(f'value too long for type character varying(10): "{bad[0]}"')
        for r in records:
            self._write(r)
        return len(records)

    def upsert_one(self, record: CandidateRecord, conflict_key: CanonicalField) -> None:
        self.calls.append(("upsert_one", 1))
        if record.natural_key in self.reject_keys:
            raise StoreError(f'value too long for type character varying(10): "{record.natural_key}"')
        self._write(record)

    def active_keys(self) -> set[str]:
        return {k for k, row in self.rows.items() if row.get("is_active")}

    def snapshot(self) -> dict[str, dict[str, object]]:
        # updated_at は実行ごとに変わるので比較対象から除外
        return {k: {c: v for c, v in row.items() if c != "updated_at"} for k, row in self.rows.items()}


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def fake_store() -> FakeStationStore:
    return FakeStationStore()


@pytest.fixture()
def store_factory():
    return FakeStationStore


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_file: ./data/stations.xlsx
batch_size: 100
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def station_sheet_rows() -> list[list[object]]:
    """Header + 3 data rows; the 2nd data row has an empty station number."""
    return [
        ["№ АЗС", "Адрес АЗС", "Регион", "Реализация в день 1", "Признак LukCafe", "Комментарий"],
        ["00123", "ул. Ленина, 1", "Москва", "1520,5", "Х", "новая"],
        ["", "ул. Мира, 5", "Тверь", "300", "", ""],
        ["0456", "трасса М10, 120 км", "Тверь", "н/д", "нет", ""],
    ]


@pytest.fixture()
def make_xlsx(temp_workdir: Path):
    def _make(rows: list[list[object]], name: str = "stations.xlsx", sheet: str = "Станции") -> Path:
        p = temp_workdir / "data" / name
        with pd.ExcelWriter(p) as writer:
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet, header=False, index=False)
        return p
    return _make
