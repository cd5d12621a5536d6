from __future__ import annotations

import pytest

from station_import.db.batch_upsert import BatchUpsertError, UpsertResult, batch_upsert, build_upsert_sql
from station_import.db.store import StoreError


class DummyCursor:
    def __init__(self) -> None:
        self.queries: list[str] = []
        self.rows: list[list] = []

# execute_values を差し替えて psycopg2 の実接続なしでロジックを検証

@pytest.fixture(autouse=True)
def patch_execute_values(monkeypatch):
    import station_import.db.batch_upsert as bu

    def fake_execute_values(cursor, sql, rows, page_size=1000, template=None):
        cursor.queries.append(sql)
        cursor.rows.append(list(rows))

    monkeypatch.setattr(bu, "execute_values", fake_execute_values)
    return fake_execute_values


def test_build_upsert_sql():
    sql = build_upsert_sql("stations", ["station_no", "region", "is_active"], "station_no")
    assert sql == (
        'INSERT INTO "stations" ("station_no","region","is_active") VALUES %s '
        'ON CONFLICT ("station_no") DO UPDATE SET "region" = EXCLUDED."region", '
        '"is_active" = EXCLUDED."is_active"'
    )


def test_build_upsert_sql_key_only():
    sql = build_upsert_sql("stations", ["station_no"], "station_no")
    assert sql.endswith("ON CONFLICT (\"station_no\") DO NOTHING")


def test_build_upsert_sql_requires_conflict_key():
    with pytest.raises(BatchUpsertError):
        build_upsert_sql("stations", ["region"], "station_no")


def test_batch_upsert_basic():
    cur = DummyCursor()
    res = batch_upsert(cur, "stations", ["station_no", "region"], [("001", "A"), ("002", "B")], "station_no")
    assert isinstance(res, UpsertResult)
    assert res.upserted_rows == 2
    assert "ON CONFLICT" in cur.queries[0]
    assert cur.rows[0] == [("001", "A"), ("002", "B")]


def test_batch_upsert_empty_rows():
    cur = DummyCursor()
    res = batch_upsert(cur, "stations", ["station_no"], [], "station_no")
    assert res.upserted_rows == 0
    assert cur.queries == []


def test_batch_upsert_wraps_driver_errors(monkeypatch):
    import station_import.db.batch_upsert as bu

    def failing(cursor, sql, rows, page_size=1000):
        raise RuntimeError("duplicate key value violates unique constraint")

    monkeypatch.setattr(bu, "execute_values", failing)
    with pytest.raises(StoreError, match="duplicate key"):
        batch_upsert(DummyCursor(), "stations", ["station_no"], [("1",)], "station_no")
