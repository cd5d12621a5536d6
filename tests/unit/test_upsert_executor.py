from __future__ import annotations

from datetime import UTC, datetime

import pytest

from station_import.db.store import StoreConnectionError
from station_import.models.candidate import CandidateRecord
from station_import.models.fields import CanonicalField
from station_import.services.upsert_executor import BatchUpsertExecutor, iter_batches

NOW = datetime(2026, 1, 15, tzinfo=UTC)


def _records(n: int, start_row: int = 2) -> list[CandidateRecord]:
    return [
        CandidateRecord(
            row_number=start_row + i,
            values={CanonicalField.STATION_NO: f"{i:05d}", CanonicalField.LUK_CAFE: False},
            updated_at=NOW,
        )
        for i in range(n)
    ]


def test_iter_batches_sizes():
    sizes = [len(b) for b in iter_batches(_records(250), 100)]
    assert sizes == [100, 100, 50]


def test_all_batches_succeed(fake_store):
    outcome = BatchUpsertExecutor(fake_store, batch_size=100).execute(_records(250))
    assert outcome.written_count == 250
    assert outcome.errors == []
    assert outcome.degraded_batches == 0
    assert [c for c in fake_store.calls if c[0] == "upsert_batch"] == [
        ("upsert_batch", 100),
        ("upsert_batch", 100),
        ("upsert_batch", 50),
    ]


def test_one_bad_record_degrades_only_its_batch(store_factory):
    records = _records(100)
    bad = records[41]
    store = store_factory(reject_keys={bad.natural_key})

    outcome = BatchUpsertExecutor(store, batch_size=100).execute(records)

    assert outcome.written_count == 99
    assert outcome.degraded_batches == 1
    assert len(outcome.errors) == 1
    err = outcome.errors[0]
    assert err.row_number == bad.row_number == 43
    assert err.natural_key == bad.natural_key
    assert bad.natural_key in err.message
    assert err.message.startswith(f"Row 43 ({bad.natural_key}): ")
    assert err.error_type == "UPSERT_FAILED"
    assert bad.natural_key not in store.rows
    assert len(store.rows) == 99


def test_other_batches_unaffected(store_factory):
    records = _records(30)
    store = store_factory(reject_keys={records[12].natural_key})
    outcome = BatchUpsertExecutor(store, batch_size=10).execute(records)
    assert outcome.written_count == 29
    assert outcome.degraded_batches == 1
    kinds = [c[0] for c in store.calls]
    # batch 1 ok, batch 2 fails then 10 single upserts, batch 3 ok
    assert kinds == ["upsert_batch", "upsert_batch"] + ["upsert_one"] * 10 + ["upsert_batch"]


def test_empty_input(fake_store):
    outcome = BatchUpsertExecutor(fake_store).execute([])
    assert outcome.written_count == 0
    assert fake_store.calls == []


def test_invalid_batch_size(fake_store):
    with pytest.raises(ValueError):
        BatchUpsertExecutor(fake_store, batch_size=0)


def test_lost_connection_is_not_retried_row_by_row(store_factory):
    store = store_factory(connection_lost=True)
    with pytest.raises(StoreConnectionError):
        BatchUpsertExecutor(store, batch_size=10).execute(_records(25))
    assert [c[0] for c in store.calls] == ["upsert_batch"]
