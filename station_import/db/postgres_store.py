from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

import psycopg2

from ..models.candidate import STORE_COLUMNS, CandidateRecord
from ..models.fields import CanonicalField
from .batch_upsert import batch_upsert
from .store import StoreConnectionError, StoreError

"""PostgreSQL implementation of the station store.

The whole run is expected to happen inside ONE transaction opened by the caller
(autocommit=False, see cli._db_connection). deactivate_all and the upserts are
therefore committed together, and a crash between them leaves the table untouched.

Every upsert statement runs inside its own SAVEPOINT: a failed statement would
otherwise abort the surrounding transaction and make the per-row fallback
impossible. If the savepoint commands themselves fail, the session is gone and
StoreConnectionError is raised instead of a plain StoreError.

Each statement writes every station column (STORE_COLUMNS). Blank cells are
written as NULL so the table mirrors the imported sheet.
"""

__all__ = [
    "RUN_LOCK_KEY",
    "PostgresStationStore",
    "merge_duplicate_keys",
]

logger = logging.getLogger(__name__)

# pg_try_advisory_xact_lock 用の固定キー (任意の bigint)
RUN_LOCK_KEY = 0x57A7_1011


def merge_duplicate_keys(
    records: Sequence[CandidateRecord], conflict_key: CanonicalField
) -> list[CandidateRecord]:
    """Keep only the last record per key, at the position of that last record.

    PostgreSQL refuses ON CONFLICT DO UPDATE touching the same row twice in one
    statement. Upserting full rows one after another would leave the last row's
    values, so the last record alone gives the same end state.
    """
    merged: dict[Any, CandidateRecord] = {}
    for rec in records:
        key = rec.values.get(conflict_key)
        if merged.pop(key, None) is not None:
            logger.debug(f"duplicate {conflict_key.column}={key}: row {rec.row_number} replaces earlier row")
        merged[key] = rec
    return list(merged.values())


class PostgresStationStore:
    """StationStore backed by a psycopg2 cursor."""

    def __init__(self, cursor: Any, table: str = "stations", page_size: int = 1000) -> None:
        self.cursor = cursor
        self.table = table
        self.page_size = page_size
        self._savepoint_seq = 0

    def _session_command(self, sql: str) -> None:
        try:
            self.cursor.execute(sql)
        except psycopg2.Error as e:
            raise StoreConnectionError(f"{sql} failed: {str(e).strip()}") from e

    @contextmanager
    def _savepoint(self) -> Iterator[None]:
        self._savepoint_seq += 1
        name = f"station_upsert_{self._savepoint_seq}"
        self._session_command(f"SAVEPOINT {name}")
        try:
            yield
        except (psycopg2.Error, StoreError) as e:
            self._session_command(f"ROLLBACK TO SAVEPOINT {name}")
            if isinstance(e, StoreError):
                raise
            raise StoreError(str(e).strip()) from e
        self._session_command(f"RELEASE SAVEPOINT {name}")

    def acquire_run_lock(self) -> bool:
        try:
            self.cursor.execute("SELECT pg_try_advisory_xact_lock(%s)", (RUN_LOCK_KEY,))
            row = self.cursor.fetchone()
        except psycopg2.Error as e:
            raise StoreError(f"failed to acquire run lock: {e}") from e
        return bool(row and row[0])

    def deactivate_all(self) -> int:
        # 取り込み対象に関係なく全件を無効化する (WHERE 句なし)
        try:
            self.cursor.execute(
                f'UPDATE "{self.table}" SET "is_active" = false, "updated_at" = %s',
                (datetime.now(UTC),),
            )
        except psycopg2.Error as e:
            raise StoreError(str(e).strip()) from e
        return max(self.cursor.rowcount, 0)

    def _upsert(self, records: Sequence[CandidateRecord], conflict_key: CanonicalField) -> int:
        result = batch_upsert(
            self.cursor,
            self.table,
            STORE_COLUMNS,
            (r.to_store_row() for r in records),
            conflict_key=conflict_key.column,
            page_size=self.page_size,
        )
        return result.upserted_rows

    def upsert_batch(self, records: Sequence[CandidateRecord], conflict_key: CanonicalField) -> int:
        merged = merge_duplicate_keys(records, conflict_key)
        with self._savepoint():
            self._upsert(merged, conflict_key)
        # 重複キーの行も「書き込み済み」として数える
        return len(records)

    def upsert_one(self, record: CandidateRecord, conflict_key: CanonicalField) -> None:
        with self._savepoint():
            self._upsert([record], conflict_key)
