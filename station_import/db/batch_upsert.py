from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

from .store import StoreError

"""Batched INSERT ... ON CONFLICT DO UPDATE using psycopg2.extras.execute_values.

Identifiers are double-quoted here; the table name itself is validated by the
config schema before it reaches this module.
"""

__all__ = [
    "BatchUpsertError",
    "UpsertResult",
    "batch_upsert",
    "build_upsert_sql",
]


class BatchUpsertError(StoreError):
    pass


@dataclass(frozen=True)
class UpsertResult:
    upserted_rows: int


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def build_upsert_sql(table: str, columns: Sequence[str], conflict_key: str) -> str:
    """INSERT ... VALUES %s ON CONFLICT (key) DO UPDATE SET <other cols> = EXCLUDED.<col>."""
    if conflict_key not in columns:
        raise BatchUpsertError(f"conflict key '{conflict_key}' not in insert columns")
    cols_sql = ",".join(_quote(c) for c in columns)
    updates = [f"{_quote(c)} = EXCLUDED.{_quote(c)}" for c in columns if c != conflict_key]
    base_sql = f"INSERT INTO {_quote(table)} ({cols_sql}) VALUES %s ON CONFLICT ({_quote(conflict_key)})"
    if updates:
        return base_sql + " DO UPDATE SET " + ", ".join(updates)
    return base_sql + " DO NOTHING"


def batch_upsert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    conflict_key: str,
    page_size: int = 1000,
) -> UpsertResult:
    """Perform a batched upsert.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: 対象テーブル名 (サニタイズ済み想定)
    columns: 挿入列 (conflict_key を含むこと)
    rows: 行シーケンス (columns と同じ順序)
    conflict_key: ON CONFLICT 対象列 (自然キー)
    page_size: execute_values の page_size (性能調整)
    """
    rows_list = list(rows)
    if not rows_list:
        return UpsertResult(upserted_rows=0)

    sql = build_upsert_sql(table, columns, conflict_key)

    try:
        execute_values(cursor, sql, rows_list, page_size=page_size)
    except Exception as e:
        raise BatchUpsertError(str(e).strip()) from e

    return UpsertResult(upserted_rows=len(rows_list))
