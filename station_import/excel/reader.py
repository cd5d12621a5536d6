from __future__ import annotations

from pathlib import Path
from typing import Any

import pandas as pd

from ..models.candidate import NumberedRow

"""Spreadsheet reader.

Reads one sheet with every cell as text (dtype=str) so station numbers and phone
numbers keep their leading zeros; type conversion happens later in the field
coercer. Empty cells become "" (as a human sees them), fully empty rows are
dropped but the remaining rows keep their original spreadsheet line numbers.
"""

__all__ = [
    "ReaderError",
    "read_station_rows",
    "preview_rows",
]


class ReaderError(Exception):
    """Raised when the spreadsheet cannot be opened or the sheet is missing."""


def _read_frame(path: Path, sheet_name: str | None, header_row: int) -> pd.DataFrame:
    if not path.exists():
        raise ReaderError(f"file not found: {path}")
    if header_row < 1:
        raise ReaderError(f"header_row must be >= 1 (got {header_row})")
    try:
        xls = pd.ExcelFile(path)
    except (OSError, ValueError) as e:
        raise ReaderError(f"cannot open spreadsheet {path.name}: {e}") from e
    if not xls.sheet_names:
        raise ReaderError(f"spreadsheet {path.name} has no sheets")
    target = xls.sheet_names[0] if sheet_name is None else sheet_name
    if target not in xls.sheet_names:
        raise ReaderError(f"sheet '{target}' not found in {path.name} (sheets: {xls.sheet_names})")
    # 全セル文字列として読み込み (先頭ゼロ保持)、空セルは "" のまま
    return xls.parse(target, header=header_row - 1, dtype=str, keep_default_na=False)


def frame_to_rows(df: pd.DataFrame, header_row: int = 1) -> list[NumberedRow]:
    """Convert a header-applied DataFrame into (line number, row dict) pairs."""
    columns = [str(c) for c in df.columns]
    rows: list[NumberedRow] = []
    for position, values in enumerate(df.itertuples(index=False, name=None)):
        row: dict[str, Any] = {}
        for col, val in zip(columns, values, strict=False):
            row[col] = "" if val is None or (not isinstance(val, str) and pd.isna(val)) else val
        if all(isinstance(v, str) and not v.strip() for v in row.values()):
            continue
        rows.append((position + header_row + 1, row))
    return rows


def read_station_rows(
    path: Path, sheet_name: str | None = None, header_row: int = 1
) -> list[NumberedRow]:
    """Read the station sheet as ordered (spreadsheet line, row) pairs.

    Parameters
    ----------
    path: .xlsx ファイルパス
    sheet_name: 対象シート (None なら先頭シート)
    header_row: ヘッダ行の行番号 (1-based)
    """
    df = _read_frame(path, sheet_name, header_row)
    return frame_to_rows(df, header_row)


def preview_rows(path: Path, sheet_name: str | None = None, header_row: int = 1, limit: int = 5) -> pd.DataFrame:
    """First `limit` data rows, for eyeballing headers before a destructive import."""
    return _read_frame(path, sheet_name, header_row).head(limit)
