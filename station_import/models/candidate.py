from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any

from .fields import NATURAL_KEY, CanonicalField

"""CandidateRecord / RowRejection models.

A CandidateRecord is the result of assembling one spreadsheet row: the coerced
station values plus the two system-managed columns (is_active, updated_at).
Records are created once by the row assembler and never mutated afterwards.

Store rows always cover every CanonicalField: a field the sheet left blank is
written as NULL, so re-importing a sheet with a cleared cell clears the stored
value too.
"""

__all__ = [
    "CandidateRecord",
    "NumberedRow",
    "RowRejection",
    "STORE_COLUMNS",
    "SYSTEM_COLUMNS",
]

SYSTEM_COLUMNS = ("is_active", "updated_at")

# 書き込み列は常に全 CanonicalField + システム列 (固定順)
STORE_COLUMNS = tuple(f.column for f in CanonicalField) + SYSTEM_COLUMNS

# (spreadsheet line number, header -> raw cell value)
NumberedRow = tuple[int, Mapping[Any, Any]]


@dataclass(frozen=True)
class CandidateRecord:
    """One validated station row ready for upsert.

    row_number は人間が Excel 上で見る行番号 (ヘッダ行オフセット込み)。
    """
    row_number: int
    values: Mapping[CanonicalField, Any]
    updated_at: datetime
    is_active: bool = True

    def __post_init__(self) -> None:
        # 呼び出し元の dict を後から書き換えられないよう読み取り専用化
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    @property
    def natural_key(self) -> str:
        return self.values[NATURAL_KEY]

    @property
    def fields(self) -> tuple[CanonicalField, ...]:
        """Fields present on this record, in canonical column order."""
        return tuple(f for f in CanonicalField if f in self.values)

    def to_store_row(self) -> tuple[Any, ...]:
        """Positional row matching STORE_COLUMNS (absent fields -> None)."""
        return tuple(self.values.get(f) for f in CanonicalField) + (self.is_active, self.updated_at)

    def as_dict(self) -> dict[str, Any]:
        return dict(zip(STORE_COLUMNS, self.to_store_row(), strict=True))


@dataclass(frozen=True)
class RowRejection:
    """A spreadsheet row that could not become a CandidateRecord."""
    row_number: int
    message: str
