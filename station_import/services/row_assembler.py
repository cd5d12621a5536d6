from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from ..mapping.column_map import resolve_column
from ..models.candidate import CandidateRecord, RowRejection
from ..models.fields import BOOLEAN_FIELDS, NATURAL_KEY, CanonicalField
from .coercion import coerce_value

"""Row assembler: one raw spreadsheet row → CandidateRecord or RowRejection.

Each row is assembled independently. A rejected row never stops the run; it only
adds an entry to the import report.
"""

__all__ = [
    "MISSING_KEY_MESSAGE",
    "assemble_row",
]

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = f"Missing or invalid {NATURAL_KEY.column}"


def assemble_row(
    row: Mapping[Any, Any],
    row_number: int,
    now: datetime | None = None,
) -> CandidateRecord | RowRejection:
    """Assemble one row.

    Args:
        row: header text -> raw cell value, in spreadsheet column order
        row_number: human-facing spreadsheet line number of this row
        now: timestamp for updated_at (one per run keeps a batch consistent)
    """
    values: dict[CanonicalField, Any] = {}
    for header, raw in row.items():
        target = resolve_column(header)
        if target is None:
            continue
        coerced = coerce_value(target, raw)
        if coerced is not None:
            values[target] = coerced

    # 明示的な既定値補完: フラグ列が一度も現れなければ False
    for flag in BOOLEAN_FIELDS:
        values.setdefault(flag, False)

    key = values.get(NATURAL_KEY)
    if not isinstance(key, str) or not key.strip():
        logger.debug(
            f"Row {row_number}: skipped (missing {NATURAL_KEY.column}), "
            f"mapped fields: {[f.column for f in values]}"
        )
        return RowRejection(
            row_number=row_number,
            message=f"Row {row_number}: {MISSING_KEY_MESSAGE}",
        )

    return CandidateRecord(
        row_number=row_number,
        values=values,
        updated_at=now or datetime.now(UTC),
    )
