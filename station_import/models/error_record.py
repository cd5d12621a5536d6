from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

Supports row=-1 as a sentinel for run-level (fatal) errors where no spreadsheet
line can be named.
"""

__all__ = [
    "ErrorRecord",
    "ERROR_MISSING_NATURAL_KEY",
    "ERROR_UPSERT_FAILED",
    "ERROR_FATAL",
]

ERROR_MISSING_NATURAL_KEY = "MISSING_NATURAL_KEY"
ERROR_UPSERT_FAILED = "UPSERT_FAILED"
ERROR_FATAL = "FATAL"


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: spreadsheet filename being imported
        sheet: sheet name within the file
        row: spreadsheet line number (1-based). -1 for run-level errors
        error_type: error classification in UPPER_SNAKE_CASE format
        message: store error message or rejection reason
    """
    timestamp: str  # ISO8601 UTC
    file: str
    sheet: str
    row: int
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(file: str, sheet: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            sheet=sheet,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
