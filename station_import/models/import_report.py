from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .error_record import ERROR_FATAL

"""Import run state and report models.

RunState follows one ingestion run:
    IDLE → READING → VALIDATING → DEACTIVATING → UPSERTING → (DONE | FAILED)

ImportReport is what the caller (UI / CLI) receives at the end of a run. It always
separates the written count from the list of row / record failures, so an operator
can fix exactly those spreadsheet lines and re-run.
"""

__all__ = [
    "RunState",
    "ReportError",
    "ImportReport",
    "FILE_LEVEL_ROW",
]

# 行番号が特定できない (ファイル単位の致命的エラー) 場合のセンチネル
FILE_LEVEL_ROW = -1


class RunState(Enum):
    IDLE = "idle"
    READING = "reading"
    VALIDATING = "validating"
    DEACTIVATING = "deactivating"
    UPSERTING = "upserting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ReportError:
    row_number: int  # 1-based spreadsheet line, or -1 for run-level errors
    message: str
    natural_key: str | None = None
    error_type: str | None = None  # ErrorRecord.error_type 用分類


@dataclass
class ImportReport:
    """Aggregated outcome of one import run.

    Mutable while the run is in progress (the driver appends to it), handed to the
    caller once the run reaches DONE or FAILED.
    """
    state: RunState = RunState.IDLE
    total_rows: int = 0  # rows yielded by the reader
    valid_rows: int = 0  # rows that became CandidateRecords
    rejected_rows: int = 0  # rows rejected by the assembler
    deactivated: int = 0  # rows touched by deactivate-all (store dependent)
    written_count: int = 0
    degraded_batches: int = 0  # batches retried row by row
    errors: list[ReportError] = field(default_factory=list)
    fatal_error: str | None = None
    dry_run: bool = False
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def success(self) -> bool:
        """True only for a finished run without any row / record errors."""
        return self.state is RunState.DONE and not self.errors

    @property
    def completed_with_errors(self) -> bool:
        return self.state is RunState.DONE and bool(self.errors)

    @property
    def failed(self) -> bool:
        return self.state is RunState.FAILED

    @property
    def elapsed_seconds(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def add_error(
        self,
        row_number: int,
        message: str,
        natural_key: str | None = None,
        error_type: str | None = None,
    ) -> None:
        self.errors.append(ReportError(row_number, message, natural_key, error_type))

    def mark_failed(self, message: str) -> None:
        """Turn the report into a fatal one: nothing was written, one run-level error."""
        self.state = RunState.FAILED
        self.fatal_error = message
        self.written_count = 0
        self.errors = [ReportError(FILE_LEVEL_ROW, message, error_type=ERROR_FATAL)]

    def to_dict(self) -> dict[str, Any]:
        """Consumer contract: {writtenCount, errors: [{rowNumber, message}]} + run status."""
        return {
            "success": self.success,
            "state": self.state.value,
            "writtenCount": self.written_count,
            "errors": [{"rowNumber": e.row_number, "message": e.message} for e in self.errors],
        }
