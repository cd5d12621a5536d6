from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from ..db.store import StationStore, StoreError
from ..mapping.column_map import unmapped_headers
from ..models.candidate import CandidateRecord, NumberedRow, RowRejection
from ..models.config_models import DEFAULT_BATCH_SIZE
from ..models.error_record import ERROR_MISSING_NATURAL_KEY
from ..models.import_report import ImportReport, RunState
from .row_assembler import assemble_row
from .upsert_executor import BatchUpsertExecutor

"""Reconciliation driver: replace the station snapshot with a spreadsheet.

One run:
    IDLE → READING → VALIDATING → DEACTIVATING → UPSERTING → DONE
                                 (any fatal error)           → FAILED

Deactivate-all then upsert gives "replace snapshot" semantics without a diff:
stations missing from the new sheet stay deactivated (soft-deleted), stations that
reappear are reactivated and overwritten by the upsert.

Fatal errors (empty input, no valid rows, lock / deactivate failure) stop the run
before any further store write. Row-level errors only add to the report.
"""

__all__ = [
    "ImportAbortedError",
    "NumberedRow",
    "ReconciliationDriver",
    "number_rows",
    "run_import",
]

logger = logging.getLogger(__name__)

RowSource = Callable[[], Sequence[NumberedRow]]

EMPTY_INPUT_MESSAGE = "Excel file is empty"
NO_VALID_ROWS_MESSAGE = "No valid stations found in Excel file"
RUN_LOCKED_MESSAGE = "another import run is in progress"


class ImportAbortedError(Exception):
    """Fatal, run-aborting error. Carries the single top-level message."""


def number_rows(rows: Sequence[Mapping[Any, Any]], header_row: int = 1) -> list[NumberedRow]:
    """Pair rows with the spreadsheet line a human sees (header on `header_row`)."""
    return [(index + header_row + 1, row) for index, row in enumerate(rows)]


class ReconciliationDriver:
    """Explicit state machine over one import run. Each transition is logged."""

    def __init__(
        self,
        store: StationStore | None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        dry_run: bool = False,
    ) -> None:
        if store is None and not dry_run:
            raise ValueError("store is required unless dry_run=True")
        self.store = store
        self.batch_size = batch_size
        self.dry_run = dry_run
        self.state = RunState.IDLE
        self.candidates: list[CandidateRecord] = []

    def _transition(self, new_state: RunState) -> None:
        logger.info(f"import state {self.state.value} -> {new_state.value}")
        self.state = new_state

    def run(self, read_rows: RowSource) -> ImportReport:
        if self.state is not RunState.IDLE:
            raise RuntimeError(f"driver already used (state={self.state.value})")

        report = ImportReport(dry_run=self.dry_run, started_at=datetime.now(UTC))
        try:
            self._run(read_rows, report)
        except ImportAbortedError as e:
            logger.error(f"import aborted in state {self.state.value}: {e}")
            self._transition(RunState.FAILED)
            report.mark_failed(str(e))
        report.state = self.state
        report.finished_at = datetime.now(UTC)
        return report

    def _run(self, read_rows: RowSource, report: ImportReport) -> None:
        # 1. Reading
        self._transition(RunState.READING)
        try:
            rows = list(read_rows())
        except ImportAbortedError:
            raise
        except Exception as e:
            raise ImportAbortedError(f"Failed to read spreadsheet: {e}") from e
        if not rows:
            raise ImportAbortedError(EMPTY_INPUT_MESSAGE)
        report.total_rows = len(rows)
        logger.info(f"read {len(rows)} rows")

        # 2. Validating
        self._transition(RunState.VALIDATING)
        ignored = unmapped_headers(rows[0][1].keys())
        if ignored:
            logger.info(f"unmapped headers (ignored): {ignored}")
        now = datetime.now(UTC)
        for row_number, row in rows:
            result = assemble_row(row, row_number, now=now)
            if isinstance(result, RowRejection):
                report.add_error(result.row_number, result.message, error_type=ERROR_MISSING_NATURAL_KEY)
                continue
            self.candidates.append(result)
        report.valid_rows = len(self.candidates)
        report.rejected_rows = len(rows) - len(self.candidates)
        if not self.candidates:
            raise ImportAbortedError(NO_VALID_ROWS_MESSAGE)
        logger.info(f"validated rows: valid={report.valid_rows} rejected={report.rejected_rows}")

        store = self.store
        if self.dry_run or store is None:
            logger.info("dry run: skipping deactivate / upsert")
            self._transition(RunState.DONE)
            return

        try:
            locked = store.acquire_run_lock()
        except StoreError as e:
            raise ImportAbortedError(f"Failed to acquire import lock: {e}") from e
        if not locked:
            raise ImportAbortedError(RUN_LOCKED_MESSAGE)

        # 3. Deactivating (失敗時は呼び出し側がトランザクションごと戻す)
        self._transition(RunState.DEACTIVATING)
        try:
            report.deactivated = store.deactivate_all()
        except StoreError as e:
            raise ImportAbortedError(f"Failed to deactivate stations: {e}") from e
        logger.info(f"deactivated {report.deactivated} existing stations")

        # 4. Upserting
        self._transition(RunState.UPSERTING)
        executor = BatchUpsertExecutor(store, batch_size=self.batch_size)
        try:
            outcome = executor.execute(self.candidates)
        except Exception as e:
            # 接続断など行単位で扱えない失敗は致命的エラー (呼び出し側でロールバック)
            raise ImportAbortedError(f"Failed to upsert stations: {e}") from e
        report.written_count = outcome.written_count
        report.degraded_batches = outcome.degraded_batches
        report.errors.extend(outcome.errors)

        self._transition(RunState.DONE)
        if report.errors:
            logger.warning(
                f"import completed with errors: written={report.written_count} "
                f"errors={len(report.errors)} degraded_batches={report.degraded_batches}"
            )
        else:
            logger.info(f"import completed: written={report.written_count}")


def run_import(
    read_rows: RowSource,
    store: StationStore | None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    dry_run: bool = False,
) -> ImportReport:
    """Run one import with a fresh driver."""
    return ReconciliationDriver(store, batch_size=batch_size, dry_run=dry_run).run(read_rows)
