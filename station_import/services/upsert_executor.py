from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from ..db.store import StationStore, StoreConnectionError, StoreError
from ..models.candidate import CandidateRecord
from ..models.config_models import DEFAULT_BATCH_SIZE
from ..models.error_record import ERROR_UPSERT_FAILED
from ..models.fields import NATURAL_KEY, CanonicalField
from ..models.import_report import ReportError
from .progress import ProgressTracker

"""Batch upsert executor with per-row fallback.

Records are written in fixed-size batches, strictly in order. When a batch
statement fails, the same batch is retried one record at a time so that a single
bad record cannot suppress the writes of its batch-mates. Each record that still
fails becomes one ReportError naming its spreadsheet line and natural key.
StoreConnectionError is never retried: it propagates to the caller.
"""

__all__ = [
    "UpsertOutcome",
    "BatchUpsertExecutor",
    "iter_batches",
]

logger = logging.getLogger(__name__)


@dataclass
class UpsertOutcome:
    written_count: int = 0
    errors: list[ReportError] = field(default_factory=list)
    degraded_batches: int = 0


def iter_batches(records: Sequence[CandidateRecord], size: int) -> Iterator[Sequence[CandidateRecord]]:
    for start in range(0, len(records), size):
        yield records[start:start + size]


class BatchUpsertExecutor:
    def __init__(
        self,
        store: StationStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        conflict_key: CanonicalField = NATURAL_KEY,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1 (got {batch_size})")
        self.store = store
        self.batch_size = batch_size
        self.conflict_key = conflict_key

    def execute(self, records: Sequence[CandidateRecord]) -> UpsertOutcome:
        outcome = UpsertOutcome()
        total_batches = (len(records) + self.batch_size - 1) // self.batch_size

        with ProgressTracker(total_batches) as progress:
            for index, batch in enumerate(iter_batches(records, self.batch_size), start=1):
                progress.start_batch(len(batch))
                try:
                    self.store.upsert_batch(batch, self.conflict_key)
                except StoreConnectionError:
                    raise
                except StoreError as e:
                    logger.warning(
                        f"batch {index}/{total_batches} failed ({e}); retrying {len(batch)} rows one by one"
                    )
                    outcome.degraded_batches += 1
                    self._upsert_rows(batch, outcome)
                else:
                    outcome.written_count += len(batch)
                    logger.debug(f"batch {index}/{total_batches} upserted rows={len(batch)}")
                progress.finish_batch()
                progress.set_postfix(
                    written=outcome.written_count,
                    errors=len(outcome.errors),
                    degraded=outcome.degraded_batches,
                )

        return outcome

    def _upsert_rows(self, batch: Sequence[CandidateRecord], outcome: UpsertOutcome) -> None:
        for record in batch:
            try:
                self.store.upsert_one(record, self.conflict_key)
            except StoreConnectionError:
                raise
            except StoreError as e:
                message = f"Row {record.row_number} ({record.natural_key}): {e}"
                logger.error(message)
                outcome.errors.append(
                    ReportError(record.row_number, message, record.natural_key, ERROR_UPSERT_FAILED)
                )
            else:
                outcome.written_count += 1
