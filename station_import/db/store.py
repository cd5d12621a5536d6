from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from ..models.candidate import CandidateRecord
from ..models.fields import CanonicalField

"""Store collaborator contract.

The reconciliation driver only needs these operations from the persistence side.
Implementations raise StoreError for any failure they want the driver / executor
to treat as a store-side rejection.
"""

__all__ = [
    "StoreError",
    "StoreConnectionError",
    "StationStore",
]


class StoreError(Exception):
    """Raised by a store when an operation is rejected or fails."""


class StoreConnectionError(StoreError):
    """The store session itself is unusable (transaction or connection lost).

    Retrying row by row cannot help, so callers treat this as fatal.
    """


class StationStore(Protocol):
    def acquire_run_lock(self) -> bool:
        """Take the single-run lock. False if another run holds it."""
        ...

    def deactivate_all(self) -> int:
        """Set is_active=false and refresh updated_at on every persisted station."""
        ...

    def upsert_batch(self, records: Sequence[CandidateRecord], conflict_key: CanonicalField) -> int:
        ...

    def upsert_one(self, record: CandidateRecord, conflict_key: CanonicalField) -> None:
        ...
