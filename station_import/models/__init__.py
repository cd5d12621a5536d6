"""Domain models for the station spreadsheet importer.

This package contains the domain model classes used throughout the application:
canonical fields, candidate records, the import report and configuration.
"""

from .candidate import CandidateRecord, RowRejection
from .config_models import DatabaseConfig, ImportConfig
from .fields import FIELD_KINDS, NATURAL_KEY, CanonicalField, FieldKind
from .import_report import ImportReport, ReportError, RunState

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    # Field table
    "CanonicalField",
    "FieldKind",
    "FIELD_KINDS",
    "NATURAL_KEY",
    # Processing models
    "CandidateRecord",
    "RowRejection",
    "ImportReport",
    "ReportError",
    "RunState",
]
