from __future__ import annotations

from dataclasses import dataclass

"""Config dataclasses for the station spreadsheet importer.

Separate from the YAML loader in station_import/config/loader.py; these are the
typed objects the rest of the application receives.
"""

DEFAULT_BATCH_SIZE = 100
DEFAULT_TABLE = "stations"


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None
    port: int | None
    user: str | None
    password: str | None
    database: str | None
    dsn: str | None


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for one import run."""
    source_file: str  # .xlsx to import
    database: DatabaseConfig
    sheet_name: str | None = None  # None = first sheet
    header_row: int = 1  # spreadsheet line holding the headers
    table: str = DEFAULT_TABLE
    batch_size: int = DEFAULT_BATCH_SIZE
