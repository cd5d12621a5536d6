from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from station_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from station_import.db.postgres_store import PostgresStationStore
from station_import.excel.reader import ReaderError, preview_rows, read_station_rows
from station_import.logging.error_log import ErrorLogBuffer, records_from_report
from station_import.logging.init import log_summary, setup_logging
from station_import.mapping.column_map import resolve_column
from station_import.models.config_models import ImportConfig
from station_import.models.import_report import ImportReport
from station_import.services.reconciliation import run_import
from station_import.services.summary import render_summary_line

"""CLI entrypoint: `python -m station_import.cli`.

Flow:
- Load .env and config/import.yml
- Read the station sheet, validate rows
- Deactivate all stations, upsert the sheet (one DB transaction)
- Print errors, write the JSON Lines error log, print the SUMMARY line
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

# 画面に出すエラー件数の上限 (全件はエラーログファイルへ)
MAX_PRINTED_ERRORS = 20

CONFIRM_PROMPT = (
    "This will deactivate ALL existing stations and replace them with the data from {file}.\n"
    "Continue? [y/N] "
)


def _resolve_dsn(cfg: ImportConfig) -> str:
    """DB 接続情報の解決優先順位:
        1. DATABASE_URL / PGDSN (DSN 全体)
        2. 個別 PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. config の database セクション (不足分のフォールバック)
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_connection(cfg: ImportConfig) -> Iterator[tuple[Any, Any]]:  # pragma: no cover (thin wrapper)
    """Yield (connection, cursor) with autocommit off.

    The caller decides commit / rollback. Anything left open on exit is rolled back.
    """
    conn = psycopg2.connect(_resolve_dsn(cfg))
    conn.autocommit = False  # deactivate + upsert を1トランザクションに
    cur = conn.cursor()
    try:
        yield conn, cur
    except Exception:
        conn.rollback()
        raise
    finally:
        cur.close()
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env (override=True: .env wins over the existing environment)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Station spreadsheet -> PostgreSQL importer")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to import.yml")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print headers & first rows then exit")
    p.add_argument("--dry-run", action="store_true", help="Read and validate only, no DB writes")
    p.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")
    return p.parse_args(argv)


def _inspect_data(cfg: ImportConfig) -> int:
    path = Path(cfg.source_file)
    try:
        df = preview_rows(path, cfg.sheet_name, cfg.header_row)
    except ReaderError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    print(f"FILE: {path.name}")
    for col in df.columns:
        target = resolve_column(col)
        print(f"  COLUMN: {col!r} -> {target.column if target else '(unmapped)'}")
    for _, row in df.iterrows():
        print("    sample_row=", {str(k): v for k, v in row.items()})
    return EXIT_SUCCESS_ALL


def _confirm(cfg: ImportConfig, assume_yes: bool) -> bool:
    if assume_yes:
        return True
    if not sys.stdin.isatty():
        return False
    answer = input(CONFIRM_PROMPT.format(file=Path(cfg.source_file).name))
    return answer.strip().lower() in {"y", "yes", "д", "да"}


def _report_errors(logger: Any, report: ImportReport) -> None:
    for err in report.errors[:MAX_PRINTED_ERRORS]:
        logger.error(err.message)
    hidden = len(report.errors) - MAX_PRINTED_ERRORS
    if hidden > 0:
        logger.error(f"... and {hidden} more errors (see error log)")


def _exit_code(report: ImportReport) -> int:
    if report.failed:
        return EXIT_FATAL
    if report.errors:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む (テストで [] を渡すケース)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.debug:
        for h in logger.handlers:
            h.setLevel("DEBUG")
        logger.setLevel("DEBUG")
        logger.debug("debug mode enabled")

    source = Path(cfg.source_file)
    if not source.exists():
        logger.error(f"source file not found: {source}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(cfg)

    def read_rows():
        return read_station_rows(source, cfg.sheet_name, cfg.header_row)

    logger.info(f"Importing stations from: {source}")

    if args.dry_run:
        report = run_import(read_rows, store=None, batch_size=cfg.batch_size, dry_run=True)
    else:
        if not _confirm(cfg, args.yes):
            logger.error("import cancelled (confirmation required, use --yes in non-interactive mode)")
            return EXIT_FATAL
        report = None
        try:
            with _db_connection(cfg) as (conn, cur):
                store = PostgresStationStore(cur, table=cfg.table)
                report = run_import(read_rows, store=store, batch_size=cfg.batch_size)
                if report.failed:
                    conn.rollback()
                    logger.warning("transaction rolled back")
                else:
                    conn.commit()
        except psycopg2.Error as e:
            # 接続失敗 / COMMIT 失敗: 何も書き込まれていない
            if report is None:
                report = ImportReport()
            report.mark_failed(f"Database error: {str(e).strip()}")

    _report_errors(logger, report)

    error_log = ErrorLogBuffer()
    error_log.extend(records_from_report(report, file=source.name, sheet=cfg.sheet_name or "<FIRST_SHEET>"))
    try:
        log_path = error_log.flush()
    except OSError as e:
        logger.warning(f"failed to write error log: {e}")
    else:
        if log_path is not None:
            logger.info(f"error log written: {log_path}")

    log_summary(render_summary_line(report))
    return _exit_code(report)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
