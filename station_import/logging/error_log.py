from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ERROR_UPSERT_FAILED, ErrorRecord
from ..models.import_report import ImportReport

"""Error log buffering (JSON Lines).

- 固定スキーマ (追加キー禁止)
- 起動ごとに `logs/errors-YYYYMMDD-HHMMSS.log` (UTC) を生成 (必要時)
- バッファリングして flush() でまとめて書き出し
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "records_from_report",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


def records_from_report(report: ImportReport, file: str, sheet: str) -> list[ErrorRecord]:
    """One ErrorRecord per report error, in report order."""
    return [
        ErrorRecord.create(
            file=file,
            sheet=sheet,
            row=e.row_number,
            error_type=e.error_type or ERROR_UPSERT_FAILED,
            message=e.message,
        )
        for e in report.errors
    ]


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush writes JSON Lines.

    - ファイルパスは初回アクセスで決定
    - スレッド安全性不要 (シリアル実行)
    """
    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir or LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def extend(self, records: list[ErrorRecord]) -> None:
        self._records.extend(records)

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the log file. None when nothing was buffered."""
        if not self._records:
            return None  # エラーなしの実行ではファイルを作らない
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
