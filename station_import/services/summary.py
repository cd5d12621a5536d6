from __future__ import annotations

from ..models.import_report import ImportReport

"""SUMMARY line rendering for one import run."""


def _format_seconds(value: float) -> str:
    # 整数値は小数点なし、極小値は指数表記を避ける
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def run_status(report: ImportReport) -> str:
    if report.failed:
        return "failed"
    if report.dry_run:
        return "dry_run"
    if report.success:
        return "success"
    return "completed_with_errors"


def render_summary_line(report: ImportReport) -> str:
    """Render the SUMMARY line.

    The SUMMARY label itself is added by the log formatter (log_summary).

    Format:
    rows={total} written={written} rejected={rejected} errors={errors}
    status={status} elapsed_sec={elapsed}

    Examples:
        >>> from station_import.models.import_report import ImportReport, RunState
        >>> r = ImportReport(state=RunState.DONE, total_rows=3, valid_rows=2,
        ...                  rejected_rows=1, written_count=2)
        >>> r.add_error(3, "Row 3: Missing or invalid station_no")
        >>> render_summary_line(r)
        'rows=3 written=2 rejected=1 errors=1 status=completed_with_errors elapsed_sec=0'
    """
    return (
        f"rows={report.total_rows} "
        f"written={report.written_count} "
        f"rejected={report.rejected_rows} "
        f"errors={len(report.errors)} "
        f"status={run_status(report)} "
        f"elapsed_sec={_format_seconds(report.elapsed_seconds)}"
    )
