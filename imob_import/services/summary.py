from __future__ import annotations

from ..models.processing_result import InsertReport, ProcessResult

"""SUMMARY line rendering.

Format:
    SUMMARY parsed={n} duplicates={d} new={k}[ missing_key={m}]
    SUMMARY inserted={i}/{r} batches={b} failed_batch={f|-} remaining={x} elapsed_sec={s}

``missing_key`` is only emitted when non-zero so the common case stays short.
"""


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # 指数表記回避
        return f"{value:.6f}".rstrip('0').rstrip('.')
    return f"{value:.2f}".rstrip('0').rstrip('.')


def render_process_summary(result: ProcessResult) -> str:
    line = (
        f"SUMMARY parsed={result.total_parsed} "
        f"duplicates={result.duplicates} "
        f"new={result.new_rows}"
    )
    if result.missing_key:
        line += f" missing_key={result.missing_key}"
    return line


def render_insert_summary(report: InsertReport) -> str:
    elapsed = 0.0
    if report.start_time is not None and report.end_time is not None:
        elapsed = (report.end_time - report.start_time).total_seconds()
    failed = str(report.failed_batch) if report.failed_batch is not None else "-"
    return (
        f"SUMMARY inserted={report.inserted}/{report.requested} "
        f"batches={report.total_batches} "
        f"failed_batch={failed} "
        f"remaining={report.remaining} "
        f"elapsed_sec={_format_seconds(elapsed)}"
    )
