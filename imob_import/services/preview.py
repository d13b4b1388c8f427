from __future__ import annotations

import pandas as pd

from ..models.processing_result import ProcessResult
from ..models.schema import DERIVED_COLUMNS, KEY_COLUMN

"""Preview renderer (display only).

Renders the counts of a processing run and at most ``limit`` transformed rows
as a fixed-width table. Derived columns are marked with ``*``; when the table
is truncated the text says so, so the preview bound is not mistaken for the
upload size.
"""

__all__ = [
    "DEFAULT_PREVIEW_LIMIT",
    "DERIVED_MARK",
    "render_preview",
]

DEFAULT_PREVIEW_LIMIT = 100
DERIVED_MARK = "*"


def _summary_lines(result: ProcessResult) -> list[str]:
    lines = [
        f"Found {result.total_parsed} rows. "
        f"{result.duplicates} already exist in the database. "
        f"{result.new_rows} new rows ready to insert."
    ]
    if result.missing_key:
        lines.append(f"{result.missing_key} rows without {KEY_COLUMN} were skipped.")
    return lines


def render_preview(result: ProcessResult, limit: int = DEFAULT_PREVIEW_LIMIT) -> str:
    if limit < 1:
        raise ValueError(f"preview limit must be >= 1, got {limit}")
    lines = _summary_lines(result)
    if not result.rows:
        lines.append("No new rows to insert.")
        return "\n".join(lines)

    shown = result.rows[:limit]
    columns = list(shown[0].keys())
    df = pd.DataFrame(shown, columns=columns, dtype=object)
    df = df.where(df.notna(), "")
    df = df.rename(columns={c: f"{c}{DERIVED_MARK}" for c in columns if c in DERIVED_COLUMNS})

    if result.new_rows > len(shown):
        lines.append(
            f"Showing the first {len(shown)} of {result.new_rows} new rows; "
            f"the insert will send all {result.new_rows}."
        )
    lines.append(df.to_string(index=False))
    derived = ", ".join(c for c in columns if c in DERIVED_COLUMNS)
    lines.append(
        f"{DERIVED_MARK} derived by the importer ({derived}); "
        "unmarked columns are passed through from the export."
    )
    return "\n".join(lines)
