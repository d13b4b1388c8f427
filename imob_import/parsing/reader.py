from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.records import RawRecord
from ..models.schema import RAW_COLUMNS

"""Tabular parser for the IMOB export.

The export is pasted (or saved) as tab separated text without a header row.
Every line is data; fields map to RAW_COLUMNS by position:

- fewer fields than columns -> missing trailing columns are None
- more fields than columns -> extras are dropped
- the literal string "null" -> None

Workbook uploads (.xlsx) are read with pandas and mapped with the same
positional rules so both paths produce identical RawRecords.
"""

__all__ = [
    "parse",
    "read_export_file",
    "ExportFileError",
]

NULL_LITERAL = "null"
TEXT_SUFFIXES = {".tsv", ".txt", ".tab", ".csv"}
EXCEL_SUFFIXES = {".xlsx", ".xlsm"}
# Excel の日付セルは元データの表記 (DD/MM/YYYY HH:MM:SS) に戻す
EXCEL_DATETIME_FMT = "%d/%m/%Y %H:%M:%S"


class ExportFileError(Exception):
    """Raised when an uploaded export cannot be read."""


def _cell(value: str | None) -> str | None:
    if value is None or value == NULL_LITERAL:
        return None
    return value


def _to_record(fields: list[str | None]) -> RawRecord:
    return {
        col: _cell(fields[i]) if i < len(fields) else None
        for i, col in enumerate(RAW_COLUMNS)
    }


def parse(text: str) -> list[RawRecord]:
    """Parse pasted tab separated text into RawRecords (pure).

    The whole input is trimmed once; individual lines are not, so leading or
    trailing tabs inside the paste keep their positional meaning.
    """
    stripped = text.strip()
    if not stripped:
        return []
    records: list[RawRecord] = []
    for line in stripped.split("\n"):
        line = line.removesuffix("\r")  # Windows 改行の貼り付け対策
        if line == "":
            continue
        records.append(_to_record(line.split("\t")))
    return records


def _excel_cell(val: Any) -> str | None:
    if val is None or (not isinstance(val, str) and pd.isna(val)):
        return None
    if isinstance(val, (datetime, pd.Timestamp)):
        return val.strftime(EXCEL_DATETIME_FMT)
    if isinstance(val, date):
        return val.strftime("%d/%m/%Y")
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    return str(val)


def _read_excel(path: Path) -> list[RawRecord]:
    # header=None: 1 行目からデータ。NA 変換は無効化して "null" 判定を parser 側に統一
    df = pd.read_excel(path, sheet_name=0, header=None, keep_default_na=False, na_values=[])
    records: list[RawRecord] = []
    for _, raw in df.iterrows():
        fields = [_excel_cell(v) for v in raw.tolist()]
        # 完全空行はスキップ (テキスト側の空行スキップと同じ扱い)
        if all(f is None or f == "" for f in fields):
            continue
        records.append(_to_record(fields))
    return records


def read_export_file(path: Path) -> list[RawRecord]:
    """Read an uploaded export (tab separated text or .xlsx workbook).

    Raises:
        ExportFileError: file missing, unsupported suffix or unreadable
    """
    if not path.exists():
        raise ExportFileError(f"export file not found: {path}")
    suffix = path.suffix.lower()
    try:
        if suffix in EXCEL_SUFFIXES:
            return _read_excel(path)
        if suffix in TEXT_SUFFIXES or suffix == "":
            # utf-8-sig: Excel / Windows で保存された BOM 付きファイルを許容
            return parse(path.read_text(encoding="utf-8-sig"))
    except (OSError, UnicodeDecodeError, ValueError) as e:
        raise ExportFileError(f"failed to read {path.name}: {e}") from e
    raise ExportFileError(f"unsupported export file type: {path.suffix}")
