from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime

from ..models.records import LookupEntry, RawRecord, TypedRecord
from ..models.schema import (
    COLUMN_RULES,
    DATE_COLUMN,
    SUPPLIER_COLUMN,
    SUPPLIER_SEPARATOR,
    ColumnType,
)

"""Row transformer: derived columns + type coercion.

Nothing in here raises for bad cell content. A malformed number or date
becomes None and the row still goes through; it is a data quality issue to be
reviewed later, not a reason to block the batch.
"""

__all__ = [
    "to_int",
    "to_iso_timestamp",
    "transform",
    "transform_record",
]

_LEADING_INT = re.compile(r"[+-]?\d+")
_BR_DATETIME = re.compile(r"(\d{2})/(\d{2})/(\d{4})(?:[ T](\d{2}):(\d{2}):(\d{2}))?")


def to_int(value: object) -> int | None:
    """Leading integer of ``value`` ("2024 10:00" -> 2024, "12abc" -> 12), else None."""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    m = _LEADING_INT.match(text)
    return int(m.group(0)) if m else None


def to_iso_timestamp(value: object) -> str | None:
    """``DD/MM/YYYY[( |T)HH:MM:SS]`` -> ``YYYY-MM-DDTHH:MM:SS``; invalid -> None."""
    if not value or not isinstance(value, str):
        return None
    m = _BR_DATETIME.search(value)
    if m is None:
        return None
    day, month, year, hour, minute, second = m.groups()
    iso = f"{year}-{month}-{day}T{hour or '00'}:{minute or '00'}:{second or '00'}"
    try:
        # 31/02 など暦上存在しない日付を除外
        datetime.strptime(iso, "%Y-%m-%dT%H:%M:%S")
    except ValueError:
        return None
    return iso


_COERCERS: dict[ColumnType, Callable[[object], int | str | None]] = {
    ColumnType.INTEGER: to_int,
    ColumnType.TIMESTAMP: to_iso_timestamp,
}


def _split_supplier(raw: str | None) -> tuple[str | None, str | None]:
    if raw and SUPPLIER_SEPARATOR in raw:
        parts = raw.split(SUPPLIER_SEPARATOR)
        return parts[0].strip(), SUPPLIER_SEPARATOR.join(parts[1:]).strip()
    return None, raw


def _year_of(raw_date: str | None, current_year: int) -> str | None:
    if raw_date and "/" in raw_date:
        segments = raw_date.split("/")
        return segments[2] if len(segments) > 2 else None
    return str(current_year)


def transform_record(
    record: RawRecord,
    lookup: Mapping[str, LookupEntry],
    empresa: str,
    produto: str,
    current_year: int,
) -> TypedRecord:
    row: dict[str, object] = dict(record)

    row["Emp"] = empresa
    row["Produto"] = produto

    supplier_id, supplier_name = _split_supplier(record.get(SUPPLIER_COLUMN))
    row["ID"] = supplier_id
    row["fornecedor"] = supplier_name

    row["ano"] = _year_of(record.get(DATE_COLUMN), current_year)

    # 下流用の予約列 (ここでは計算しない)
    row["Coluna1"] = None
    row["Coluna2"] = None

    entry = lookup.get(supplier_id) if supplier_id else None
    if entry is not None:
        row["loja"] = entry.loja
        row["Segmento"] = entry.segmento
    else:
        # 未解決は fornecedor で代替 (行はブロックしない)
        row["loja"] = supplier_name
        row["Segmento"] = None

    for column, rule in COLUMN_RULES:
        if column in row:
            row[column] = _COERCERS[rule](row[column])

    return row  # type: ignore[return-value]


def transform(
    records: Sequence[RawRecord],
    lookup: Mapping[str, LookupEntry],
    empresa: str,
    produto: str,
    *,
    now: datetime | None = None,
) -> list[TypedRecord]:
    """Apply derived-column formulas and coercion to every record, in order.

    Input records are not mutated. ``now`` fixes the fallback year (tests).
    """
    current_year = (now or datetime.now()).year
    return [transform_record(r, lookup, empresa, produto, current_year) for r in records]
