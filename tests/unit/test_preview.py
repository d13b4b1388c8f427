from __future__ import annotations

from datetime import datetime

import pytest

from conftest import make_line
from imob_import.models.processing_result import ProcessResult
from imob_import.models.records import LookupEntry
from imob_import.parsing.reader import parse
from imob_import.services.preview import render_preview
from imob_import.services.transform import transform


def _rows(*keys):
    lookup = {"12": LookupEntry(loja="Loja Centro", segmento="VAREJO")}
    records = parse("\n".join(make_line(k) for k in keys))
    return transform(records, lookup, "3", "IMOB", now=datetime(2025, 6, 1))


def test_preview_counts_and_marked_columns():
    result = ProcessResult(total_parsed=3, duplicates=1, missing_key=0, rows=_rows(1002, 1003))
    text = render_preview(result)

    assert text.splitlines()[0] == (
        "Found 3 rows. 1 already exist in the database. 2 new rows ready to insert."
    )
    assert "Emp*" in text
    assert "Segmento*" in text
    assert "SEQMOVIMENTAÇÃO*" not in text
    assert "SEQMOVIMENTAÇÃO" in text
    assert "Loja Centro" in text
    assert "Showing the first" not in text


def test_preview_truncation_is_announced():
    result = ProcessResult(total_parsed=3, duplicates=0, missing_key=0, rows=_rows(1, 2, 3))
    text = render_preview(result, limit=2)
    assert "Showing the first 2 of 3 new rows; the insert will send all 3." in text
    table_lines = [ln for ln in text.splitlines() if "ENTRADA" in ln]
    assert len(table_lines) == 2


def test_preview_no_new_rows():
    result = ProcessResult(total_parsed=2, duplicates=2, missing_key=0, rows=[])
    text = render_preview(result)
    assert "0 new rows ready to insert." in text
    assert text.endswith("No new rows to insert.")


def test_preview_mentions_skipped_rows_without_key():
    result = ProcessResult(total_parsed=4, duplicates=0, missing_key=1, rows=_rows(1, 2, 3))
    text = render_preview(result)
    assert "1 rows without SEQMOVIMENTAÇÃO were skipped." in text


@pytest.mark.parametrize("limit", [0, -2, -10])
def test_preview_rejects_non_positive_limit(limit):
    result = ProcessResult(total_parsed=5, duplicates=0, missing_key=0, rows=_rows(1, 2, 3, 4, 5))
    with pytest.raises(ValueError, match="preview limit must be >= 1"):
        render_preview(result, limit=limit)
