from __future__ import annotations

import logging
from collections.abc import Sequence

from ..db.store import RemoteStore
from ..models.records import LookupEntry, RawRecord
from ..models.schema import (
    LOOKUP_ID_COLUMN,
    LOOKUP_NAME_COLUMN,
    LOOKUP_SEGMENT_COLUMN,
    SUPPLIER_COLUMN,
    SUPPLIER_SEPARATOR,
)
from .chunks import fetch_chunks
from .retry import ReadPolicy

"""Reference enricher (PROCV join against the lojas table).

The supplier column carries ``"<id> - <name>"``; the id prefix is resolved to
the store name and segment of the reference table. Only ids referenced by the
current new rows are fetched, fresh on every run.
"""

__all__ = [
    "supplier_id",
    "collect_supplier_ids",
    "build_lookup",
]

logger = logging.getLogger(__name__)


def supplier_id(raw: str | None) -> str | None:
    """Text before the first ``" - "``, trimmed; None without a separator."""
    if not raw or SUPPLIER_SEPARATOR not in raw:
        return None
    ident = raw.split(SUPPLIER_SEPARATOR, 1)[0].strip()
    return ident or None


def _as_int(text: str) -> int | None:
    try:
        return int(text)
    except ValueError:
        return None


def collect_supplier_ids(records: Sequence[RawRecord]) -> list[int]:
    """Distinct integer supplier ids in first-seen order."""
    ids: dict[int, None] = {}
    for rec in records:
        ident = supplier_id(rec.get(SUPPLIER_COLUMN))
        if ident is None:
            continue
        value = _as_int(ident)
        if value is not None:
            ids.setdefault(value, None)
    return list(ids)


async def build_lookup(
    records: Sequence[RawRecord],
    store: RemoteStore,
    *,
    table: str,
    policy: ReadPolicy,
) -> dict[str, LookupEntry]:
    """Return ``{str(id): LookupEntry}`` for the supplier ids in ``records``.

    No ids -> no query, empty mapping. Any chunk failure raises
    VerificationError (stage ``lookup``).
    """
    ids = collect_supplier_ids(records)
    if not ids:
        return {}

    columns = [LOOKUP_ID_COLUMN, LOOKUP_NAME_COLUMN, LOOKUP_SEGMENT_COLUMN]

    async def _query(chunk: list[int]) -> list[dict]:
        return await store.select_in(table, LOOKUP_ID_COLUMN, chunk, columns)

    logger.info("validating %d supplier id(s) against %s", len(ids), table)
    chunk_rows = await fetch_chunks(ids, _query, policy, stage="lookup")

    lookup: dict[str, LookupEntry] = {}
    for rows in chunk_rows:
        for row in rows:
            lookup[str(row[LOOKUP_ID_COLUMN])] = LookupEntry(
                loja=row.get(LOOKUP_NAME_COLUMN),
                segmento=row.get(LOOKUP_SEGMENT_COLUMN),
            )
    return lookup
