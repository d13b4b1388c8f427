from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from ..db.store import RemoteStore
from ..models.records import RawRecord
from ..models.schema import KEY_COLUMN
from .chunks import fetch_chunks
from .retry import ReadPolicy
from .transform import to_int

"""Duplicate filter.

Reconciles parsed records against the target table by business key. The remote
column is bigint and the paste is text, so both sides are compared in the form
the insert will store (" 1001" and "01001" both match 1001). The filter is
fail-closed: when any chunk query fails no record is reported as new, because
accepting an unverified row risks a duplicate insert.
"""

__all__ = [
    "DedupResult",
    "business_key",
    "filter_new",
    "normalized_key",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DedupResult:
    new_records: list[RawRecord] = field(default_factory=list)
    duplicate_count: int = 0
    missing_key_count: int = 0  # 業務キー空 (照会せず除外)
    existing_keys: frozenset[str] = frozenset()


def business_key(record: RawRecord, key_column: str = KEY_COLUMN) -> str | None:
    value = record.get(key_column)
    return value if value and value.strip() else None


def normalized_key(value: object) -> str:
    """Key as the insert will store it; non-numeric text is compared as is."""
    n = to_int(value)
    return str(n) if n is not None else str(value).strip()


async def filter_new(
    records: Sequence[RawRecord],
    store: RemoteStore,
    *,
    table: str,
    policy: ReadPolicy,
    key_column: str = KEY_COLUMN,
) -> DedupResult:
    """Split ``records`` into new ones and already stored ones (order kept)."""
    keyed: list[tuple[RawRecord, str]] = []
    missing = 0
    for rec in records:
        key = business_key(rec, key_column)
        if key is None:
            missing += 1
        else:
            keyed.append((rec, normalized_key(key)))

    # 重複キーは一度だけ照会 (初出順)
    distinct_keys = list(dict.fromkeys(k for _, k in keyed))
    if not distinct_keys:
        return DedupResult(new_records=[], duplicate_count=0, missing_key_count=missing)

    async def _query(chunk: list[str]) -> list[dict]:
        return await store.select_in(table, key_column, chunk, [key_column])

    logger.debug(
        "duplicate check: %d keys in %d chunk(s) against %s",
        len(distinct_keys), -(-len(distinct_keys) // policy.chunk_size), table,
    )
    chunk_rows = await fetch_chunks(distinct_keys, _query, policy, stage="dedup")

    existing = frozenset(
        normalized_key(row[key_column])
        for rows in chunk_rows
        for row in rows
        if row.get(key_column) is not None
    )
    new_records = [rec for rec, key in keyed if key not in existing]
    return DedupResult(
        new_records=new_records,
        duplicate_count=len(keyed) - len(new_records),
        missing_key_count=missing,
        existing_keys=existing,
    )
