from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

"""Multi-row INSERT for the PostgreSQL backend (psycopg2 ``execute_values``).

One call sends one upload batch. The caller owns the transaction: PostgresStore
commits after a successful call and rolls back otherwise, so a rejected batch
leaves none of its rows behind.
"""

try:  # pragma: no cover - driver may be absent when only the supabase backend is used
    from psycopg2.extras import execute_values
except ImportError:  # pragma: no cover
    execute_values = None  # type: ignore


class BatchInsertError(Exception):
    """An insert call was rejected; the message is the driver / server text."""


@dataclass(frozen=True)
class BatchMetrics:
    batch_size: int
    elapsed_seconds: float


def quote_ident(name: str) -> str:
    """Double-quote an identifier (IMOB column names carry accents and spaces)."""
    return '"' + name.replace('"', '""') + '"'


def insert_sql(table: str, columns: Sequence[str]) -> str:
    cols = ",".join(quote_ident(c) for c in columns)
    return f"INSERT INTO {quote_ident(table)} ({cols}) VALUES %s"


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> int:
    """Insert ``rows`` (values ordered like ``columns``); returns the row count.

    ``metrics_callback`` gets the timing of the execute_values call, also when
    it fails. Nothing is sent (and no callback fires) for an empty ``rows``.

    Raises:
        BatchInsertError: driver missing, or the statement failed
    """
    if execute_values is None:
        raise BatchInsertError("psycopg2 not available")

    payload = list(rows)
    if not payload:
        return 0

    started = time.perf_counter()
    try:
        execute_values(cursor, insert_sql(table, columns), payload, page_size=page_size)
    except Exception as e:
        raise BatchInsertError(str(e).strip() or type(e).__name__) from e
    finally:
        if metrics_callback is not None:
            metrics_callback(BatchMetrics(len(payload), time.perf_counter() - started))
    return len(payload)
