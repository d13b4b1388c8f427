from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from ..models.config_models import ImportConfig

"""Remote datastore protocol.

The pipeline needs three capabilities from the store, all request/response:

- existence query: ``select_in(table, key, keys, [key])``
- reference lookup: ``select_in(table, "id", ids, ["id", "nome_loja", "segmento"])``
- batch insert: ``insert(table, rows)``, atomic per call, no cross-call atomicity

``select_in`` must be side-effect free so read chunks can run concurrently and
be retried. ``insert`` raises ``BatchInsertError`` when the call is rejected.
"""

__all__ = [
    "RemoteStore",
    "StoreError",
    "error_message",
    "open_store",
]


class StoreError(Exception):
    """Store cannot be built (missing driver, missing credentials, connect failure)."""


def error_message(exc: BaseException) -> str:
    """Operator-facing text of a remote error.

    postgrest ``APIError`` keeps the server message in ``.message``; psycopg2
    errors and the rest carry it in ``str(exc)``.
    """
    message = getattr(exc, "message", None)
    if message:
        return str(message)
    text = str(exc).strip()
    return text or type(exc).__name__


class RemoteStore(Protocol):
    async def select_in(
        self,
        table: str,
        column: str,
        values: Sequence[Any],
        columns: Sequence[str],
    ) -> list[dict[str, Any]]:
        ...

    async def insert(self, table: str, rows: Sequence[dict[str, Any]]) -> int:
        ...

    async def close(self) -> None:
        ...


def open_store(config: ImportConfig) -> RemoteStore:
    """Build the store configured by ``config.backend``."""
    if config.backend == "supabase":
        from .supabase_store import SupabaseStore

        return SupabaseStore.from_config(config)
    if config.backend == "postgres":
        from .postgres import PostgresStore

        return PostgresStore.from_config(config)
    raise StoreError(f"unknown store backend: {config.backend}")
