from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence
from typing import Any

from supabase import Client, create_client

from ..models.config_models import ImportConfig, SupabaseConfig
from .batch_insert import BatchInsertError
from .store import StoreError, error_message

"""Supabase (PostgREST) backend.

- existence / lookup: ``table(t).select(cols).in_(col, values)``
- insert: ``table(t).insert(rows)`` -- one HTTP request per batch; PostgREST
  runs it in a single transaction, so a rejected request inserts nothing

The sync client is used from worker threads via ``asyncio.to_thread``.
"""


def resolve_credentials(sb_cfg: SupabaseConfig) -> tuple[str | None, str | None]:
    """Environment first (SUPABASE_URL, SUPABASE_ANON_KEY / SUPABASE_KEY), then config."""
    url = os.getenv("SUPABASE_URL") or sb_cfg.url
    key = os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or sb_cfg.key
    return url, key


class SupabaseStore:
    def __init__(self, client: Client) -> None:
        self._client = client

    @classmethod
    def from_config(cls, config: ImportConfig) -> SupabaseStore:
        url, key = resolve_credentials(config.supabase)
        if not url or not key:
            missing = [n for n, v in (("SUPABASE_URL", url), ("SUPABASE_ANON_KEY", key)) if not v]
            raise StoreError(f"supabase credentials not found: {', '.join(missing)}")
        try:
            client = create_client(url, key)
        except Exception as e:
            raise StoreError(f"failed to initialize supabase client: {e}") from e
        return cls(client)

    def _select_sync(
        self, table: str, column: str, values: Sequence[Any], columns: Sequence[str]
    ) -> list[dict[str, Any]]:
        res = self._client.table(table).select(*columns).in_(column, list(values)).execute()
        return list(res.data or [])

    def _insert_sync(self, table: str, rows: Sequence[dict[str, Any]]) -> int:
        try:
            self._client.table(table).insert(list(rows)).execute()
        except Exception as e:
            raise BatchInsertError(error_message(e)) from e
        return len(rows)

    async def select_in(
        self, table: str, column: str, values: Sequence[Any], columns: Sequence[str]
    ) -> list[dict[str, Any]]:
        if not values:
            return []
        return await asyncio.to_thread(self._select_sync, table, column, values, columns)

    async def insert(self, table: str, rows: Sequence[dict[str, Any]]) -> int:
        if not rows:
            return 0
        return await asyncio.to_thread(self._insert_sync, table, rows)

    async def close(self) -> None:
        # sync client はプール無し
        return None
