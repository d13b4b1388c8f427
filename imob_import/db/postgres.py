from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Sequence
from typing import Any

from ..models.config_models import DatabaseConfig, ImportConfig
from .batch_insert import BatchInsertError, BatchMetrics, batch_insert, quote_ident
from .store import StoreError

"""PostgreSQL backend (psycopg2).

Reads and writes run in worker threads (``asyncio.to_thread``) on connections
from a ThreadedConnectionPool, so concurrent read chunks do not share a
connection. Each insert call is its own transaction: COMMIT on success,
ROLLBACK on failure, which gives the per-call atomicity the uploader relies on.
"""

try:  # pragma: no cover - import guard
    from psycopg2.pool import ThreadedConnectionPool
except ImportError:  # pragma: no cover
    ThreadedConnectionPool = None  # type: ignore

logger = logging.getLogger(__name__)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Resolve the connection string.

    接続情報の優先順位:
        1. DATABASE_URL / PGDSN (DSN 全体)
        2. config の database.dsn
        3. 個別 PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
           (不足分は config の database セクションで補完)
    """
    dsn_env = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn_env:
        return dsn_env
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


class PostgresStore:
    def __init__(self, pool: Any, page_size: int = 1000) -> None:
        self._pool = pool
        self._page_size = page_size

    @classmethod
    def from_config(cls, config: ImportConfig) -> PostgresStore:
        if ThreadedConnectionPool is None:
            raise StoreError("psycopg2 not available")
        # 読み取りチャンク並列数 + 書き込み 1 本
        maxconn = config.read_concurrency + 1
        try:
            pool = ThreadedConnectionPool(1, maxconn, resolve_dsn(config.database))
        except Exception as e:
            raise StoreError(f"database connection failed: {e}") from e
        return cls(pool, page_size=max(config.chunk_size, 1))

    def _select_sync(
        self, table: str, column: str, values: Sequence[Any], columns: Sequence[str]
    ) -> list[dict[str, Any]]:
        cols_sql = ",".join(quote_ident(c) for c in columns)
        # ::text 比較: 貼り付けキー (文字列) と bigint 列をそのまま照合
        sql = (
            f"SELECT {cols_sql} FROM {quote_ident(table)} "
            f"WHERE {quote_ident(column)}::text = ANY(%s)"
        )
        conn = self._pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, ([str(v) for v in values],))
                names = [d[0] for d in cur.description]
                rows = [dict(zip(names, r, strict=True)) for r in cur.fetchall()]
            conn.rollback()  # 読み取りトランザクションを閉じる
            return rows
        finally:
            self._pool.putconn(conn)

    def _insert_sync(self, table: str, rows: Sequence[dict[str, Any]]) -> int:
        columns = list(rows[0].keys())
        values = [[r.get(c) for c in columns] for r in rows]

        def _log_metrics(m: BatchMetrics) -> None:
            logger.debug("insert table=%s rows=%d elapsed=%.3fs", table, m.batch_size, m.elapsed_seconds)

        conn = self._pool.getconn()
        try:
            try:
                with conn.cursor() as cur:
                    inserted = batch_insert(
                        cur, table, columns, values,
                        page_size=self._page_size,
                        metrics_callback=_log_metrics,
                    )
                conn.commit()
                return inserted
            except BatchInsertError:
                conn.rollback()
                raise
            except Exception as e:  # commit failure etc.
                conn.rollback()
                raise BatchInsertError(str(e)) from e
        finally:
            self._pool.putconn(conn)

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
        self._pool.closeall()
