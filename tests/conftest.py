# Shared pytest fixtures
from __future__ import annotations

import asyncio
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest

from imob_import.db.batch_insert import BatchInsertError
from imob_import.models.config_models import ImportConfig, RetryConfig
from imob_import.models.schema import KEY_COLUMN


class FakeStore:
    """In-memory RemoteStore double with call recording and failure injection.

    select_errors: table -> exception raised on every select against it
    transient_select_failures: first N selects (any table) raise TimeoutError
    fail_insert_calls: 1-based insert call numbers that raise BatchInsertError
    gate: when set, every select waits on this event first
    """

    def __init__(
        self,
        existing_keys: Sequence[str | int] = (),
        lojas: Sequence[dict[str, Any]] = (),
        *,
        select_errors: dict[str, Exception] | None = None,
        transient_select_failures: int = 0,
        fail_insert_calls: set[int] | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {
            "imob": [{KEY_COLUMN: int(k)} for k in existing_keys],
            "lojas": [dict(r) for r in lojas],
        }
        self.select_calls: list[tuple[str, str, list[Any]]] = []
        self.insert_calls: list[tuple[str, int]] = []
        self.select_errors = select_errors or {}
        self.transient_select_failures = transient_select_failures
        self.fail_insert_calls = fail_insert_calls or set()
        self.gate = gate
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def select_in(self, table, column, values, columns):
        self.select_calls.append((table, column, list(values)))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(0)
            if self.transient_select_failures > 0:
                self.transient_select_failures -= 1
                raise TimeoutError("upstream timeout")
            if table in self.select_errors:
                raise self.select_errors[table]
            wanted = {str(v) for v in values}
            return [
                {c: row.get(c) for c in columns}
                for row in self.tables.get(table, [])
                if str(row.get(column)) in wanted
            ]
        finally:
            self.in_flight -= 1

    async def insert(self, table, rows):
        self.insert_calls.append((table, len(rows)))
        await asyncio.sleep(0)
        if len(self.insert_calls) in self.fail_insert_calls:
            raise BatchInsertError("payload too large")
        self.tables.setdefault(table, []).extend(dict(r) for r in rows)
        return len(rows)

    async def close(self):
        self.closed = True

    def selects_on(self, table: str) -> list[list[Any]]:
        return [values for t, _, values in self.select_calls if t == table]


def make_line(
    seq: str | int,
    *,
    data: str = "15/03/2024 10:30:00",
    tipo: str = "ENTRADA",
    doc: str = "5501",
    quantidade: str = "10",
    local: str = "DEP01",
    saldo: str = "120",
    operacao: str = "COMPRA",
    fornecedor: str = "12 - Loja Centro",
    data2: str = "16/03/2024",
    usuario: str = "ana",
) -> str:
    """One export line, fields in column order, tab separated."""
    return "\t".join(
        [str(seq), data, tipo, doc, quantidade, local, saldo, operacao, fornecedor, data2, usuario]
    )


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """store:
  backend: supabase
tables:
  target: imob
  lookup: lojas
chunk_size: 500
preview_limit: 100
read_concurrency: 4
read_timeout_seconds: 5
retry:
  max_attempts: 2
  base_delay_seconds: 0
supabase:
  url: https://example.supabase.co
  key: anon-key
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def import_config() -> ImportConfig:
    return ImportConfig(
        backend="supabase",
        chunk_size=500,
        read_timeout_seconds=5.0,
        retry=RetryConfig(max_attempts=2, base_delay_seconds=0.0),
    )


@pytest.fixture()
def lojas_rows() -> list[dict[str, Any]]:
    return [
        {"id": 12, "nome_loja": "Loja Centro", "segmento": "VAREJO"},
        {"id": 34, "nome_loja": "Loja Norte", "segmento": "ATACADO"},
    ]


@pytest.fixture()
def line():
    return make_line
