from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime

import pytest

from conftest import FakeStore, make_line
from imob_import.logging.error_log import ErrorLogBuffer
from imob_import.models.schema import KEY_COLUMN
from imob_import.services.errors import InputError, SessionBusyError, VerificationError
from imob_import.services.session import ImportSession

NOW = datetime(2025, 6, 1)
PASTE = "\n".join(make_line(k) for k in (1001, 1002, 1003))


def _session(store, config, tmp_path):
    return ImportSession(store, config, ErrorLogBuffer(tmp_path / "logs"), show_progress=False)


def test_process_counts_and_pending(import_config, lojas_rows, tmp_path):
    store = FakeStore(existing_keys=[1001], lojas=lojas_rows)
    session = _session(store, import_config, tmp_path)

    result = asyncio.run(session.process(PASTE, "3", "IMOB", now=NOW))

    assert result.total_parsed == 3
    assert result.duplicates == 1
    assert result.new_rows == 2
    assert result.lookup_hits == 2
    assert [r[KEY_COLUMN] for r in session.pending] == [1002, 1003]
    assert session.pending[0]["loja"] == "Loja Centro"
    assert set(session.lookup) == {"12"}
    assert session.last_result is result
    assert not session.busy


@pytest.mark.parametrize("text", ["", "   \n\t "])
def test_process_empty_paste(import_config, tmp_path, text):
    store = FakeStore()
    session = _session(store, import_config, tmp_path)
    with pytest.raises(InputError, match="no data pasted"):
        asyncio.run(session.process(text, "3", "IMOB"))
    assert store.select_calls == []


def test_process_requires_selectors(import_config, tmp_path):
    store = FakeStore()
    session = _session(store, import_config, tmp_path)
    with pytest.raises(InputError, match="empresa and produto"):
        asyncio.run(session.process(PASTE, None, " "))
    with pytest.raises(InputError, match="produto"):
        asyncio.run(session.process(PASTE, "3", ""))
    assert store.select_calls == []


def test_process_without_any_key(import_config, tmp_path):
    store = FakeStore()
    session = _session(store, import_config, tmp_path)
    with pytest.raises(InputError, match=f"no valid {KEY_COLUMN}"):
        asyncio.run(session.process("null\t15/03/2024\nnull\t16/03/2024", "3", "IMOB"))
    assert store.select_calls == []


def test_process_records_empty(import_config, tmp_path):
    session = _session(FakeStore(), import_config, tmp_path)
    with pytest.raises(InputError, match="no data in export"):
        asyncio.run(session.process_records([], "3", "IMOB"))


def test_process_twice_replaces_pending(import_config, lojas_rows, tmp_path):
    store = FakeStore(lojas=lojas_rows)
    session = _session(store, import_config, tmp_path)

    asyncio.run(session.process(PASTE, "3", "IMOB", now=NOW))
    first = session.pending
    asyncio.run(session.process(PASTE, "3", "IMOB", now=NOW))
    assert session.pending == first
    assert len(session.pending) == 3


def test_failed_lookup_keeps_previous_state(import_config, lojas_rows, tmp_path):
    store = FakeStore(lojas=lojas_rows)
    session = _session(store, import_config, tmp_path)
    asyncio.run(session.process(PASTE, "3", "IMOB", now=NOW))
    before = session.pending

    store.select_errors["lojas"] = RuntimeError("lojas unavailable")
    with pytest.raises(VerificationError) as ei:
        asyncio.run(session.process(make_line(2001), "3", "IMOB", now=NOW))

    assert ei.value.stage == "lookup"
    assert session.pending == before
    assert set(session.lookup) == {"12"}
    assert len(session.error_log) == 1
    assert not session.busy


def test_failed_duplicate_check_logs_error(import_config, tmp_path):
    store = FakeStore(select_errors={"imob": RuntimeError("statement timeout")})
    error_log = ErrorLogBuffer(tmp_path / "logs")
    session = ImportSession(store, import_config, error_log, show_progress=False)

    with pytest.raises(VerificationError, match="statement timeout"):
        asyncio.run(session.process(PASTE, "3", "IMOB"))
    assert session.pending == ()

    path = error_log.flush()
    assert path is not None
    text = path.read_text(encoding="utf-8")
    assert '"error_type": "DUPLICATE_CHECK_FAILED"' in text
    assert '"stage": "dedup"' in text
    assert '"batch": -1' in text


def test_single_flight_rejects_overlapping_calls(import_config, tmp_path):
    async def scenario():
        gate = asyncio.Event()
        store = FakeStore(gate=gate)
        session = _session(store, import_config, tmp_path)

        task = asyncio.create_task(session.process(PASTE, "3", "IMOB", now=NOW))
        while not store.select_calls:
            await asyncio.sleep(0)
        assert session.busy

        with pytest.raises(SessionBusyError):
            await session.process(PASTE, "3", "IMOB")
        with pytest.raises(SessionBusyError):
            await session.insert()

        gate.set()
        result = await task
        assert not session.busy
        return result, store

    result, store = asyncio.run(scenario())
    assert result.new_rows == 3
    # 拒否された呼び出しはリモートに触れない
    assert len(store.selects_on("imob")) == 1


def test_insert_without_pending_rows(import_config, tmp_path):
    session = _session(FakeStore(), import_config, tmp_path)
    with pytest.raises(InputError, match="no new rows to insert"):
        asyncio.run(session.insert())


def test_insert_partial_failure_then_rerun(import_config, lojas_rows, tmp_path):
    config = replace(import_config, chunk_size=1)
    store = FakeStore(lojas=lojas_rows, fail_insert_calls={2})
    session = _session(store, config, tmp_path)
    asyncio.run(session.process(PASTE, "3", "IMOB", now=NOW))

    report = asyncio.run(session.insert())
    assert report.failed_batch == 2
    assert report.inserted == 1
    assert [r[KEY_COLUMN] for r in session.pending] == [1002, 1003]
    assert len(session.error_log) == 1

    store.fail_insert_calls = set()
    report = asyncio.run(session.insert())
    assert report.succeeded
    assert report.inserted == 2
    assert session.pending == ()
    assert [r[KEY_COLUMN] for r in store.tables["imob"][-3:]] == [1001, 1002, 1003]
