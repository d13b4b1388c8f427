from __future__ import annotations

import importlib
from pathlib import Path

import pytest

from conftest import FakeStore
from imob_import.cli import main as cli_main
from imob_import.cli.main import EXIT_FATAL, EXIT_PARTIAL_FAILURE, EXIT_SUCCESS
from imob_import.logging.init import reset_logging

"""Exit code contract.

0 = success (including "nothing new" and preview-only runs)
1 = fatal: config / input / store / verification
2 = partial insert failure
"""


def test_exit_code_values():
    assert (EXIT_SUCCESS, EXIT_FATAL, EXIT_PARTIAL_FAILURE) == (0, 1, 2)


def test_missing_config_is_fatal(temp_workdir: Path, capsys):
    reset_logging()
    code = cli_main(["-", "--empresa", "3", "--produto", "IMOB"])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR config: config file not found" in out


def test_missing_input_file_is_fatal(write_config: Path, capsys):
    reset_logging()
    code = cli_main(["data/missing.tsv", "--empresa", "3", "--produto", "IMOB"])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR input: export file not found" in out


def test_store_without_credentials_is_fatal(temp_workdir: Path, monkeypatch, capsys):
    reset_logging()
    for name in ("SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_KEY"):
        monkeypatch.delenv(name, raising=False)
    (temp_workdir / "config" / "import.yml").write_text("store:\n  backend: supabase\n", encoding="utf-8")
    (temp_workdir / "data" / "export.tsv").write_text("1001\t15/03/2024", encoding="utf-8")

    code = cli_main(["data/export.tsv", "--empresa", "3", "--produto", "IMOB"])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR store: supabase credentials not found" in out


@pytest.mark.parametrize(
    "empresa,expected",
    [
        ("3", "ERROR input: no valid SEQMOVIMENTAÇÃO found"),
        (" ", "ERROR input: select empresa before processing"),
    ],
)
def test_input_errors_are_fatal(write_config: Path, temp_workdir: Path, monkeypatch, capsys, empresa, expected):
    reset_logging()
    store = FakeStore()
    monkeypatch.setattr(importlib.import_module("imob_import.cli.main"), "open_store", lambda cfg: store)
    (temp_workdir / "data" / "export.tsv").write_text("null\t15/03/2024", encoding="utf-8")

    code = cli_main(["data/export.tsv", "--empresa", empresa, "--produto", "IMOB"])
    out = capsys.readouterr().out
    assert code == 1
    assert expected in out
    assert store.select_calls == []
    assert store.closed
