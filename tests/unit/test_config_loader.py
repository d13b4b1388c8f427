from __future__ import annotations

from pathlib import Path

import pytest

from imob_import.config.loader import ConfigError, load_config


def test_load_config_ok(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.backend == "supabase"
    assert cfg.target_table == "imob"
    assert cfg.lookup_table == "lojas"
    assert cfg.chunk_size == 500
    assert cfg.read_timeout_seconds == 5.0
    assert cfg.retry.max_attempts == 2
    assert cfg.retry.base_delay_seconds == 0.0
    assert cfg.supabase.url == "https://example.supabase.co"


def test_load_config_defaults(temp_workdir: Path):
    p = temp_workdir / "config" / "import.yml"
    p.write_text("store:\n  backend: postgres\ndatabase:\n  host: db\n  port: 5433\n", encoding="utf-8")
    cfg = load_config(p)
    assert cfg.backend == "postgres"
    assert cfg.chunk_size == 500
    assert cfg.preview_limit == 100
    assert cfg.read_concurrency == 4
    assert cfg.read_timeout_seconds == 30.0
    assert cfg.retry.max_attempts == 3
    assert cfg.database.host == "db"
    assert cfg.database.port == 5433
    assert cfg.supabase.url is None


def test_load_config_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="config file not found"):
        load_config(temp_workdir / "config" / "missing.yml")


def test_load_config_invalid_yaml(temp_workdir: Path):
    p = temp_workdir / "config" / "import.yml"
    p.write_text("store: [backend\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(p)


@pytest.mark.parametrize(
    "body",
    [
        "store:\n  backend: mysql\n",
        "tables:\n  target: imob\n",
        "store:\n  backend: supabase\nchunk_size: 0\n",
        "store:\n  backend: supabase\nunknown_key: 1\n",
        "store:\n  backend: supabase\nretry:\n  max_attempts: 0\n",
        "- store\n",
    ],
)
def test_load_config_validation_errors(temp_workdir: Path, body: str):
    p = temp_workdir / "config" / "import.yml"
    p.write_text(body, encoding="utf-8")
    with pytest.raises(ConfigError, match="config validation failed"):
        load_config(p)
