from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DatabaseConfig,
    ImportConfig,
    RetryConfig,
    SupabaseConfig,
)

"""Config loader.

Responsibilities:
- Load YAML (default ``config/import.yml``)
- Validate against the packaged JSON schema (``config_schema.json``)
- Apply defaults for every optional key
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing / not JSON, or the data violates it
            (missing required keys, wrong types, unknown keys)
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config validation failed: top level must be a mapping")

    _validate_config_schema(data)

    tables = data.get("tables") or {}
    retry_raw = data.get("retry") or {}
    sb_raw = data.get("supabase") or {}
    db_raw = data.get("database") or {}
    defaults = RetryConfig()

    return ImportConfig(
        backend=data["store"]["backend"],
        target_table=tables.get("target", "imob"),
        lookup_table=tables.get("lookup", "lojas"),
        chunk_size=data.get("chunk_size", 500),
        preview_limit=data.get("preview_limit", 100),
        read_concurrency=data.get("read_concurrency", 4),
        read_timeout_seconds=float(data.get("read_timeout_seconds", 30.0)),
        retry=RetryConfig(
            max_attempts=retry_raw.get("max_attempts", defaults.max_attempts),
            base_delay_seconds=float(
                retry_raw.get("base_delay_seconds", defaults.base_delay_seconds)
            ),
        ),
        supabase=SupabaseConfig(url=sb_raw.get("url"), key=sb_raw.get("key")),
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
        ),
    )
