from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the IMOB importer.

Built by ``imob_import.config.loader.load_config`` after schema validation;
every field except ``backend`` has a default so a minimal YAML file works.
"""


@dataclass(frozen=True)
class DatabaseConfig:
    """PostgreSQL connection settings.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class SupabaseConfig:
    """Supabase project URL and API key (env SUPABASE_URL / SUPABASE_ANON_KEY win)."""
    url: str | None = None
    key: str | None = None


@dataclass(frozen=True)
class RetryConfig:
    """Bounded retry for read-side chunk queries. Writes are never retried."""
    max_attempts: int = 3
    base_delay_seconds: float = 0.5


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for one importer run."""
    backend: str  # supabase | postgres
    target_table: str = "imob"
    lookup_table: str = "lojas"
    chunk_size: int = 500  # 1 リクエストあたりのキー数 / 行数
    preview_limit: int = 100
    read_concurrency: int = 4
    read_timeout_seconds: float = 30.0
    retry: RetryConfig = field(default_factory=RetryConfig)
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
