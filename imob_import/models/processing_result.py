from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from datetime import datetime

from .records import TypedRecord

"""Result models for one process / insert cycle.

ProcessResult carries the three preview counts (parsed, duplicates, new) and
the transformed rows; InsertReport describes how far an upload got.
"""


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of one ``ImportSession.process`` call."""
    total_parsed: int  # 貼り付け行数
    duplicates: int  # 既存キーとして除外した行数
    missing_key: int  # 業務キー空で除外した行数
    rows: list[TypedRecord] = field(default_factory=list)  # 変換済み新規行
    lookup_hits: int = 0  # lojas で解決できた新規行数
    elapsed_seconds: float = 0.0

    @property
    def new_rows(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class InsertReport:
    """Outcome of one ``insert_all`` run.

    ``failed_batch`` is 1-based and None on full success. ``inserted`` counts
    rows of batches the store accepted; they stay persisted even when a later
    batch fails.
    """
    requested: int
    inserted: int
    total_batches: int
    failed_batch: int | None = None
    error: str | None = None
    remaining: int = 0
    start_time: datetime | None = None
    end_time: datetime | None = None
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.failed_batch is None


class BatchStatsAccumulator:
    """Collects per-batch timings and summarizes them (count, mean, p95)."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Return (total_batches, avg_batch_seconds, p95_batch_seconds)."""
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]  # 95th percentile (19th out of 20 quantiles, 0-indexed)

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
