from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Upload progress display with tqdm (TTY only).

- a single tqdm instance per upload, counted in rows
- disabled when stdout is not a TTY (CI, redirected output) so captured logs
  are not interleaved with ANSI control sequences
"""

__all__ = [
    "UploadProgress",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class UploadProgress:
    """Row-level progress bar over sequential insert batches."""

    def __init__(self, total_rows: int, total_batches: int, *, description: str = "Inserting") -> None:
        self.total_rows = total_rows
        self.total_batches = total_batches
        self.description = description
        self.current_batch = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def start_batch(self, index: int) -> None:
        self.current_batch = index
        if self.enabled and self.pbar is not None:
            self.pbar.set_description(f"{self.description} (batch {index}/{self.total_batches})")

    def finish_batch(self, rows: int, success: bool = True) -> None:
        if self.enabled and self.pbar is not None:
            if success:
                self.pbar.update(rows)
            self.pbar.set_postfix(failed_batch=None if success else self.current_batch)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> UploadProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
