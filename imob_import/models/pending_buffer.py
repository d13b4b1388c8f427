from __future__ import annotations

from collections.abc import Iterator, Sequence

from .records import TypedRecord

"""PendingInsertBuffer: transformed rows waiting for upload.

Owned by exactly one ImportSession. ``replace`` is called by a process cycle,
``drop_head`` by the uploader after each accepted batch, so after a failed
upload the buffer still starts with the batch that failed.
"""

__all__ = [
    "PendingInsertBuffer",
]


class PendingInsertBuffer:
    def __init__(self, rows: Sequence[TypedRecord] | None = None) -> None:
        self._rows: list[TypedRecord] = list(rows or [])

    def replace(self, rows: Sequence[TypedRecord]) -> None:
        self._rows = list(rows)

    def head(self, size: int) -> list[TypedRecord]:
        return self._rows[:size]

    def drop_head(self, count: int) -> None:
        del self._rows[:count]

    def clear(self) -> None:
        self._rows.clear()

    def snapshot(self) -> tuple[TypedRecord, ...]:
        return tuple(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __bool__(self) -> bool:
        return bool(self._rows)

    def __iter__(self) -> Iterator[TypedRecord]:
        return iter(self._rows)
