from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from ..db.store import error_message
from .errors import VerificationError
from .retry import ReadPolicy, retry_read

"""Chunked fan-out for read-side queries.

Keys are split into fixed-size chunks (server-side list limits are unknown),
one query per chunk is dispatched concurrently, and every chunk is awaited
before anything is returned. A single failed chunk fails the whole call.
"""

T = TypeVar("T")
R = TypeVar("R")


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    if size < 1:
        raise ValueError(f"chunk size must be >= 1, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def fetch_chunks(
    items: Sequence[T],
    query: Callable[[list[T]], Awaitable[R]],
    policy: ReadPolicy,
    *,
    stage: str,
) -> list[R]:
    """Run ``query`` once per chunk of ``items``; results in chunk order.

    Raises:
        VerificationError: any chunk still failing after its retries. Results
            of the chunks that succeeded are discarded.
    """
    chunks = chunked(items, policy.chunk_size)
    semaphore = asyncio.Semaphore(max(policy.concurrency, 1))
    total = len(chunks)

    async def _run(index: int, chunk: list[T]) -> R:
        async with semaphore:
            return await retry_read(
                lambda: query(chunk),
                policy,
                label=f"{stage} chunk {index}/{total}",
            )

    # return_exceptions=True: 全チャンク完了まで待ってから判定 (部分結果は使わない)
    results = await asyncio.gather(
        *(_run(i, c) for i, c in enumerate(chunks, start=1)),
        return_exceptions=True,
    )
    for res in results:
        if isinstance(res, BaseException):
            if isinstance(res, asyncio.CancelledError):
                raise res
            raise VerificationError(stage, error_message(res)) from res
    return results  # type: ignore[return-value]
