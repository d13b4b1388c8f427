from __future__ import annotations

import logging
import math
import time
from datetime import UTC, datetime

from ..db.batch_insert import BatchInsertError
from ..db.store import RemoteStore, error_message
from ..models.pending_buffer import PendingInsertBuffer
from ..models.processing_result import BatchStatsAccumulator, InsertReport
from .progress import UploadProgress

"""Batch uploader.

Batches are submitted strictly one after another. Each accepted batch is
dropped from the head of the pending buffer; the first rejected batch stops
the run. Accepted batches stay in the remote table (there is no compensating
delete) and the report says which batch failed and how many rows landed.
"""

__all__ = [
    "insert_all",
]

logger = logging.getLogger(__name__)


async def insert_all(
    buffer: PendingInsertBuffer,
    store: RemoteStore,
    *,
    table: str,
    chunk_size: int,
    show_progress: bool = True,
) -> InsertReport:
    """Drain ``buffer`` into ``table`` in ``chunk_size`` batches.

    Returns:
        InsertReport; ``failed_batch`` (1-based) is set on partial failure and
        the buffer then still holds the failed batch and everything after it.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk size must be >= 1, got {chunk_size}")

    requested = len(buffer)
    total_batches = math.ceil(requested / chunk_size)
    start = datetime.now(UTC)
    if requested == 0:
        return InsertReport(requested=0, inserted=0, total_batches=0, start_time=start, end_time=start)

    stats = BatchStatsAccumulator()
    inserted = 0
    failed_batch: int | None = None
    failure: str | None = None

    progress = UploadProgress(requested, total_batches) if show_progress else None
    try:
        for index in range(1, total_batches + 1):
            batch = buffer.head(chunk_size)
            if progress is not None:
                progress.start_batch(index)
            t0 = time.time()
            try:
                await store.insert(table, batch)
            except BatchInsertError as e:
                failed_batch, failure = index, error_message(e)
            except Exception as e:  # 通信エラー等も同じ部分失敗として扱う
                logger.debug("unexpected insert error type: %s", type(e).__name__)
                failed_batch, failure = index, error_message(e)
            stats.add_batch_time(time.time() - t0)

            if failed_batch is not None:
                if progress is not None:
                    progress.finish_batch(len(batch), success=False)
                logger.error(
                    "insert batch %d/%d failed after %d row(s) persisted: %s",
                    index, total_batches, inserted, failure,
                )
                break

            buffer.drop_head(len(batch))
            inserted += len(batch)
            if progress is not None:
                progress.finish_batch(len(batch))
            logger.debug("insert batch %d/%d ok rows=%d", index, total_batches, len(batch))
    finally:
        if progress is not None:
            progress.close()

    _, avg, p95 = stats.get_stats()
    return InsertReport(
        requested=requested,
        inserted=inserted,
        total_batches=total_batches,
        failed_batch=failed_batch,
        error=failure,
        remaining=len(buffer),
        start_time=start,
        end_time=datetime.now(UTC),
        avg_batch_seconds=avg,
        p95_batch_seconds=p95,
    )
