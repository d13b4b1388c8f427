from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from ..db.store import error_message
from ..models.config_models import ImportConfig

"""Bounded retry with exponential backoff for read-side remote calls.

Only pure reads (existence / lookup chunk queries) go through here. Batch
inserts are never retried: a timed-out or failed write has an unknown outcome
and resubmitting it blindly could insert the same rows twice.
"""

__all__ = [
    "ReadPolicy",
    "retry_read",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ReadPolicy:
    """How read chunks are fanned out and retried."""
    max_attempts: int = 3
    base_delay_seconds: float = 0.5
    timeout_seconds: float | None = 30.0  # None = transport default only
    concurrency: int = 4
    chunk_size: int = 500

    @classmethod
    def from_config(cls, config: ImportConfig) -> ReadPolicy:
        return cls(
            max_attempts=config.retry.max_attempts,
            base_delay_seconds=config.retry.base_delay_seconds,
            timeout_seconds=config.read_timeout_seconds,
            concurrency=config.read_concurrency,
            chunk_size=config.chunk_size,
        )


async def retry_read(
    call: Callable[[], Awaitable[T]],
    policy: ReadPolicy,
    *,
    label: str = "read",
) -> T:
    """Await ``call()`` up to ``policy.max_attempts`` times.

    Each attempt is bounded by ``policy.timeout_seconds``. Between attempts the
    delay doubles from ``base_delay_seconds`` with a small random jitter. The
    last failure is re-raised unchanged.
    """
    attempts = max(policy.max_attempts, 1)
    for attempt in range(1, attempts + 1):
        try:
            return await asyncio.wait_for(call(), policy.timeout_seconds)
        except Exception as e:
            if attempt == attempts:
                raise
            base = policy.base_delay_seconds
            delay = base * (2 ** (attempt - 1)) + random.uniform(0, base)
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                label, attempt, attempts, delay, error_message(e),
            )
            await asyncio.sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover
