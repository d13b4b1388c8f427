from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from datetime import datetime
from types import MappingProxyType

from ..db.store import RemoteStore
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ImportConfig
from ..models.error_record import ErrorRecord
from ..models.pending_buffer import PendingInsertBuffer
from ..models.processing_result import InsertReport, ProcessResult
from ..models.records import LookupEntry, RawRecord, TypedRecord
from ..models.schema import KEY_COLUMN, SUPPLIER_COLUMN
from ..parsing.reader import parse
from .dedup import business_key, filter_new
from .enrichment import build_lookup, supplier_id
from .errors import InputError, SessionBusyError, VerificationError
from .retry import ReadPolicy
from .transform import transform
from .uploader import insert_all

"""Import session: owner of one process -> insert cycle.

The session holds the state the pipeline stages share (pending insert buffer,
last lookup map) and allows one cycle at a time: a ``process`` or ``insert``
call that arrives while another is running fails with SessionBusyError instead
of interleaving with it.

process: input checks -> duplicate filter -> reference lookup -> transform
         -> replace pending buffer
insert:  pending buffer -> sequential batches (partial failure reported)
"""

__all__ = [
    "ImportSession",
]

logger = logging.getLogger(__name__)

_ERROR_TYPES = {
    "dedup": "DUPLICATE_CHECK_FAILED",
    "lookup": "LOOKUP_FAILED",
}


class ImportSession:
    def __init__(
        self,
        store: RemoteStore,
        config: ImportConfig,
        error_log: ErrorLogBuffer | None = None,
        *,
        show_progress: bool = True,
    ) -> None:
        self._store = store
        self._config = config
        self._policy = ReadPolicy.from_config(config)
        self._buffer = PendingInsertBuffer()
        self._lookup: dict[str, LookupEntry] = {}
        self._busy = False
        self._show_progress = show_progress
        self.error_log = error_log if error_log is not None else ErrorLogBuffer()
        self.last_result: ProcessResult | None = None

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def pending(self) -> tuple[TypedRecord, ...]:
        return self._buffer.snapshot()

    @property
    def lookup(self) -> Mapping[str, LookupEntry]:
        return MappingProxyType(self._lookup)

    @asynccontextmanager
    async def _single_flight(self, operation: str) -> AsyncIterator[None]:
        if self._busy:
            raise SessionBusyError(f"cannot {operation}: another cycle is still running")
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    async def process(
        self,
        text: str,
        empresa: str | None,
        produto: str | None,
        *,
        now: datetime | None = None,
    ) -> ProcessResult:
        """Parse pasted text and prepare the new rows for insertion."""
        async with self._single_flight("process"):
            if not text or not text.strip():
                raise InputError("no data pasted")
            self._check_selectors(empresa, produto)
            return await self._process(parse(text), empresa, produto, now)  # type: ignore[arg-type]

    async def process_records(
        self,
        records: Sequence[RawRecord],
        empresa: str | None,
        produto: str | None,
        *,
        now: datetime | None = None,
    ) -> ProcessResult:
        """Same as ``process`` for records already read from an uploaded file."""
        async with self._single_flight("process"):
            if not records:
                raise InputError("no data in export")
            self._check_selectors(empresa, produto)
            return await self._process(records, empresa, produto, now)  # type: ignore[arg-type]

    @staticmethod
    def _check_selectors(empresa: str | None, produto: str | None) -> None:
        missing = [n for n, v in (("empresa", empresa), ("produto", produto)) if not v or not v.strip()]
        if missing:
            raise InputError(f"select {' and '.join(missing)} before processing")

    async def _process(
        self,
        records: Sequence[RawRecord],
        empresa: str,
        produto: str,
        now: datetime | None,
    ) -> ProcessResult:
        started = time.perf_counter()
        if not any(business_key(r) for r in records):
            raise InputError(f"no valid {KEY_COLUMN} found")

        logger.info("parsed %d rows, checking duplicates in %s", len(records), self._config.target_table)
        try:
            dedup = await filter_new(
                records, self._store, table=self._config.target_table, policy=self._policy
            )
            lookup = await build_lookup(
                dedup.new_records, self._store, table=self._config.lookup_table, policy=self._policy
            )
        except VerificationError as e:
            self._record_failure(e)
            raise

        rows = transform(dedup.new_records, lookup, empresa, produto, now=now)
        hits = sum(
            1 for r in dedup.new_records
            if (sid := supplier_id(r.get(SUPPLIER_COLUMN))) is not None and sid in lookup
        )

        # 全段階成功後にのみ状態を差し替える
        self._buffer.replace(rows)
        self._lookup = lookup
        result = ProcessResult(
            total_parsed=len(records),
            duplicates=dedup.duplicate_count,
            missing_key=dedup.missing_key_count,
            rows=rows,
            lookup_hits=hits,
            elapsed_seconds=time.perf_counter() - started,
        )
        self.last_result = result
        if dedup.new_records and hits < len(dedup.new_records):
            logger.info(
                "%d of %d new rows had no match in %s (loja falls back to fornecedor)",
                len(dedup.new_records) - hits, len(dedup.new_records), self._config.lookup_table,
            )
        return result

    def _record_failure(self, error: VerificationError) -> None:
        logger.debug("%s stage failed: %s", error.stage, error.message)
        self.error_log.append(
            ErrorRecord.create(
                stage=error.stage,
                batch=-1,
                error_type=_ERROR_TYPES.get(error.stage, "VERIFICATION_FAILED"),
                message=error.message,
            )
        )

    async def insert(self) -> InsertReport:
        """Upload the pending buffer. Re-running after a failure resubmits what is left."""
        async with self._single_flight("insert"):
            if not self._buffer:
                raise InputError("no new rows to insert")
            logger.info("sending %d rows to %s", len(self._buffer), self._config.target_table)
            report = await insert_all(
                self._buffer,
                self._store,
                table=self._config.target_table,
                chunk_size=self._config.chunk_size,
                show_progress=self._show_progress,
            )
            if not report.succeeded:
                self.error_log.append(
                    ErrorRecord.create(
                        stage="insert",
                        batch=report.failed_batch or -1,
                        error_type="INSERT_BATCH_FAILED",
                        message=report.error or "",
                    )
                )
            return report
