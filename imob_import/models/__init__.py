"""Domain models for the IMOB paste importer.

Column layout, record types, the pending insert buffer and the result models
shared by the pipeline services.
"""

from .pending_buffer import PendingInsertBuffer
from .processing_result import InsertReport, ProcessResult
from .records import LookupEntry, RawRecord, TypedRecord
from .schema import COLUMN_RULES, DERIVED_COLUMNS, OUTPUT_COLUMNS, RAW_COLUMNS, ColumnType

__all__ = [
    # Column layout
    "ColumnType",
    "RAW_COLUMNS",
    "DERIVED_COLUMNS",
    "OUTPUT_COLUMNS",
    "COLUMN_RULES",
    # Records
    "RawRecord",
    "TypedRecord",
    "LookupEntry",
    # Processing models
    "PendingInsertBuffer",
    "ProcessResult",
    "InsertReport",
]
