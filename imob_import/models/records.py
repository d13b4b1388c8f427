from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias

"""Record types flowing through the import pipeline.

RawRecord: one pasted line, exactly the RAW_COLUMNS keys, str or None values.
TypedRecord: a RawRecord after transformation, raw + derived columns, with
integer / ISO timestamp / str / None values.
"""

__all__ = [
    "RawRecord",
    "TypedRecord",
    "LookupEntry",
]

RawRecord: TypeAlias = dict[str, str | None]
TypedRecord: TypeAlias = dict[str, int | str | None]


@dataclass(frozen=True)
class LookupEntry:
    """One row of the reference table (lojas), keyed by supplier id."""
    loja: str | None  # nome_loja
    segmento: str | None
