from __future__ import annotations

from enum import Enum

"""Fixed column layout of the IMOB stock-movement export.

The export has no header row: fields are identified by position only, so the
order of RAW_COLUMNS is the contract with the source system. Derived columns
are added by the row transformer and never come from the paste.
"""

__all__ = [
    "ColumnType",
    "RAW_COLUMNS",
    "DERIVED_COLUMNS",
    "OUTPUT_COLUMNS",
    "COLUMN_RULES",
    "KEY_COLUMN",
    "SUPPLIER_COLUMN",
    "DATE_COLUMN",
    "SUPPLIER_SEPARATOR",
    "LOOKUP_ID_COLUMN",
    "LOOKUP_NAME_COLUMN",
    "LOOKUP_SEGMENT_COLUMN",
]


class ColumnType(Enum):
    """Coercion rule applied to a typed column."""
    INTEGER = "bigint"
    TIMESTAMP = "timestamp"


KEY_COLUMN = "SEQMOVIMENTAÇÃO"  # 業務キー (重複判定)
DATE_COLUMN = "DATA"
SUPPLIER_COLUMN = "ID - Fornecedor"  # "<id> - <nome>" 形式の複合列
SUPPLIER_SEPARATOR = " - "

RAW_COLUMNS: tuple[str, ...] = (
    KEY_COLUMN,
    DATE_COLUMN,
    "TIPO",
    "DOC",
    "QUANTIDADE",
    "LOCAL",
    "SALDO",
    "OPERAÇÃO",
    SUPPLIER_COLUMN,
    "data2",
    "usuario",
)

# Emp / Produto: operator selection; ID / fornecedor: split of SUPPLIER_COLUMN;
# ano: year of DATA; Coluna1 / Coluna2: reserved; loja / Segmento: lookup join.
DERIVED_COLUMNS: tuple[str, ...] = (
    "Emp",
    "Produto",
    "ID",
    "fornecedor",
    "ano",
    "Coluna1",
    "Coluna2",
    "loja",
    "Segmento",
)

OUTPUT_COLUMNS: tuple[str, ...] = RAW_COLUMNS + DERIVED_COLUMNS

COLUMN_RULES: tuple[tuple[str, ColumnType], ...] = (
    (KEY_COLUMN, ColumnType.INTEGER),
    ("DOC", ColumnType.INTEGER),
    ("QUANTIDADE", ColumnType.INTEGER),
    ("SALDO", ColumnType.INTEGER),
    ("ID", ColumnType.INTEGER),
    ("Emp", ColumnType.INTEGER),
    ("ano", ColumnType.INTEGER),
    (DATE_COLUMN, ColumnType.TIMESTAMP),
    ("data2", ColumnType.TIMESTAMP),
)

# Reference table (lojas) projection
LOOKUP_ID_COLUMN = "id"
LOOKUP_NAME_COLUMN = "nome_loja"
LOOKUP_SEGMENT_COLUMN = "segmento"
