"""IMOB paste importer: dedup, lojas lookup, coercion and batch upload."""

__version__ = "0.1.0"
