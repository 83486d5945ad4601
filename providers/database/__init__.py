"""Database providers package for Mimir - concrete chunk store implementations."""

from .duckdb_provider import DuckDBChunkStore

__all__ = [
    "DuckDBChunkStore",
]
