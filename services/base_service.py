"""Base service class for Mimir services."""

from abc import ABC

from interfaces.chunk_store import ChunkStore


class BaseService(ABC):
    """Base service class providing common functionality and dependency management."""

    def __init__(self, chunk_store: ChunkStore):
        """Initialize service with chunk store dependency.

        Args:
            chunk_store: Chunk store implementation
        """
        self._db = chunk_store

    @property
    def store(self) -> ChunkStore:
        """Get chunk store instance."""
        return self._db
