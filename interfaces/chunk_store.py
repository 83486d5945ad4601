"""ChunkStore protocol for Mimir - abstract interface for chunk persistence and search."""

from typing import Any, Protocol

from core.models import ChunkReorder, ChunkUpsert, RetrievedChunk, StoredChunkRecord


class ChunkStore(Protocol):
    """Abstract protocol for chunk stores.

    Defines the interface every store implementation must follow: CRUD on
    chunk records keyed by (path, position) plus vector and lexical search.
    """

    @property
    def is_connected(self) -> bool:
        """Check if the store connection is active."""
        ...

    def connect(self) -> None:
        """Establish the connection and initialize the schema."""
        ...

    def disconnect(self) -> None:
        """Close the connection and release resources."""
        ...

    # Reconciliation
    def fetch_existing_chunks(self, path: str) -> dict[int, StoredChunkRecord]:
        """Stored records of a document keyed by position."""
        ...

    def upsert_chunks(self, rows: list[ChunkUpsert]) -> None:
        """Insert or replace rows keyed by (filepath, position)."""
        ...

    def update_chunk_positions(self, moves: list[ChunkReorder]) -> None:
        """Move records to new positions without ever sharing a (path, position)."""
        ...

    def delete_chunks_by_id(self, ids: list[int]) -> None:
        """Delete records by ID."""
        ...

    def list_document_paths(self) -> list[str]:
        """Paths of every document with stored records."""
        ...

    def delete_document(self, path: str) -> int:
        """Delete all records of a document and return how many were removed."""
        ...

    # Search
    def vector_search(
        self, embedding: list[float], match_count: int, threshold: float | None = None
    ) -> list[RetrievedChunk]:
        """Records ranked by cosine similarity, at or above the threshold."""
        ...

    def lexical_search(self, query: str, match_count: int) -> list[RetrievedChunk]:
        """Records ranked by full-text relevance.

        Raises:
            LexicalSearchUnavailable: If the store cannot serve lexical queries
        """
        ...

    def get_stats(self) -> dict[str, Any]:
        """Store statistics (document count, chunk count, etc.)."""
        ...
