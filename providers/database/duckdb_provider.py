"""DuckDB provider implementation for Mimir - chunk store with vector and full-text search."""

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import duckdb
from loguru import logger

from core.exceptions import DatabaseError, LexicalSearchUnavailable, ValidationError
from core.models import ChunkReorder, ChunkUpsert, RetrievedChunk, StoredChunkRecord, plan_position_moves

DEFAULT_DIMENSIONS = 1536
CHUNKS_TABLE = "chunks"

_RESULT_COLUMNS = "filepath, chunk_position, title, content, contextual_text"


class DuckDBChunkStore:
    """DuckDB implementation of the ChunkStore protocol.

    Chunk rows live in a single table keyed by a sequence ID. The
    (filepath, chunk_position) pair is kept unique by the write paths rather
    than a constraint, since DuckDB rejects updates that transiently touch
    indexed key columns.
    """

    def __init__(self, db_path: Union[Path, str], dimensions: int = DEFAULT_DIMENSIONS):
        """Initialize DuckDB chunk store.

        Args:
            db_path: Path to DuckDB database file or ":memory:" for in-memory database
            dimensions: Embedding vector length stored per chunk
        """
        if dimensions <= 0:
            raise ValidationError("dimensions", dimensions, "Dimensions must be positive")

        self._db_path = db_path
        self._dimensions = dimensions
        self.connection: Optional[Any] = None

        self._fts_loaded = False
        self._fts_error: Optional[Exception] = None
        self._fts_dirty = True

    @property
    def db_path(self) -> Union[Path, str]:
        """Database connection path or identifier."""
        return self._db_path

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def is_connected(self) -> bool:
        """Check if database connection is active."""
        return self.connection is not None

    def connect(self) -> None:
        """Establish database connection and initialize schema."""
        logger.info(f"Connecting to DuckDB database: {self.db_path}")

        # Ensure parent directory exists for file-based databases
        if str(self.db_path) != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._connect_with_wal_validation()
            logger.info("DuckDB connection established")

            self._load_extensions()
            self.create_schema()

            logger.info("DuckDB chunk store initialization complete")

        except Exception as e:
            logger.error(f"DuckDB connection failed: {e}")
            raise

    def _connect_with_wal_validation(self) -> None:
        """Connect to DuckDB with WAL corruption detection and automatic cleanup."""
        try:
            self.connection = duckdb.connect(str(self.db_path))
            logger.debug("DuckDB connection successful")

        except duckdb.Error as e:
            error_msg = str(e)

            if self._is_wal_corruption_error(error_msg):
                logger.warning(f"WAL corruption detected: {error_msg}")
                self._handle_wal_corruption()

                try:
                    self.connection = duckdb.connect(str(self.db_path))
                    logger.info("DuckDB connection successful after WAL cleanup")
                except Exception as retry_error:
                    logger.error(f"Connection failed even after WAL cleanup: {retry_error}")
                    raise
            else:
                raise

    def _is_wal_corruption_error(self, error_msg: str) -> bool:
        """Check if error message indicates WAL corruption."""
        corruption_indicators = [
            "Failure while replaying WAL file",
            "BinderException",
            "Binder Error"
        ]

        return any(indicator in error_msg for indicator in corruption_indicators)

    def _handle_wal_corruption(self) -> None:
        """Handle WAL corruption by removing the corrupted WAL file."""
        db_path = Path(self.db_path)
        wal_file = db_path.with_suffix(db_path.suffix + '.wal')

        if wal_file.exists():
            file_size = wal_file.stat().st_size
            logger.warning(f"Removing corrupted WAL file: {wal_file} ({file_size:,} bytes)")
            os.remove(wal_file)
            logger.info(f"Corrupted WAL file removed successfully: {wal_file}")
        else:
            logger.warning(f"WAL corruption detected but no WAL file found at: {wal_file}")

    def disconnect(self) -> None:
        """Close database connection and cleanup resources."""
        if self.connection is not None:
            self.connection.close()
            self.connection = None
            self._fts_loaded = False
            self._fts_dirty = True
            logger.info("DuckDB connection closed")

    def _require_connection(self) -> Any:
        if self.connection is None:
            raise DatabaseError(reason="No database connection")
        return self.connection

    def _load_extensions(self) -> None:
        """Load the full-text search extension.

        A missing extension only disables lexical search; vector search and
        writes keep working.
        """
        connection = self._require_connection()
        try:
            connection.execute("INSTALL fts")
            connection.execute("LOAD fts")
            self._fts_loaded = True
            self._fts_error = None
            logger.info("FTS extension loaded successfully")
        except Exception as e:
            self._fts_loaded = False
            self._fts_error = e
            logger.warning(f"FTS extension unavailable, lexical search disabled: {e}")

    def create_schema(self) -> None:
        """Create the chunks table and its ID sequence."""
        logger.info("Creating DuckDB schema")
        connection = self._require_connection()

        try:
            connection.execute("CREATE SEQUENCE IF NOT EXISTS chunks_id_seq")
            connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {CHUNKS_TABLE} (
                    id BIGINT PRIMARY KEY DEFAULT nextval('chunks_id_seq'),
                    filepath TEXT NOT NULL,
                    chunk_position INTEGER NOT NULL,
                    title TEXT,
                    content TEXT NOT NULL,
                    contextual_text TEXT,
                    checksum TEXT NOT NULL,
                    embedding FLOAT[{self._dimensions}] NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            logger.info("DuckDB schema created successfully")

        except Exception as e:
            logger.error(f"Failed to create DuckDB schema: {e}")
            raise DatabaseError("create_schema", CHUNKS_TABLE, str(e), cause=e) from e

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Any]:
        """Run the enclosed statements atomically, rolling back on any error."""
        connection = self._require_connection()
        connection.execute("BEGIN TRANSACTION")
        try:
            yield connection
            connection.execute("COMMIT")
        except Exception as e:
            try:
                connection.execute("ROLLBACK")
                logger.info(f"Transaction for {operation} rolled back due to error")
            except duckdb.Error as rollback_error:
                logger.error(f"Rollback of {operation} failed: {rollback_error}")
            logger.error(f"{operation} failed: {e}")
            if isinstance(e, DatabaseError):
                raise
            raise DatabaseError(operation, CHUNKS_TABLE, str(e), cause=e) from e

    # Reconciliation

    def fetch_existing_chunks(self, path: str) -> Dict[int, StoredChunkRecord]:
        """Stored records of a document keyed by position."""
        connection = self._require_connection()
        rows = connection.execute(
            f"SELECT id, chunk_position, checksum FROM {CHUNKS_TABLE} "
            "WHERE filepath = ? ORDER BY chunk_position",
            [path]
        ).fetchall()
        return {
            row[1]: StoredChunkRecord.from_dict({"id": row[0], "position": row[1], "checksum": row[2]})
            for row in rows
        }

    def upsert_chunks(self, rows: List[ChunkUpsert]) -> None:
        """Insert rows, replacing any record already at the same (filepath, position)."""
        if not rows:
            return

        for row in rows:
            if len(row.embedding) != self._dimensions:
                raise ValidationError(
                    "embedding",
                    len(row.embedding),
                    f"Expected {self._dimensions} dimensions",
                    context={"filepath": row.filepath, "position": row.position},
                )

        with self._transaction("upsert_chunks") as connection:
            for row in rows:
                connection.execute(
                    f"DELETE FROM {CHUNKS_TABLE} WHERE filepath = ? AND chunk_position = ?",
                    [row.filepath, row.position]
                )
                connection.execute(
                    f"""
                    INSERT INTO {CHUNKS_TABLE}
                        (filepath, chunk_position, title, content, contextual_text, checksum, embedding)
                    VALUES (?, ?, ?, ?, ?, ?, ?::FLOAT[{self._dimensions}])
                    """,
                    [row.filepath, row.position, row.title, row.content,
                     row.contextual_text, row.checksum, list(row.embedding)]
                )

        self._fts_dirty = True
        logger.debug(f"Upserted {len(rows)} chunk rows")

    def update_chunk_positions(self, moves: List[ChunkReorder]) -> None:
        """Move records to new positions in two phases within one transaction."""
        if not moves:
            return

        phase_one, phase_two = plan_position_moves(moves)
        statement = f"UPDATE {CHUNKS_TABLE} SET chunk_position = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?"

        with self._transaction("update_chunk_positions") as connection:
            for phase in (phase_one, phase_two):
                for move in phase:
                    connection.execute(statement, [move.position, move.id])

        logger.debug(f"Moved {len(moves)} chunk rows")

    def delete_chunks_by_id(self, ids: List[int]) -> None:
        """Delete records by ID."""
        if not ids:
            return

        with self._transaction("delete_chunks_by_id") as connection:
            for chunk_id in ids:
                connection.execute(f"DELETE FROM {CHUNKS_TABLE} WHERE id = ?", [chunk_id])

        self._fts_dirty = True
        logger.debug(f"Deleted {len(ids)} chunk rows")

    def list_document_paths(self) -> List[str]:
        """Paths of every document with stored records."""
        connection = self._require_connection()
        rows = connection.execute(
            f"SELECT DISTINCT filepath FROM {CHUNKS_TABLE} ORDER BY filepath"
        ).fetchall()
        return [row[0] for row in rows]

    def delete_document(self, path: str) -> int:
        """Delete all records of a document and return how many were removed."""
        with self._transaction("delete_document") as connection:
            count = connection.execute(
                f"SELECT COUNT(*) FROM {CHUNKS_TABLE} WHERE filepath = ?", [path]
            ).fetchone()[0]
            connection.execute(f"DELETE FROM {CHUNKS_TABLE} WHERE filepath = ?", [path])

        if count:
            self._fts_dirty = True
        return count

    # Search

    def vector_search(
        self,
        embedding: List[float],
        match_count: int,
        threshold: Optional[float] = None
    ) -> List[RetrievedChunk]:
        """Perform cosine-similarity search over stored embeddings."""
        connection = self._require_connection()

        if len(embedding) != self._dimensions:
            raise ValidationError(
                "embedding", len(embedding), f"Expected {self._dimensions} dimensions"
            )

        similarity = f"array_cosine_similarity(embedding, ?::FLOAT[{self._dimensions}])"
        query = f"""
            SELECT {_RESULT_COLUMNS}, similarity FROM (
                SELECT {_RESULT_COLUMNS}, {similarity} AS similarity
                FROM {CHUNKS_TABLE}
            )
        """
        params: List[Any] = [list(embedding)]

        if threshold is not None:
            query += " WHERE similarity >= ?"
            params.append(threshold)

        query += " ORDER BY similarity DESC, filepath, chunk_position LIMIT ?"
        params.append(match_count)

        try:
            results = connection.execute(query, params).fetchall()
        except duckdb.Error as e:
            logger.error(f"Failed to perform vector search: {e}")
            raise DatabaseError("vector_search", CHUNKS_TABLE, str(e), cause=e) from e

        return [
            RetrievedChunk.from_dict({
                "filepath": result[0],
                "position": result[1],
                "title": result[2],
                "content": result[3],
                "contextual_text": result[4],
                "similarity": result[5],
            })
            for result in results
        ]

    def _ensure_fts_index(self) -> None:
        """Rebuild the full-text index if rows changed since it was built."""
        if not self._fts_loaded:
            raise LexicalSearchUnavailable("FTS extension is not loaded", cause=self._fts_error)
        if not self._fts_dirty:
            return

        connection = self._require_connection()
        try:
            connection.execute(
                f"PRAGMA create_fts_index('{CHUNKS_TABLE}', 'id', 'title', 'content', overwrite=1)"
            )
        except duckdb.Error as e:
            raise LexicalSearchUnavailable(f"Failed to build full-text index: {e}", cause=e) from e
        self._fts_dirty = False
        logger.debug("Full-text index rebuilt")

    def lexical_search(self, query: str, match_count: int) -> List[RetrievedChunk]:
        """Perform BM25 full-text search over titles and content."""
        if not query.strip():
            return []

        connection = self._require_connection()
        count = connection.execute(f"SELECT COUNT(*) FROM {CHUNKS_TABLE}").fetchone()[0]
        if count == 0:
            return []

        self._ensure_fts_index()

        try:
            results = connection.execute(
                f"""
                SELECT {_RESULT_COLUMNS}, score FROM (
                    SELECT {_RESULT_COLUMNS}, fts_main_{CHUNKS_TABLE}.match_bm25(id, ?) AS score
                    FROM {CHUNKS_TABLE}
                )
                WHERE score IS NOT NULL
                ORDER BY score DESC, filepath, chunk_position
                LIMIT ?
                """,
                [query, match_count]
            ).fetchall()
        except duckdb.Error as e:
            logger.error(f"Failed to perform lexical search: {e}")
            raise LexicalSearchUnavailable(str(e), cause=e) from e

        return [
            RetrievedChunk.from_dict({
                "filepath": result[0],
                "position": result[1],
                "title": result[2],
                "content": result[3],
                "contextual_text": result[4],
                "lexical_rank": result[5],
            })
            for result in results
        ]

    def get_stats(self) -> Dict[str, Any]:
        """Get store statistics (document count, chunk count, etc.)."""
        connection = self._require_connection()

        try:
            documents, chunks, contextual = connection.execute(f"""
                SELECT
                    COUNT(DISTINCT filepath),
                    COUNT(*),
                    COUNT(contextual_text)
                FROM {CHUNKS_TABLE}
            """).fetchone()
        except duckdb.Error as e:
            logger.error(f"Failed to get database stats: {e}")
            raise DatabaseError("get_stats", CHUNKS_TABLE, str(e), cause=e) from e

        return {
            "documents": documents,
            "chunks": chunks,
            "contextualized_chunks": contextual,
            "dimensions": self._dimensions,
            "lexical_search": self._fts_loaded,
            "db_path": str(self.db_path),
        }
