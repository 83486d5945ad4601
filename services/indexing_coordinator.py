"""Ingestion coordinator for Mimir - orchestrates document synchronization runs."""

from dataclasses import dataclass
from typing import List, Optional

from loguru import logger

from core.exceptions import DataIntegrityError, IngestionError, MimirError
from core.models import Chunk, ChunkReorder, ChunkUpsert, Document, IngestionStats
from core.types import ChunkId, FilePath
from interfaces.chunk_store import ChunkStore
from interfaces.document_source import DocumentSource
from interfaces.llm_provider import ChatProvider
from mimir.chunker import DocumentChunker
from mimir.prompt import CONTEXT_MAX_TOKENS, build_context_messages, build_contextual_text
from mimir.rate_limiter import CancellationToken, RequestScheduler, gather_ordered
from mimir.tokenizer import TokenizerRegistry
from .base_service import BaseService
from .chunk_synchronizer import ChunkSynchronizer
from .embedding_service import EmbeddingBatcher


@dataclass
class _PendingChunk:
    filepath: FilePath
    chunk: Chunk
    contextual_text: Optional[str] = None

    @property
    def embedding_input(self) -> str:
        return self.contextual_text or self.chunk.content


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


class IngestionCoordinator(BaseService):
    """Coordinates chunking, reconciliation, context generation and embedding of documents."""

    def __init__(
        self,
        chunk_store: ChunkStore,
        chat_provider: ChatProvider,
        chat_scheduler: RequestScheduler,
        embedding_batcher: EmbeddingBatcher,
        chunker: DocumentChunker,
        tokenizer: TokenizerRegistry,
        document_source: Optional[DocumentSource] = None,
        generate_context: bool = True,
        prune_missing: bool = True
    ):
        """Initialize ingestion coordinator.

        Args:
            chunk_store: Store holding chunk records
            chat_provider: Provider generating chunk contexts
            chat_scheduler: Scheduler holding the provider's chat budget
            embedding_batcher: Batcher embedding pending chunks
            chunker: Document chunker with token limit settings
            tokenizer: Token counter for chat cost estimates
            document_source: Source listing documents when none are passed in
            generate_context: Whether to generate situating context per chunk
            prune_missing: Whether full runs delete documents missing from the source
        """
        super().__init__(chunk_store)
        self._chat = chat_provider
        self._chat_scheduler = chat_scheduler
        self._batcher = embedding_batcher
        self._chunker = chunker
        self._tokenizer = tokenizer
        self._source = document_source
        self._generate_context = generate_context
        self._prune_missing = prune_missing
        self._synchronizer = ChunkSynchronizer(chunk_store)

    @property
    def chunker(self) -> DocumentChunker:
        return self._chunker

    async def ingest(
        self,
        documents: Optional[List[Document]] = None,
        scope: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None
    ) -> IngestionStats:
        """Synchronize the store with the current documents.

        Reorders and deletes are written before embeddings are requested.
        Contexts for all new or changed chunks are generated concurrently and
        joined before a single embedding request for the whole run.

        Args:
            documents: Documents to ingest (listed from the source when None)
            scope: Sub-path of the source to list; disables pruning
            cancellation: Optional token aborting the run

        Returns:
            Counters describing the work done

        Raises:
            IngestionError: Wrapping the first failure, with the counters so far
        """
        stats = IngestionStats()
        try:
            await self._run(stats, documents, scope, cancellation)
        except Exception as e:
            logger.error(f"Ingestion failed after {stats.to_dict()}: {e}")
            raise IngestionError(stats, e) from e
        return stats

    async def _run(
        self,
        stats: IngestionStats,
        documents: Optional[List[Document]],
        scope: Optional[str],
        cancellation: Optional[CancellationToken]
    ) -> None:
        full_run = documents is None and not scope
        if documents is None:
            if self._source is None:
                raise ValueError("No documents given and no document source configured")
            documents = self._source.list_documents(scope)

        logger.info(f"Processing {_plural(len(documents), 'document')}")

        pending: List[_PendingChunk] = []
        reorders: List[ChunkReorder] = []
        deletes: List[ChunkId] = []

        for document in documents:
            if cancellation is not None:
                cancellation.raise_if_cancelled("ingest")

            chunks = self._chunker.chunk(document.content)
            if not chunks:
                stats.skipped_documents += 1
                logger.warning(f"{document.path}: no chunks were generated, skipping")
                continue

            stats.processed_documents += 1
            diff = self._synchronizer.diff_document(document.path, chunks)

            reorders.extend(diff.reordered)
            deletes.extend(diff.deleted_ids)

            if not diff.new_or_updated:
                logger.debug(f"{document.path}: all chunks unchanged, no LLM work required")
                continue

            pending.extend(_PendingChunk(document.path, chunk) for chunk in diff.new_or_updated)
            logger.info(f"{document.path}: {_plural(len(diff.new_or_updated), 'new or modified chunk')}")

        if pending and self._generate_context:
            documents_by_path = {document.path: document for document in documents}
            logger.info(f"Generating context for {_plural(len(pending), 'chunk')}")
            contexts = await gather_ordered(
                self._contextualize(entry, documents_by_path[entry.filepath], cancellation)
                for entry in pending
            )
            for entry, context in zip(pending, contexts):
                entry.contextual_text = build_contextual_text(context, entry.chunk.content) if context.strip() else None

        self._synchronizer.apply_deletes(deletes)
        stats.deleted_chunks += len(deletes)
        self._synchronizer.apply_reorders(reorders)
        stats.reordered_chunks += len(reorders)

        if pending:
            vectors = await self._batcher.embed_documents(
                [entry.embedding_input for entry in pending], cancellation
            )
            if len(vectors) != len(pending):
                raise DataIntegrityError("ingest", len(pending), len(vectors))

            rows = [
                ChunkUpsert(
                    filepath=entry.filepath,
                    position=entry.chunk.position,
                    title=entry.chunk.title,
                    content=entry.chunk.content,
                    checksum=entry.chunk.checksum,
                    embedding=vector,
                    contextual_text=entry.contextual_text,
                )
                for entry, vector in zip(pending, vectors)
            ]
            self._db.upsert_chunks(rows)
            stats.upserted_chunks += len(rows)
        else:
            logger.info("No new or updated chunks required embeddings")

        if full_run and self._prune_missing:
            stats.pruned_documents = self._prune(documents)

        logger.info(f"Ingestion complete: {stats.to_dict()}")

    async def _contextualize(
        self,
        entry: _PendingChunk,
        document: Document,
        cancellation: Optional[CancellationToken]
    ) -> str:
        system, user = build_context_messages(entry.chunk.content, document.content)
        model = self._chat.chat_model
        token_cost = (
            self._tokenizer.count_tokens(system, model)
            + self._tokenizer.count_tokens(user, model)
            + CONTEXT_MAX_TOKENS
        )
        try:
            return await self._chat_scheduler.run(
                lambda: self._chat.generate_context(entry.chunk.content, document.content),
                token_cost=token_cost,
                description=f"{self._chat_scheduler.name} context {entry.filepath}#{entry.chunk.position}",
                cancellation=cancellation,
            )
        except MimirError as e:
            logger.error(f"Failed to generate context for {entry.filepath}#{entry.chunk.position}: {e}")
            raise e.add_context("chunk", f"{entry.filepath}#{entry.chunk.position}")

    def _prune(self, documents: List[Document]) -> int:
        current = {document.path for document in documents}
        pruned = 0
        for path in self._db.list_document_paths():
            if path not in current:
                removed = self._db.delete_document(path)
                logger.info(f"Pruned {_plural(removed, 'chunk')} of removed document {path}")
                pruned += 1
        return pruned
