"""Embedding service for Mimir - batches texts and embeds them through the rate-limited scheduler."""

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Tuple

from loguru import logger

from core.exceptions import DataIntegrityError
from core.types import EmbeddingVector
from interfaces.llm_provider import EmbeddingProvider
from mimir.rate_limiter import CancellationToken, RequestScheduler
from mimir.tokenizer import TokenizerRegistry


@dataclass(frozen=True)
class EmbeddingBatch:
    """A slice of the pending texts with its position in the request."""
    index: int
    texts: List[str]
    tokens: int


class EmbeddingBatcher:
    """Embeds text lists in bounded batches while preserving input order."""

    def __init__(
        self,
        provider: EmbeddingProvider,
        scheduler: RequestScheduler,
        tokenizer: TokenizerRegistry,
        batch_size: Optional[int] = None
    ):
        """Initialize embedding batcher.

        Args:
            provider: Embedding provider performing one request per batch
            scheduler: Scheduler holding the provider's embedding budget
            tokenizer: Token counter used to estimate per-batch cost
            batch_size: Texts per request (defaults to the scheduler budget)
        """
        self._provider = provider
        self._scheduler = scheduler
        self._tokenizer = tokenizer
        self._batch_size = batch_size or scheduler.budget.batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def create_batches(self, texts: List[str]) -> List[EmbeddingBatch]:
        """Split texts into index-tagged batches with token estimates."""
        model = self._provider.embedding_model
        batches = []
        for index, start in enumerate(range(0, len(texts), self._batch_size)):
            batch_texts = texts[start:start + self._batch_size]
            batches.append(EmbeddingBatch(
                index=index,
                texts=batch_texts,
                tokens=self._tokenizer.count_batch(batch_texts, model),
            ))
        return batches

    async def embed_documents(
        self,
        texts: List[str],
        cancellation: Optional[CancellationToken] = None
    ) -> List[EmbeddingVector]:
        """Embed texts, returning one vector per text in input order.

        Args:
            texts: Texts to embed
            cancellation: Optional token aborting pending and in-flight batches

        Returns:
            Vectors aligned with `texts`

        Raises:
            DataIntegrityError: If the provider returns the wrong number of vectors
        """
        if not texts:
            return []

        batches = self.create_batches(texts)
        logger.info(
            f"Embedding {len(texts)} text{'s' if len(texts) != 1 else ''} in {len(batches)} "
            f"batch{'es' if len(batches) != 1 else ''} using {self._provider.name}/{self._provider.embedding_model}"
        )

        tasks = [asyncio.ensure_future(self._embed_batch(batch, cancellation)) for batch in batches]
        completed: List[Tuple[int, List[EmbeddingVector]]] = []
        try:
            for next_done in asyncio.as_completed(tasks):
                completed.append(await next_done)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        completed.sort(key=lambda entry: entry[0])
        vectors = [vector for _, batch_vectors in completed for vector in batch_vectors]

        if len(vectors) != len(texts):
            raise DataIntegrityError("embed_documents", len(texts), len(vectors))
        return vectors

    async def embed_query(
        self,
        text: str,
        cancellation: Optional[CancellationToken] = None
    ) -> EmbeddingVector:
        """Embed a single query text."""
        vectors = await self.embed_documents([text], cancellation)
        return vectors[0]

    async def _embed_batch(
        self,
        batch: EmbeddingBatch,
        cancellation: Optional[CancellationToken]
    ) -> Tuple[int, List[EmbeddingVector]]:
        vectors = await self._scheduler.run(
            lambda: self._provider.embed_batch(batch.texts),
            token_cost=batch.tokens,
            description=f"{self._scheduler.name} batch {batch.index}",
            cancellation=cancellation,
        )
        if len(vectors) != len(batch.texts):
            raise DataIntegrityError(
                "embed_batch", len(batch.texts), len(vectors), context={"batch": batch.index}
            )
        logger.debug(f"Embedded batch {batch.index} ({len(batch.texts)} texts, ~{batch.tokens} tokens)")
        return batch.index, vectors
