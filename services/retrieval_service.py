"""Retrieval service for Mimir - hybrid vector and lexical ranking of stored chunks."""

import math
from typing import Dict, List, Optional, Tuple

from loguru import logger

from core.models import RetrievedChunk
from interfaces.chunk_store import ChunkStore
from .base_service import BaseService

DEFAULT_SIMILARITY_THRESHOLD = 0.75


def merge_matches(
    vector_results: List[RetrievedChunk],
    lexical_results: List[RetrievedChunk],
    limit: int
) -> List[RetrievedChunk]:
    """Merge vector and lexical results into one ranked list.

    Results are keyed by (filepath, position). A record found by both searches
    carries both scores. Ordering is similarity descending, then lexical rank
    descending, then position in the vector results, then position in the
    lexical results; missing scores sort last.

    Args:
        vector_results: Rows from vector search, best first
        lexical_results: Rows from lexical search, best first
        limit: Maximum number of results to return

    Returns:
        Ranked, truncated list of merged results
    """
    merged: Dict[Tuple[str, int], RetrievedChunk] = {}
    vector_index: Dict[Tuple[str, int], int] = {}
    lexical_index: Dict[Tuple[str, int], int] = {}

    for index, result in enumerate(vector_results):
        key = result.key
        if key in merged:
            merged[key] = merged[key].merged_with(result)
        else:
            merged[key] = result
            vector_index[key] = index

    for index, result in enumerate(lexical_results):
        key = result.key
        if key in merged:
            merged[key] = merged[key].merged_with(result)
        else:
            merged[key] = result
        lexical_index.setdefault(key, index)

    def sort_key(key: Tuple[str, int]):
        match = merged[key]
        similarity = match.similarity if match.similarity is not None else -math.inf
        lexical_rank = match.lexical_rank if match.lexical_rank is not None else -math.inf
        return (
            -similarity,
            -lexical_rank,
            vector_index.get(key, math.inf),
            lexical_index.get(key, math.inf),
        )

    ordered = sorted(merged, key=sort_key)
    return [merged[key] for key in ordered[:max(0, limit)]]


class HybridRetrievalRanker(BaseService):
    """Service ranking stored chunks for a question by vector and lexical relevance."""

    def __init__(
        self,
        chunk_store: ChunkStore,
        match_count: int = 10,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        hybrid: bool = True,
        lexical_match_count: Optional[int] = None
    ):
        """Initialize retrieval ranker.

        Args:
            chunk_store: Store serving vector and lexical search
            match_count: Default number of matches to return
            similarity_threshold: Minimum cosine similarity for vector matches
            hybrid: Whether to run lexical search alongside vector search
            lexical_match_count: Lexical candidates to fetch (defaults to match_count)
        """
        super().__init__(chunk_store)
        self._match_count = match_count
        self._similarity_threshold = similarity_threshold
        self._hybrid = hybrid
        self._lexical_match_count = lexical_match_count

    def retrieve(
        self,
        question: str,
        query_embedding: List[float],
        match_count: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
        hybrid: Optional[bool] = None
    ) -> List[RetrievedChunk]:
        """Rank stored chunks for a question.

        Lexical search failures are logged and the ranking continues with
        vector results only.

        Args:
            question: Question text used for lexical search
            query_embedding: Embedding of the question
            match_count: Override of the default match count
            similarity_threshold: Override of the default threshold
            hybrid: Override of the hybrid setting

        Returns:
            Ranked matches, at most `match_count` long
        """
        desired = match_count or self._match_count
        threshold = self._similarity_threshold if similarity_threshold is None else similarity_threshold
        use_hybrid = self._hybrid if hybrid is None else hybrid

        vector_results = self._db.vector_search(query_embedding, desired, threshold)
        logger.debug(f"Vector search returned {len(vector_results)} matches (threshold {threshold})")

        lexical_results: List[RetrievedChunk] = []
        if use_hybrid:
            lexical_count = self._lexical_match_count or desired
            try:
                lexical_results = self._db.lexical_search(question, lexical_count)
                logger.debug(f"Lexical search returned {len(lexical_results)} matches")
            except Exception as e:
                logger.warning(f"Lexical search failed, continuing with vector results only: {e}")

        ranked = merge_matches(vector_results, lexical_results, desired)
        logger.info(f"Retrieved {len(ranked)} matches for question")
        return ranked
