"""Service layer for Mimir - business logic coordination and dependency injection."""

from .answer_assembler import CitationAssembler
from .base_service import BaseService
from .chunk_synchronizer import ChunkSynchronizer
from .embedding_service import EmbeddingBatcher
from .indexing_coordinator import IngestionCoordinator
from .query_service import QueryService
from .retrieval_service import HybridRetrievalRanker

__all__ = [
    'BaseService',
    'ChunkSynchronizer',
    'EmbeddingBatcher',
    'HybridRetrievalRanker',
    'CitationAssembler',
    'IngestionCoordinator',
    'QueryService'
]
