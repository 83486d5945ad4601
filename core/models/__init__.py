"""Mimir Core Models Package - Domain model definitions.

The models follow these principles:
- Immutable data structures using dataclasses with frozen=True
- Rich type hints for better IDE support
- Clear separation between domain logic and persistence concerns
"""

from .chunk import Chunk, ChunkUpsert, StoredChunkRecord, compute_checksum, renumber
from .document import Document
from .rate_limit import RateLimitBudget
from .retrieval import AnswerResult, RetrievedChunk, SourceReference
from .sync import TEMP_POSITION_OFFSET, ChunkDiff, ChunkReorder, IngestionStats, plan_position_moves

__all__ = [
    "Chunk",
    "ChunkUpsert",
    "StoredChunkRecord",
    "compute_checksum",
    "renumber",
    "Document",
    "RateLimitBudget",
    "RetrievedChunk",
    "SourceReference",
    "AnswerResult",
    "ChunkDiff",
    "ChunkReorder",
    "IngestionStats",
    "TEMP_POSITION_OFFSET",
    "plan_position_moves",
]
