"""Interfaces package for Mimir - abstract protocols for collaborator implementations."""

from .chunk_store import ChunkStore
from .document_source import DocumentSource
from .llm_provider import ChatProvider, EmbeddingProvider, GenerateOptions

__all__ = [
    "ChatProvider",
    "ChunkStore",
    "DocumentSource",
    "EmbeddingProvider",
    "GenerateOptions",
]
