"""Providers package for Mimir - concrete implementations of abstract interfaces."""

from .database import DuckDBChunkStore
from .llm import OpenAIProvider
from .source import LocalDocumentSource

__all__ = [
    # Database providers
    "DuckDBChunkStore",

    # LLM providers
    "OpenAIProvider",

    # Document sources
    "LocalDocumentSource",
]
