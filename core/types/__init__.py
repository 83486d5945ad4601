"""Mimir Core Types Package - Common type definitions and aliases.

The types are organized into logical groups:
- Provider, call-kind and document format enumerations
- Provider and model name types
- Common aliases for better readability
"""

from .common import (
    CallKind,
    Checksum,
    ChunkId,
    Dimensions,
    DocumentFormat,
    EmbeddingVector,
    FilePath,
    LexicalRank,
    ModelName,
    Position,
    ProviderKind,
    ProviderName,
    Similarity,
)

__all__ = [
    # Enums
    "CallKind",
    "ProviderKind",
    "DocumentFormat",

    # String types
    "ProviderName",
    "ModelName",
    "FilePath",
    "Checksum",

    # Numeric types
    "ChunkId",
    "Position",
    "Similarity",
    "LexicalRank",
    "Dimensions",

    # Complex types
    "EmbeddingVector",
]
