"""Mimir Core Package - Domain models, types, and exceptions.

Modules:
    models: Domain models for documents, chunks, retrieval results and budgets
    types: Common type definitions and aliases
    exceptions: Core exception classes for error handling
"""

from .exceptions import (
    ConfigurationError,
    DataIntegrityError,
    MimirError,
    TransientProviderError,
    ValidationError,
)
from .models import Chunk, Document, RetrievedChunk, StoredChunkRecord
from .types import CallKind, ModelName, ProviderKind, ProviderName

__all__ = [
    # Domain Models
    "Chunk",
    "Document",
    "RetrievedChunk",
    "StoredChunkRecord",

    # Types
    "CallKind",
    "ProviderKind",
    "ProviderName",
    "ModelName",

    # Exceptions
    "MimirError",
    "ValidationError",
    "ConfigurationError",
    "TransientProviderError",
    "DataIntegrityError",
]
