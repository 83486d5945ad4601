"""Mimir Core Exceptions Package - Core exception classes for error handling.

The exception hierarchy is designed to:
- Separate retryable provider failures from permanent ones
- Let the retrieval layer degrade on lexical search failures
- Carry structured context for logs and CLI output
"""

from .core import (
    ConfigurationError,
    DatabaseError,
    DataIntegrityError,
    IngestionError,
    LexicalSearchUnavailable,
    MimirError,
    OperationCancelledError,
    ProviderError,
    QueryError,
    TransientProviderError,
    ValidationError,
)

__all__ = [
    # Base exception
    "MimirError",

    # Domain-specific exceptions
    "ValidationError",
    "ConfigurationError",
    "ProviderError",
    "TransientProviderError",
    "DataIntegrityError",
    "DatabaseError",
    "LexicalSearchUnavailable",
    "OperationCancelledError",
    "IngestionError",
    "QueryError",
]
