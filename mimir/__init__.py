"""Mimir - Keeps a citation-capable documentation knowledge base in sync and answers questions against it."""

__version__ = "0.4.0"
__description__ = "Incremental documentation RAG with hybrid retrieval and verifiable citations"

# Import modules only when needed to keep CLI startup light
__all__ = [
    "DocumentChunker",
    "TokenizerRegistry",
    "RequestScheduler",
]


def __getattr__(name: str):
    """Lazy import of the most used building blocks."""
    if name == "DocumentChunker":
        from .chunker import DocumentChunker
        return DocumentChunker
    elif name == "TokenizerRegistry":
        from .tokenizer import TokenizerRegistry
        return TokenizerRegistry
    elif name == "RequestScheduler":
        from .rate_limiter import RequestScheduler
        return RequestScheduler
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
