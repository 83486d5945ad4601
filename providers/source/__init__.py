"""Document source providers package for Mimir."""

from .local_source import LocalDocumentSource

__all__ = [
    "LocalDocumentSource",
]
