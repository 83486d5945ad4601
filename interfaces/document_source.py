"""DocumentSource protocol for Mimir - abstract interface for document listing."""

from typing import Optional, Protocol

from core.models import Document


class DocumentSource(Protocol):
    """Abstract protocol for document sources."""

    def list_documents(self, scope: Optional[str] = None) -> list[Document]:
        """Documents under an optional scope path, sorted by path."""
        ...
