"""Mimir Document Domain Model - One source document snapshot."""

import hashlib
from dataclasses import dataclass
from typing import Dict, Any

from ..types import DocumentFormat, FilePath
from ..exceptions import ValidationError


@dataclass(frozen=True)
class Document:
    """Immutable snapshot of a source document for one ingestion pass.

    Attributes:
        path: Path relative to the source root, using forward slashes
        content: Full text of the document
        content_hash: sha256 hex digest of the content
    """

    path: FilePath
    content: str
    content_hash: str

    def __post_init__(self):
        if not self.path or not self.path.strip():
            raise ValidationError("path", self.path, "Document path cannot be empty")

    @classmethod
    def from_content(cls, path: str, content: str) -> "Document":
        """Create a document, hashing its content."""
        digest = hashlib.sha256(content.encode("utf-8")).hexdigest()
        return cls(path=FilePath(path), content=content, content_hash=digest)

    @property
    def format(self) -> DocumentFormat:
        """Document format derived from the path extension."""
        return DocumentFormat.from_file_extension(self.path)

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "content": self.content, "content_hash": self.content_hash}
