"""Mimir Chunk Domain Models - Document sections and their stored counterparts.

A `Chunk` is an ephemeral, checksummed section produced by the chunker on every
ingestion run. A `StoredChunkRecord` is the store's view of a previously
persisted section, and `ChunkUpsert` is one row written back to the store.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

from ..types import Checksum, ChunkId, EmbeddingVector, FilePath, Position
from ..exceptions import ValidationError


def compute_checksum(content: str) -> Checksum:
    """Return the sha256 hex digest of content encoded as UTF-8."""
    return Checksum(hashlib.sha256(content.encode("utf-8")).hexdigest())


@dataclass(frozen=True)
class Chunk:
    """Domain model representing one section of a document.

    Attributes:
        title: Section title derived from the heading or frontmatter line
        content: Section body, heading line included
        checksum: Content-addressed digest of `content`
        position: 0-based index within the document's ordered sections
    """

    title: str
    content: str
    checksum: Checksum
    position: Position

    def __post_init__(self):
        """Validate chunk model after initialization."""
        if self.position < 0:
            raise ValidationError("position", self.position, "Position cannot be negative")
        if not self.checksum:
            raise ValidationError("checksum", self.checksum, "Checksum cannot be empty")

    @classmethod
    def from_content(cls, title: str, content: str, position: int) -> "Chunk":
        """Create a chunk, computing its checksum from the content."""
        return cls(
            title=title,
            content=content,
            checksum=compute_checksum(content),
            position=Position(position),
        )

    def with_position(self, position: int) -> "Chunk":
        """Return a copy of this chunk at a different position."""
        return Chunk(self.title, self.content, self.checksum, Position(position))

    def to_dict(self) -> Dict[str, Any]:
        """Convert chunk model to dictionary format."""
        return {
            "title": self.title,
            "content": self.content,
            "checksum": self.checksum,
            "position": self.position,
        }


@dataclass(frozen=True)
class StoredChunkRecord:
    """A chunk record as previously persisted by the store.

    Attributes:
        id: Store-assigned identity, stable for the record's lifetime
        position: Position currently held by the record
        checksum: Checksum of the stored content
    """

    id: ChunkId
    position: Position
    checksum: Checksum

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredChunkRecord":
        """Create a record from a store row dictionary."""
        try:
            return cls(
                id=ChunkId(int(data["id"])),
                position=Position(int(data["position"])),
                checksum=Checksum(str(data["checksum"])),
            )
        except KeyError as e:
            raise ValidationError(str(e.args[0]), None, "Required record field is missing")


@dataclass(frozen=True)
class ChunkUpsert:
    """One chunk row written to the store, keyed by (filepath, position)."""

    filepath: FilePath
    position: Position
    title: str
    content: str
    checksum: Checksum
    embedding: EmbeddingVector = field(default_factory=list)
    contextual_text: Optional[str] = None

    def __post_init__(self):
        if not self.embedding:
            raise ValidationError("embedding", self.embedding, "Embedding cannot be empty")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary with column names as keys."""
        return {
            "filepath": self.filepath,
            "position": self.position,
            "title": self.title,
            "content": self.content,
            "contextual_text": self.contextual_text,
            "checksum": self.checksum,
            "embedding": list(self.embedding),
        }


def renumber(chunks: List[Chunk]) -> List[Chunk]:
    """Return chunks with positions reassigned contiguously from 0."""
    return [
        chunk if chunk.position == index else chunk.with_position(index)
        for index, chunk in enumerate(chunks)
    ]
