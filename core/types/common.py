"""Mimir Core Types - Common type definitions and aliases.

This module contains type definitions, enums, and type aliases used throughout
the Mimir system.
"""

from enum import Enum
from typing import List, Union, NewType
from pathlib import Path


# String-based type aliases for better semantic clarity
ProviderName = NewType("ProviderName", str)  # e.g., "openai"
ModelName = NewType("ModelName", str)       # e.g., "text-embedding-3-small"
FilePath = NewType("FilePath", str)         # Document path relative to the source root
Checksum = NewType("Checksum", str)         # sha256 hex digest

# Numeric type aliases
ChunkId = NewType("ChunkId", int)          # Store-assigned chunk record ID
Position = NewType("Position", int)        # 0-based section index within a document
Similarity = NewType("Similarity", float)  # Cosine similarity score
LexicalRank = NewType("LexicalRank", float)  # Full-text relevance score
Dimensions = NewType("Dimensions", int)    # Embedding vector dimensions

# Complex types
EmbeddingVector = List[float]              # Vector embedding representation


class CallKind(Enum):
    """Kind of outbound LLM call; each kind has its own rate budget."""

    EMBEDDING = "embedding"
    CHAT = "chat"


class ProviderKind(Enum):
    """Closed set of LLM provider variants selectable by configuration."""

    OPENAI = "openai"
    OPENAI_COMPATIBLE = "openai-compatible"
    MISTRAL = "mistral"
    ANTHROPIC = "anthropic"

    @property
    def supports_embeddings(self) -> bool:
        """Whether the vendor serves an embeddings endpoint."""
        return self != ProviderKind.ANTHROPIC

    @classmethod
    def from_string(cls, value: str) -> "ProviderKind":
        """Convert string to ProviderKind, raising ValueError for unknown providers."""
        return cls(value.strip().lower())


class DocumentFormat(Enum):
    """Document formats understood by the chunker and link builder."""

    MARKDOWN = "md"
    MDX = "mdx"
    UNKNOWN = "unknown"

    @classmethod
    def from_file_extension(cls, file_path: Union[str, Path]) -> "DocumentFormat":
        """Determine document format from a file extension."""
        if isinstance(file_path, str):
            file_path = Path(file_path)

        extension_map = {
            '.md': cls.MARKDOWN,
            '.markdown': cls.MARKDOWN,
            '.mdx': cls.MDX,
        }
        return extension_map.get(file_path.suffix.lower(), cls.UNKNOWN)

    @property
    def is_markdown(self) -> bool:
        """Return True for formats rendered by the documentation site."""
        return self in {self.MARKDOWN, self.MDX}
