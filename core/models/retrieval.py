"""Mimir Retrieval Domain Models - Search matches, source references and answers.

These models are produced by the query side of the system: the store returns
`RetrievedChunk` rows, the ranker merges them, and the answer assembler turns
the cited ones into `SourceReference` entries of an `AnswerResult`.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Dict, Any, List, Tuple

from ..types import FilePath, LexicalRank, Position, Similarity


@dataclass(frozen=True)
class RetrievedChunk:
    """A stored chunk returned by vector or lexical search.

    Attributes:
        filepath: Document path the chunk belongs to
        position: Position of the chunk within its document
        title: Section title
        content: Section body
        contextual_text: Generated situating context, if any
        similarity: Cosine similarity from vector search
        lexical_rank: Relevance score from lexical search
    """

    filepath: FilePath
    position: Position
    title: str
    content: str
    contextual_text: Optional[str] = None
    similarity: Optional[Similarity] = None
    lexical_rank: Optional[LexicalRank] = None

    @property
    def key(self) -> Tuple[str, int]:
        """Merge key identifying the stored record."""
        return (self.filepath, self.position)

    def merged_with(self, other: "RetrievedChunk") -> "RetrievedChunk":
        """Combine rank signals of two results for the same record."""
        return replace(
            self,
            similarity=self.similarity if self.similarity is not None else other.similarity,
            lexical_rank=self.lexical_rank if self.lexical_rank is not None else other.lexical_rank,
            contextual_text=self.contextual_text or other.contextual_text,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RetrievedChunk":
        """Create a retrieved chunk from a store row dictionary."""
        similarity = data.get("similarity")
        lexical_rank = data.get("lexical_rank")
        return cls(
            filepath=FilePath(data["filepath"]),
            position=Position(int(data["position"])),
            title=data.get("title") or "",
            content=data.get("content") or "",
            contextual_text=data.get("contextual_text"),
            similarity=Similarity(float(similarity)) if similarity is not None else None,
            lexical_rank=LexicalRank(float(lexical_rank)) if lexical_rank is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filepath": self.filepath,
            "position": self.position,
            "title": self.title,
            "content": self.content,
            "contextual_text": self.contextual_text,
            "similarity": self.similarity,
            "lexical_rank": self.lexical_rank,
        }


@dataclass(frozen=True)
class SourceReference:
    """A cited source with its canonical link."""

    filepath: str
    position: int
    title: str
    url: str

    def to_markdown(self) -> str:
        """Render as a markdown list entry."""
        label = self.title or self.filepath
        return f"- [{label}]({self.url})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filepath": self.filepath,
            "position": self.position,
            "title": self.title,
            "url": self.url,
        }


@dataclass(frozen=True)
class AnswerResult:
    """Final answer text with its resolved sources."""

    answer: str
    sources: List[SourceReference] = field(default_factory=list)
    matches: List[RetrievedChunk] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer": self.answer,
            "sources": [source.to_dict() for source in self.sources],
        }
