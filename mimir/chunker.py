"""Chunker module for Mimir - splits markdown documents into titled, checksummed sections."""

import re
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from core.models import Chunk, renumber
from mimir.tokenizer import TokenizerRegistry


TOC_SUFFIX = "[!toc]"
_HEADING_MARKER = re.compile(r"^#+\s*")
_FRONTMATTER_TITLE = re.compile(r"title\s*:\s*(.+)")
_WRAPPING_PAIRS = (
    ('"', '"'),
    ("'", "'"),
    ("[", "]"),
    ("(", ")"),
    ("“", "”"),
    ("‘", "’"),
)


def strip_wrapping_quotes(value: str) -> str:
    """Remove every layer of matching quotes or brackets around a title."""
    trimmed = value.strip()
    stripped = True
    while stripped:
        stripped = False
        for opening, closing in _WRAPPING_PAIRS:
            if len(trimmed) >= 2 and trimmed.startswith(opening) and trimmed.endswith(closing):
                trimmed = trimmed[len(opening):-len(closing)].strip()
                stripped = True
                break
    return trimmed


def extract_title(line: str, frontmatter: bool = False) -> str:
    """Derive a section title from a heading or frontmatter title line."""
    if frontmatter:
        match = _FRONTMATTER_TITLE.search(line)
        return strip_wrapping_quotes(match.group(1)) if match else ""
    return strip_wrapping_quotes(_HEADING_MARKER.sub("", line))


def is_heading(line: str) -> bool:
    """True for a trimmed markdown heading line that is not a TOC marker."""
    return line.startswith("#") and not line.endswith(TOC_SUFFIX)


@dataclass
class _Section:
    title: str = ""
    lines: List[str] = field(default_factory=list)
    has_content: bool = False


class DocumentChunker:
    """Chunker for splitting markdown and MDX documents into sections."""

    def __init__(
        self,
        tokenizer: Optional[TokenizerRegistry] = None,
        token_limit: Optional[int] = None,
        model: Optional[str] = None
    ):
        """Initialize the chunker.

        Args:
            tokenizer: Token counter used for limit enforcement
            token_limit: Maximum tokens per chunk (None or <= 0 disables splitting)
            model: Model whose tokenizer measures chunk size
        """
        self._tokenizer = tokenizer
        self._token_limit = token_limit
        self._model = model

    @property
    def token_limit(self) -> Optional[int]:
        return self._token_limit

    def chunk(self, text: str) -> List[Chunk]:
        """Chunk a document and enforce the configured token limit."""
        chunks = self.chunk_document(text)
        if self._token_limit and self._token_limit > 0:
            chunks = self.enforce_token_limit(chunks, self._token_limit, self._model)
        return chunks

    def chunk_document(self, text: str) -> List[Chunk]:
        """Split document text into ordered sections.

        Headings start a new section and are kept as the first body line.
        A frontmatter ``title:`` line names the current section without
        starting a new one. Sections without any non-heading content are
        dropped.

        Args:
            text: Raw document text

        Returns:
            Chunks with contiguous positions starting at 0
        """
        bodies: List[_Section] = []
        current = _Section()

        for raw_line in re.split(r"\r?\n", text):
            line = raw_line.strip()

            if is_heading(line):
                if current.has_content:
                    bodies.append(current)
                    current = _Section()
                current.title = extract_title(line)
                current.lines.append(line)
            elif line.startswith("title"):
                current.title = extract_title(line, frontmatter=True)
                current.lines.append(line)
            else:
                current.lines.append(line)
                if line:
                    current.has_content = True

        if current.has_content:
            bodies.append(current)

        return [
            Chunk.from_content(section.title, "\n".join(section.lines), position)
            for position, section in enumerate(bodies)
        ]

    def enforce_token_limit(
        self,
        chunks: List[Chunk],
        token_limit: int,
        model: Optional[str] = None
    ) -> List[Chunk]:
        """Re-split chunks whose token count exceeds the limit.

        Args:
            chunks: Chunks produced by `chunk_document`
            token_limit: Maximum tokens per chunk
            model: Model whose tokenizer measures chunk size

        Returns:
            Chunks that each fit the limit, renumbered from 0
        """
        limit = int(token_limit)
        if limit <= 0:
            return chunks
        if self._tokenizer is None:
            raise ValueError("A tokenizer is required to enforce a token limit")

        model = model or self._model
        newline_tokens = self._tokenizer.count_tokens("\n", model)
        sized: List[Chunk] = []

        for chunk in chunks:
            if self._tokenizer.count_tokens(chunk.content, model) <= limit:
                sized.append(chunk)
                continue

            pieces = self._split_content(chunk.content, limit, model, newline_tokens)
            logger.debug(f"Split oversized chunk '{chunk.title or 'chunk'}' into {len(pieces)} pieces")
            base_title = chunk.title.strip() or "chunk"
            for index, content in enumerate(pieces):
                sized.append(Chunk.from_content(f"{base_title}_{index + 1}", content, len(sized)))

        return renumber(sized)

    def _split_content(
        self,
        content: str,
        limit: int,
        model: Optional[str],
        newline_tokens: int
    ) -> List[str]:
        parts: List[str] = []
        current: List[str] = []
        current_tokens = 0

        def flush() -> None:
            nonlocal current, current_tokens
            if current:
                joined = "\n".join(current)
                if joined.strip():
                    parts.append(joined)
            current = []
            current_tokens = 0

        for line in content.split("\n"):
            line_tokens = self._tokenizer.count_tokens(line, model)

            if line_tokens > limit:
                flush()
                parts.extend(self._hard_split(line, limit, model))
                continue

            if not current and not line.strip():
                continue

            separator = newline_tokens if current else 0
            if current and current_tokens + line_tokens + separator > limit:
                flush()
                separator = 0

            current.append(line)
            current_tokens += line_tokens + separator

        flush()
        return parts or [content]

    def _hard_split(self, text: str, limit: int, model: Optional[str]) -> List[str]:
        tokens = self._tokenizer.encode(text, model)
        window = max(1, limit)
        pieces = []
        for start in range(0, len(tokens), window):
            decoded = self._tokenizer.decode(tokens[start:start + window], model)
            if decoded.strip():
                pieces.append(decoded)
        return pieces

