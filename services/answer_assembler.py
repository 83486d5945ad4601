"""Answer assembler for Mimir - resolves citations in generated answers and appends sources."""

import re
from typing import List, Optional, Set, Tuple

from loguru import logger

from core.models import AnswerResult, RetrievedChunk, SourceReference
from mimir.source_links import SourceLinkResolver

_FENCE = re.compile(r"^\s*(```|~~~)")
_INLINE_CODE = re.compile(r"`[^`\n]*`")
_CITATION_MARKER = re.compile(r"\[(\d+(?:\s*[,;]\s*\d+)*)\](?!\()")
_SOURCES_HEADER = re.compile(
    r"^\s*(?:#{1,6}\s*)?(?:\*\*|__)?\s*sources?\s*(?:\*\*|__)?\s*"
    r"(?::\s*(?:\*\*|__)?\s*(?P<rest>.*)|$)",
    re.IGNORECASE,
)
_INDEX_LIST = re.compile(r"[\s\d,;&#\[\]]*(?:and[\s\d,;&#\[\]]*)*", re.IGNORECASE)


def _lines_outside_code(text: str) -> List[Tuple[int, str]]:
    """Lines of text outside fenced code blocks, with inline code removed."""
    lines = []
    fence: Optional[str] = None
    for number, line in enumerate(text.split("\n")):
        match = _FENCE.match(line)
        if match:
            marker = match.group(1)
            if fence is None:
                fence = marker
            elif fence == marker:
                fence = None
            continue
        if fence is None:
            lines.append((number, _INLINE_CODE.sub("", line)))
    return lines


def _find_sources_header(text: str) -> Optional[Tuple[int, str]]:
    """Line number and trailing text of the last 'Sources:' header outside code."""
    found = None
    for number, line in _lines_outside_code(text):
        match = _SOURCES_HEADER.match(line)
        if match:
            found = (number, match.group("rest") or "")
    return found


def extract_citation_indexes(answer: str) -> List[int]:
    """Collect 1-based source indexes cited by an answer.

    Inline markers such as ``[2]`` or ``[1, 3]`` are read in order of
    appearance, followed by the numbers of a trailing ``Sources: 1, 3``
    summary line. Markers inside fenced code blocks or inline code are
    ignored. Duplicates are removed keeping the first occurrence.
    """
    indexes: List[int] = []
    seen: Set[int] = set()

    def add(value: str) -> None:
        index = int(value)
        if index not in seen:
            seen.add(index)
            indexes.append(index)

    for _, line in _lines_outside_code(answer):
        for match in _CITATION_MARKER.finditer(line):
            for value in re.findall(r"\d+", match.group(1)):
                add(value)

    header = _find_sources_header(answer)
    if header is not None:
        rest = header[1].strip()
        if rest and _INDEX_LIST.fullmatch(rest):
            for value in re.findall(r"\d+", rest):
                add(value)

    return indexes


def resolve_citations(indexes: List[int], matches: List[RetrievedChunk]) -> List[RetrievedChunk]:
    """Map cited indexes onto ranked matches.

    Out-of-range indexes are dropped. When nothing resolves the whole ranked
    match list is cited. The result keeps ranked order and holds each
    (filepath, position) once.
    """
    valid = sorted({index for index in indexes if 1 <= index <= len(matches)})
    if indexes and not valid:
        logger.debug(f"No citation markers resolved ({indexes}), citing all {len(matches)} matches")
    cited = [matches[index - 1] for index in valid] if valid else list(matches)

    unique: List[RetrievedChunk] = []
    seen: Set[Tuple[str, int]] = set()
    for match in cited:
        if match.key not in seen:
            seen.add(match.key)
            unique.append(match)
    return unique


def strip_sources_block(answer: str) -> str:
    """Remove a trailing 'Sources:' block written by the model."""
    header = _find_sources_header(answer)
    if header is None:
        return answer.strip()
    lines = answer.split("\n")
    return "\n".join(lines[:header[0]]).rstrip()


def _may_start_marker(partial: str) -> bool:
    """Whether an unfinished line could still turn into a fence or a sources header."""
    stripped = partial.lstrip()
    if not stripped or stripped[0] in "`~":
        return True
    word = stripped.lstrip("#*_ \t").lower()
    return "sources".startswith(word) or word.startswith("source")


class SourcesBlockFilter:
    """Streams answer text while holding back a model-written 'Sources:' block.

    Text passes through as soon as a line is known to be ordinary. Lines from
    a sources header onwards are held; a later header releases them, and
    whatever is still held when the stream ends is dropped. The released text
    matches what `strip_sources_block` keeps from the full answer.
    """

    def __init__(self):
        self._line = ""
        self._passthrough = False
        self._fence: Optional[str] = None
        self._blank: List[str] = []
        self._held: Optional[List[str]] = None

    def feed(self, text: str) -> str:
        """Accept streamed text and return the part that can be shown now."""
        released = []
        for index, part in enumerate(text.split("\n")):
            if index:
                released.append(self._end_line())
            released.append(self._extend_line(part))
        return "".join(released)

    def flush(self) -> str:
        """Release the unfinished last line and drop any held sources block."""
        if self._passthrough:
            released = ""
        else:
            released = self._complete_line(self._line) if self._line.strip() else ""
            if released.endswith("\n"):
                released = released[:-1]
        self._line = ""
        self._passthrough = False
        self._fence = None
        self._blank = []
        self._held = None
        return released

    def _extend_line(self, part: str) -> str:
        if self._passthrough:
            return part
        self._line += part
        if self._held is None and not _may_start_marker(self._line):
            self._passthrough = True
            released = self._release_blank() + self._line
            self._line = ""
            return released
        return ""

    def _end_line(self) -> str:
        if self._passthrough:
            self._passthrough = False
            return "\n"
        line, self._line = self._line, ""
        return self._complete_line(line)

    def _complete_line(self, line: str) -> str:
        fence = _FENCE.match(line)
        if fence:
            marker = fence.group(1)
            if self._fence is None:
                self._fence = marker
            elif self._fence == marker:
                self._fence = None
        elif self._fence is None and _SOURCES_HEADER.match(_INLINE_CODE.sub("", line)):
            released = self._release_held()
            self._held = [line]
            return released

        if self._held is not None:
            self._held.append(line)
            return ""
        if not line.strip():
            self._blank.append(line)
            return ""
        return self._release_blank() + line + "\n"

    def _release_blank(self) -> str:
        released = "".join(line + "\n" for line in self._blank)
        self._blank = []
        return released

    def _release_held(self) -> str:
        if self._held is None:
            return ""
        lines = self._blank + self._held
        self._held = None
        self._blank = []
        while lines and not lines[-1].strip():
            self._blank.insert(0, lines.pop())
        return "".join(line + "\n" for line in lines)


class CitationAssembler:
    """Builds the final answer text with a canonical, de-duplicated source list."""

    def __init__(self, link_resolver: Optional[SourceLinkResolver] = None):
        self._links = link_resolver or SourceLinkResolver()

    def build_sources(self, cited: List[RetrievedChunk]) -> List[SourceReference]:
        return [
            SourceReference(
                filepath=match.filepath,
                position=match.position,
                title=match.title,
                url=self._links.resolve(match.filepath, match.title),
            )
            for match in cited
        ]

    def assemble(self, answer: str, matches: List[RetrievedChunk]) -> AnswerResult:
        """Resolve citations and append the source list to the answer.

        Args:
            answer: Raw model output
            matches: Ranked matches the answer was generated from

        Returns:
            Final answer text, cited sources and the matches
        """
        indexes = extract_citation_indexes(answer)
        cited = resolve_citations(indexes, matches)
        sources = self.build_sources(cited)
        body = strip_sources_block(answer)

        if sources:
            listing = "\n".join(source.to_markdown() for source in sources)
            text = f"{body}\n\nSources:\n{listing}" if body else f"Sources:\n{listing}"
        else:
            text = body

        logger.debug(f"Answer cites {len(sources)} of {len(matches)} matches")
        return AnswerResult(answer=text, sources=sources, matches=list(matches))
