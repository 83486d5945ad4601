"""Prompt construction for Mimir - answer and context-generation messages."""

from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from core.models import RetrievedChunk
from mimir.tokenizer import TokenizerRegistry

DEFAULT_SYSTEM_PROMPT = " ".join([
    "You are a meticulous assistant that answers questions using the provided documentation context.",
    "Use only the supplied context to craft your answer.",
    "If the answer cannot be determined from the context, say you do not know.",
    "Cite the sources you rely on with their number in square brackets, for example [1].",
])

CONTEXT_SYSTEM_PROMPT = (
    "Please give a short succinct context (150-250 tokens) to situate this chunk within the "
    "overall document for the purposes of improving search retrieval of the chunk. "
    "Answer only with the succinct context and nothing else."
)

CONTEXT_MAX_TOKENS = 250
DEFAULT_ANSWER_MAX_TOKENS = 2000


@dataclass(frozen=True)
class ContextualChunkInput:
    """A single chunk paired with the full document it came from."""

    chunk_content: str
    document_content: str


PromptContext = Union[List[RetrievedChunk], ContextualChunkInput]


def format_document_chunks(chunks: List[RetrievedChunk]) -> str:
    """Render ranked matches as numbered source blocks."""
    blocks = []
    for index, chunk in enumerate(chunks, start=1):
        header = f"Source {index}: {chunk.filepath}#{chunk.position}"
        title = f" ({chunk.title})" if chunk.title else ""
        body = (chunk.contextual_text or "").strip() or chunk.content.strip()
        blocks.append(f"{header}{title}\n{body}")
    return "\n\n".join(blocks).strip()


def format_single_chunk_context(context: ContextualChunkInput) -> str:
    return "\n".join([
        "Full file context:",
        context.document_content.strip(),
        "",
        "Focused chunk:",
        context.chunk_content.strip(),
    ]).strip()


def build_context(context: Optional[PromptContext]) -> str:
    if context is None:
        return ""
    if isinstance(context, ContextualChunkInput):
        return format_single_chunk_context(context)
    if not context:
        return ""
    return format_document_chunks(context)


def build_prompt_messages(
    prompt: str,
    context: Optional[PromptContext] = None,
    system_prompt: Optional[str] = None
) -> Tuple[str, str]:
    """Build the system and user messages for an answer request.

    Args:
        prompt: User question or instruction
        context: Ranked matches or a single chunk with its document
        system_prompt: Override for the default system prompt

    Returns:
        Tuple of (system message, user message)
    """
    system = system_prompt or DEFAULT_SYSTEM_PROMPT
    formatted = build_context(context)

    sections = []
    if formatted:
        sections.extend(["Use the provided context to inform your response.", formatted])
    sections.extend([f"Prompt: {prompt.strip()}", "Answer:"])

    return system, "\n\n".join(sections)


def build_context_messages(chunk_content: str, document_content: str) -> Tuple[str, str]:
    """System and user messages asking for a chunk's situating context."""
    user = "\n".join([
        "<document>",
        document_content.strip(),
        "</document>",
        "Here is the chunk we want to situate within the whole document:",
        "<chunk>",
        chunk_content.strip(),
        "</chunk>",
    ])
    return CONTEXT_SYSTEM_PROMPT, user


def estimate_chat_tokens(
    tokenizer: TokenizerRegistry,
    prompt: str,
    context: Optional[PromptContext] = None,
    system_prompt: Optional[str] = None,
    max_tokens: Optional[int] = None,
    model: Optional[str] = None
) -> int:
    """Estimate tokens a chat request will consume, output budget included."""
    system, user = build_prompt_messages(prompt, context, system_prompt)
    return (
        tokenizer.count_tokens(system, model)
        + tokenizer.count_tokens(user, model)
        + (max_tokens or DEFAULT_ANSWER_MAX_TOKENS)
    )


def build_contextual_text(context: str, content: str) -> str:
    """Text stored and embedded for a chunk with generated context."""
    context = context.strip()
    if not context:
        return content
    return f"{context}---{content}"
