"""Provider protocols for Mimir - abstract interfaces for embedding and chat backends."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional, Protocol

from mimir.prompt import PromptContext

if TYPE_CHECKING:
    from mimir.rate_limiter import CancellationToken


@dataclass
class GenerateOptions:
    """Per-call options for answer generation."""
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    system_prompt: Optional[str] = None
    on_token: Optional[Callable[[str], None]] = None
    cancellation: Optional["CancellationToken"] = None


class EmbeddingProvider(Protocol):
    """Abstract protocol for embedding backends.

    Each method performs exactly one backend request; batching, rate limiting
    and retries are applied by the services that call it.
    """

    @property
    def name(self) -> str:
        """Provider name (e.g., 'openai')."""
        ...

    @property
    def embedding_model(self) -> str:
        """Embedding model name."""
        ...

    @property
    def dims(self) -> int:
        """Embedding dimensions."""
        ...

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed texts in one request, returning vectors in input order.

        Raises:
            TransientProviderError: On throttling, timeouts and server errors
            ProviderError: On other request failures
        """
        ...

    async def close(self) -> None:
        """Release client resources."""
        ...


class ChatProvider(Protocol):
    """Abstract protocol for chat backends used for chunk context and answers."""

    @property
    def name(self) -> str:
        """Provider name (e.g., 'anthropic')."""
        ...

    @property
    def chat_model(self) -> str:
        """Chat model name."""
        ...

    async def generate_context(self, chunk_content: str, document_content: str) -> str:
        """Short context situating a chunk within its document."""
        ...

    async def generate_answer(
        self, prompt: str, context: PromptContext, options: Optional[GenerateOptions] = None
    ) -> str:
        """Answer a prompt from ranked matches or a single chunk context."""
        ...

    async def close(self) -> None:
        """Release client resources."""
        ...
