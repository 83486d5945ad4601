"""Query service for Mimir - answers questions from retrieved chunks with cited sources."""

from typing import Callable, Optional

from loguru import logger

from core.exceptions import ProviderError, QueryError, ValidationError
from core.models import AnswerResult
from interfaces.llm_provider import ChatProvider, GenerateOptions
from mimir.prompt import DEFAULT_ANSWER_MAX_TOKENS, estimate_chat_tokens
from mimir.rate_limiter import CancellationToken, RequestScheduler, is_retryable
from mimir.tokenizer import TokenizerRegistry
from .answer_assembler import CitationAssembler
from .embedding_service import EmbeddingBatcher
from .retrieval_service import HybridRetrievalRanker

NO_CONTEXT_ANSWER = "I could not find relevant context to answer that question."


class QueryService:
    """Service answering questions: embed, retrieve, generate and cite."""

    def __init__(
        self,
        chat_provider: ChatProvider,
        chat_scheduler: RequestScheduler,
        embedding_batcher: EmbeddingBatcher,
        ranker: HybridRetrievalRanker,
        assembler: CitationAssembler,
        tokenizer: TokenizerRegistry,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: int = DEFAULT_ANSWER_MAX_TOKENS
    ):
        self._chat = chat_provider
        self._chat_scheduler = chat_scheduler
        self._batcher = embedding_batcher
        self._ranker = ranker
        self._assembler = assembler
        self._tokenizer = tokenizer
        self._system_prompt = system_prompt
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def ask(
        self,
        question: str,
        match_count: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
        hybrid: Optional[bool] = None,
        system_prompt: Optional[str] = None,
        on_token: Optional[Callable[[str], None]] = None,
        cancellation: Optional[CancellationToken] = None
    ) -> AnswerResult:
        """Answer a question from the knowledge base.

        Args:
            question: Natural-language question
            match_count: Number of chunks to retrieve
            similarity_threshold: Minimum vector similarity
            hybrid: Whether to include lexical matches
            system_prompt: Override for the answer system prompt
            on_token: Callback receiving streamed answer text
            cancellation: Optional token aborting the request

        Returns:
            Answer text with its cited sources and the ranked matches

        Raises:
            ValidationError: If the question is empty
            QueryError: Wrapping any failure while answering
        """
        if not question or not question.strip():
            raise ValidationError("question", question, "Question cannot be empty")
        question = question.strip()

        try:
            return await self._answer(
                question, match_count, similarity_threshold, hybrid, system_prompt, on_token, cancellation
            )
        except Exception as e:
            logger.error(f"Query failed: {e}")
            raise QueryError(question, e) from e

    async def _answer(
        self,
        question: str,
        match_count: Optional[int],
        similarity_threshold: Optional[float],
        hybrid: Optional[bool],
        system_prompt: Optional[str],
        on_token: Optional[Callable[[str], None]],
        cancellation: Optional[CancellationToken]
    ) -> AnswerResult:
        query_embedding = await self._batcher.embed_query(question, cancellation)
        matches = self._ranker.retrieve(
            question,
            query_embedding,
            match_count=match_count,
            similarity_threshold=similarity_threshold,
            hybrid=hybrid,
        )

        if not matches:
            logger.info("No matches found, answering without context")
            return AnswerResult(answer=NO_CONTEXT_ANSWER, sources=[], matches=[])

        prompt_override = system_prompt or self._system_prompt
        streamed = []

        def forward(token: str) -> None:
            streamed.append(token)
            on_token(token)

        options = GenerateOptions(
            temperature=self._temperature,
            max_tokens=self._max_tokens,
            system_prompt=prompt_override,
            on_token=forward if on_token is not None else None,
            cancellation=cancellation,
        )
        token_cost = estimate_chat_tokens(
            self._tokenizer,
            question,
            matches,
            system_prompt=prompt_override,
            max_tokens=self._max_tokens,
            model=self._chat.chat_model,
        )

        async def generate() -> str:
            try:
                return await self._chat.generate_answer(question, matches, options)
            except Exception as e:
                # Tokens already shown to the caller cannot be taken back
                if streamed and is_retryable(e):
                    raise ProviderError(
                        self._chat.name, "chat", None, "stream interrupted after partial output", cause=e
                    ) from e
                raise

        answer = await self._chat_scheduler.run(
            generate,
            token_cost=token_cost,
            description=f"{self._chat_scheduler.name} answer",
            cancellation=cancellation,
        )
        return self._assembler.assemble(answer, matches)
