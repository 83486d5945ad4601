"""Anthropic LLM provider implementation for Mimir - chat completions via the Messages API."""

from typing import Any, Dict, List, Optional

import anthropic
from loguru import logger

from core.exceptions import ConfigurationError, MimirError, ProviderError, TransientProviderError
from core.types import ProviderKind
from interfaces.llm_provider import GenerateOptions
from mimir.prompt import (
    CONTEXT_MAX_TOKENS,
    DEFAULT_ANSWER_MAX_TOKENS,
    PromptContext,
    build_context_messages,
    build_prompt_messages,
)


class AnthropicProvider:
    """Anthropic chat provider. Anthropic has no embeddings endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        chat_model: str = "claude-3-5-haiku-latest",
        timeout: float = 30.0,
        temperature: float = 0.0,
        max_output_tokens: int = DEFAULT_ANSWER_MAX_TOKENS,
        client: Optional[Any] = None
    ):
        """Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key
            base_url: Base URL of the API (SDK default when None)
            chat_model: Model name to use for context and answer generation
            timeout: Request timeout in seconds
            temperature: Default sampling temperature
            max_output_tokens: Default completion token limit
            client: Preconfigured AsyncAnthropic-compatible client
        """
        self._api_key = api_key
        self._base_url = base_url
        self._chat_model = chat_model
        self._timeout = timeout
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens

        self._usage_stats = {
            "chat_requests": 0,
            "input_tokens": 0,
            "output_tokens": 0,
            "errors": 0
        }

        self._client = client
        if self._client is None:
            self._initialize_client()

    def _initialize_client(self) -> None:
        if not self._api_key:
            raise ConfigurationError("llm.chat.api_key", None, "Anthropic API key is required")

        client_kwargs: Dict[str, Any] = {
            "api_key": self._api_key,
            "timeout": self._timeout,
            # Retries are owned by the request scheduler
            "max_retries": 0,
        }
        if self._base_url:
            client_kwargs["base_url"] = self._base_url

        self._client = anthropic.AsyncAnthropic(**client_kwargs)
        logger.debug(f"Anthropic client initialized with base_url={self._base_url}, timeout={self._timeout}")

    @property
    def name(self) -> str:
        return ProviderKind.ANTHROPIC.value

    @property
    def chat_model(self) -> str:
        return self._chat_model

    async def close(self) -> None:
        """Close the client and release its connections."""
        if self._client is not None:
            await self._client.close()
            logger.debug("anthropic client closed")

    def _map_error(self, error: Exception) -> MimirError:
        """Translate an SDK exception into the Mimir provider error taxonomy."""
        self._usage_stats["errors"] += 1
        status_code = getattr(error, "status_code", None)
        context = {"model": self._chat_model}

        if isinstance(error, (anthropic.RateLimitError, anthropic.APIConnectionError, anthropic.InternalServerError)):
            return TransientProviderError(self.name, "chat", status_code, str(error), context, error)
        if isinstance(error, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
            return ConfigurationError("llm.chat.api_key", None, f"anthropic rejected the credentials: {error}")
        if isinstance(error, anthropic.APIStatusError) and status_code is not None and status_code >= 500:
            return TransientProviderError(self.name, "chat", status_code, str(error), context, error)
        return ProviderError(self.name, "chat", status_code, str(error), context, error)

    def _record_usage(self, message: Any) -> None:
        self._usage_stats["chat_requests"] += 1
        usage = getattr(message, "usage", None)
        if usage:
            self._usage_stats["input_tokens"] += getattr(usage, "input_tokens", 0) or 0
            self._usage_stats["output_tokens"] += getattr(usage, "output_tokens", 0) or 0

    async def _complete(self, system: str, user: str, max_tokens: int, temperature: float) -> str:
        try:
            message = await self._client.messages.create(
                model=self._chat_model,
                system=system,
                messages=[{"role": "user", "content": user}],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except anthropic.AnthropicError as e:
            raise self._map_error(e) from e

        self._record_usage(message)
        parts = [getattr(block, "text", "") for block in message.content or [] if getattr(block, "type", None) == "text"]
        return "".join(parts).strip()

    async def generate_context(self, chunk_content: str, document_content: str) -> str:
        """Short context situating a chunk within its document."""
        system, user = build_context_messages(chunk_content, document_content)
        return await self._complete(
            system,
            user,
            max_tokens=min(CONTEXT_MAX_TOKENS, self._max_output_tokens),
            temperature=self._temperature,
        )

    async def generate_answer(
        self,
        prompt: str,
        context: PromptContext,
        options: Optional[GenerateOptions] = None
    ) -> str:
        """Answer a prompt from ranked matches or a single chunk context.

        When `options.on_token` is set the message is streamed and each text
        delta is passed to the callback as it arrives.
        """
        options = options or GenerateOptions()
        system, user = build_prompt_messages(prompt, context, options.system_prompt)
        max_tokens = options.max_tokens or self._max_output_tokens
        temperature = self._temperature if options.temperature is None else options.temperature

        if options.on_token is None:
            return await self._complete(system, user, max_tokens, temperature)

        parts: List[str] = []
        try:
            async with self._client.messages.stream(
                model=self._chat_model,
                system=system,
                messages=[{"role": "user", "content": user}],
                max_tokens=max_tokens,
                temperature=temperature,
            ) as stream:
                async for text in stream.text_stream:
                    if options.cancellation is not None:
                        options.cancellation.raise_if_cancelled("generate_answer")
                    if text:
                        parts.append(text)
                        options.on_token(text)
        except anthropic.AnthropicError as e:
            raise self._map_error(e) from e

        self._usage_stats["chat_requests"] += 1
        return "".join(parts).strip()

    def get_usage_stats(self) -> Dict[str, Any]:
        """Get usage statistics."""
        return self._usage_stats.copy()
