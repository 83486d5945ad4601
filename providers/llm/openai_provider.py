"""OpenAI LLM provider implementation for Mimir - embeddings and chat completions via the OpenAI API."""

from typing import Any, Dict, List, Optional

import openai
from loguru import logger

from core.exceptions import ConfigurationError, MimirError, ProviderError, TransientProviderError, ValidationError
from core.types import ProviderKind
from interfaces.llm_provider import GenerateOptions
from mimir.prompt import (
    CONTEXT_MAX_TOKENS,
    DEFAULT_ANSWER_MAX_TOKENS,
    PromptContext,
    build_context_messages,
    build_prompt_messages,
)

# Placeholder key for OpenAI-compatible servers that do not authenticate
UNAUTHENTICATED_API_KEY = "not-needed"

# Vendors reached through their OpenAI-compatible endpoints
DEFAULT_BASE_URLS = {
    ProviderKind.OPENAI: "https://api.openai.com/v1",
    ProviderKind.MISTRAL: "https://api.mistral.ai/v1",
}


class OpenAIProvider:
    """Provider for the OpenAI API and the vendors that speak its wire format.

    Serves OpenAI itself, Mistral (through https://api.mistral.ai/v1) and any
    self-hosted OpenAI-compatible server. One instance may serve embeddings,
    chat or both.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        embedding_model: str = "text-embedding-3-small",
        chat_model: str = "gpt-4o-mini",
        dimensions: Optional[int] = None,
        timeout: float = 30.0,
        temperature: float = 0.0,
        max_output_tokens: int = DEFAULT_ANSWER_MAX_TOKENS,
        kind: ProviderKind = ProviderKind.OPENAI,
        client: Optional[Any] = None
    ):
        """Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            base_url: Base URL of the API (required for OpenAI-compatible servers)
            embedding_model: Model name to use for embeddings
            chat_model: Model name to use for context and answer generation
            dimensions: Requested embedding dimensions (model default when None)
            timeout: Request timeout in seconds
            temperature: Default sampling temperature for chat requests
            max_output_tokens: Default completion token limit
            kind: Provider variant
            client: Preconfigured AsyncOpenAI-compatible client
        """
        self._api_key = api_key
        self._base_url = base_url
        self._embedding_model = embedding_model
        self._chat_model = chat_model
        self._dimensions = dimensions
        self._timeout = timeout
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._kind = kind

        # Model-specific configuration
        self._model_config = {
            "text-embedding-3-small": {"dims": 1536},
            "text-embedding-3-large": {"dims": 3072},
            "text-embedding-ada-002": {"dims": 1536},
            "mistral-embed": {"dims": 1024}
        }

        # Usage statistics
        self._usage_stats = {
            "embedding_requests": 0,
            "chat_requests": 0,
            "tokens_used": 0,
            "errors": 0
        }

        self._client = client
        if self._client is None:
            self._initialize_client()

    def _initialize_client(self) -> None:
        """Initialize the OpenAI client."""
        api_key = self._api_key
        if self._kind == ProviderKind.OPENAI_COMPATIBLE:
            if not self._base_url:
                raise ConfigurationError("llm.base_url", None, "base_url is required for openai-compatible providers")
            api_key = api_key or UNAUTHENTICATED_API_KEY
        elif not api_key:
            raise ConfigurationError("llm.api_key", None, f"{self._label} API key is required")

        client_kwargs: Dict[str, Any] = {
            "api_key": api_key,
            "timeout": self._timeout,
            # Retries are owned by the request scheduler
            "max_retries": 0,
        }
        client_kwargs["base_url"] = self.base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        logger.debug(f"{self._label} client initialized with base_url={self.base_url}, timeout={self._timeout}")

    @property
    def name(self) -> str:
        """Provider name."""
        return self._kind.value

    @property
    def embedding_model(self) -> str:
        return self._embedding_model

    @property
    def chat_model(self) -> str:
        return self._chat_model

    @property
    def dims(self) -> int:
        """Embedding dimensions."""
        if self._dimensions:
            return self._dimensions
        if self._embedding_model in self._model_config:
            return self._model_config[self._embedding_model]["dims"]
        return 1536  # Default for most OpenAI models

    @property
    def base_url(self) -> str:
        """Base URL for API requests."""
        return self._base_url or DEFAULT_BASE_URLS.get(self._kind, DEFAULT_BASE_URLS[ProviderKind.OPENAI])

    @property
    def _label(self) -> str:
        return "Mistral" if self._kind == ProviderKind.MISTRAL else "OpenAI"

    async def close(self) -> None:
        """Close the client and release its connections."""
        if self._client is not None:
            await self._client.close()
            logger.debug(f"{self.name} client closed")

    def _map_error(self, error: Exception, service: str) -> MimirError:
        """Translate an SDK exception into the Mimir provider error taxonomy."""
        self._usage_stats["errors"] += 1
        status_code = getattr(error, "status_code", None)
        context = {"model": self._embedding_model if service == "embeddings" else self._chat_model}

        if isinstance(error, (openai.RateLimitError, openai.APIConnectionError, openai.InternalServerError)):
            return TransientProviderError(self.name, service, status_code, str(error), context, error)
        if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return ConfigurationError("llm.api_key", None, f"{self.name} rejected the credentials: {error}")
        if isinstance(error, openai.APIStatusError) and status_code is not None and status_code >= 500:
            return TransientProviderError(self.name, service, status_code, str(error), context, error)
        return ProviderError(self.name, service, status_code, str(error), context, error)

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed texts in one request, returning vectors in input order."""
        if not texts:
            return []
        for i, text in enumerate(texts):
            if not isinstance(text, str):
                raise ValidationError(f"texts[{i}]", text, f"Text at index {i} is not a string: {type(text)}")

        request: Dict[str, Any] = {
            "model": self._embedding_model,
            "input": texts,
            "encoding_format": "float",
        }
        if self._dimensions:
            request["dimensions"] = self._dimensions

        logger.debug(f"Requesting embeddings for {len(texts)} texts from {self._embedding_model}")
        try:
            response = await self._client.embeddings.create(**request)
        except openai.OpenAIError as e:
            raise self._map_error(e, "embeddings") from e

        self._usage_stats["embedding_requests"] += 1
        if getattr(response, "usage", None):
            self._usage_stats["tokens_used"] += response.usage.total_tokens

        ordered = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in ordered]

    async def _complete(
        self,
        system: str,
        user: str,
        max_tokens: int,
        temperature: float,
        service: str
    ) -> Any:
        try:
            response = await self._client.chat.completions.create(
                model=self._chat_model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.OpenAIError as e:
            raise self._map_error(e, service) from e

        self._usage_stats["chat_requests"] += 1
        if getattr(response, "usage", None):
            self._usage_stats["tokens_used"] += response.usage.total_tokens
        return response

    async def generate_context(self, chunk_content: str, document_content: str) -> str:
        """Short context situating a chunk within its document."""
        system, user = build_context_messages(chunk_content, document_content)
        response = await self._complete(
            system,
            user,
            max_tokens=min(CONTEXT_MAX_TOKENS, self._max_output_tokens),
            temperature=self._temperature,
            service="chat",
        )
        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    async def generate_answer(
        self,
        prompt: str,
        context: PromptContext,
        options: Optional[GenerateOptions] = None
    ) -> str:
        """Answer a prompt from ranked matches or a single chunk context.

        When `options.on_token` is set the completion is streamed and each text
        delta is passed to the callback as it arrives.
        """
        options = options or GenerateOptions()
        system, user = build_prompt_messages(prompt, context, options.system_prompt)
        max_tokens = options.max_tokens or self._max_output_tokens
        temperature = self._temperature if options.temperature is None else options.temperature

        if options.on_token is None:
            response = await self._complete(system, user, max_tokens, temperature, service="chat")
            if not response.choices:
                return ""
            return (response.choices[0].message.content or "").strip()

        try:
            stream = await self._client.chat.completions.create(
                model=self._chat_model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
                stream=True,
            )
            parts: List[str] = []
            async for event in stream:
                if options.cancellation is not None:
                    options.cancellation.raise_if_cancelled("generate_answer")
                if not event.choices:
                    continue
                delta = event.choices[0].delta.content
                if delta:
                    parts.append(delta)
                    options.on_token(delta)
        except openai.OpenAIError as e:
            raise self._map_error(e, "chat") from e

        self._usage_stats["chat_requests"] += 1
        return "".join(parts).strip()

    def get_usage_stats(self) -> Dict[str, Any]:
        """Get usage statistics."""
        return self._usage_stats.copy()
