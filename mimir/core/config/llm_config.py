"""
LLM provider configuration for Mimir.

This module provides a type-safe, validated configuration for the two model
endpoints Mimir talks to: the embedding model used for ingestion and query
vectors, and the chat model used for chunk context and answers. Each section
selects its own provider and carries the rate limit budget its request
scheduler is built from.
"""

import os
from typing import Any, ClassVar, Dict, Literal, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.models import RateLimitBudget
from core.types import CallKind


class RateLimitSettings(BaseModel):
    """Rate limit overrides for one call kind; unset fields keep provider defaults."""

    concurrency: Optional[int] = Field(
        default=None,
        ge=1,
        le=100,
        description="Maximum concurrent requests"
    )

    requests_per_minute: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum requests started per minute"
    )

    tokens_per_minute: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum estimated tokens per minute"
    )

    retries: Optional[int] = Field(
        default=None,
        ge=0,
        le=20,
        description="Retry attempts after the first failure"
    )

    batch_size: Optional[int] = Field(
        default=None,
        ge=1,
        le=2048,
        description="Texts per embedding request"
    )


# Budgets used when nothing is configured, by provider and call kind
PROVIDER_DEFAULT_LIMITS: Dict[str, Dict[CallKind, Dict[str, Any]]] = {
    'openai': {
        CallKind.EMBEDDING: {
            'concurrency': 4,
            'requests_per_minute': 1500,
            'tokens_per_minute': 6_250_000,
            'retries': 6,
            'batch_size': 100,
        },
        CallKind.CHAT: {
            'concurrency': 3,
            'requests_per_minute': 500,
            'tokens_per_minute': 90_000,
            'retries': 5,
        },
    },
    'mistral': {
        CallKind.EMBEDDING: {
            'concurrency': 3,
            'requests_per_minute': 600,
            'tokens_per_minute': 1_000_000,
            'retries': 5,
            'batch_size': 64,
        },
        CallKind.CHAT: {
            'concurrency': 4,
            'requests_per_minute': 200,
            'tokens_per_minute': 400_000,
            'retries': 5,
        },
    },
    'anthropic': {
        CallKind.CHAT: {
            'concurrency': 4,
            'requests_per_minute': 200,
            'tokens_per_minute': 200_000,
            'retries': 5,
        },
    },
}

GENERIC_DEFAULT_LIMITS: Dict[str, Any] = {
    'concurrency': 5,
    'retries': 5,
    'batch_size': 50,
}

# Environment variables holding each vendor's key when none is configured
PROVIDER_API_KEY_ENV: Dict[str, str] = {
    'openai': 'OPENAI_API_KEY',
    'openai-compatible': 'OPENAI_API_KEY',
    'mistral': 'MISTRAL_API_KEY',
    'anthropic': 'ANTHROPIC_API_KEY',
}

# Maximum input tokens per embedding request, by model
EMBEDDING_TOKEN_LIMITS: Dict[str, int] = {
    'text-embedding-3-large': 8192,
    'text-embedding-3-small': 8192,
    'text-embedding-ada-002': 8192,
    'text-embedding-ada-002-v2': 8192,
    'mistral-embed': 8192,
}

DEFAULT_EMBEDDING_TOKEN_LIMIT = 8192

EMBEDDING_DIMENSIONS: Dict[str, int] = {
    'text-embedding-3-small': 1536,
    'text-embedding-3-large': 3072,
    'text-embedding-ada-002': 1536,
    'mistral-embed': 1024,
}

DEFAULT_EMBEDDING_DIMENSIONS = 1536


def normalize_base_url(url: Optional[str]) -> Optional[str]:
    """Strip the trailing slash and require an http(s) scheme."""
    if url is None or url == '':
        return None

    # Remove trailing slash for consistency
    url = url.rstrip('/')

    if not (url.startswith('http://') or url.startswith('https://')):
        raise ValueError('base_url must start with http:// or https://')

    return url


def resolve_embedding_token_limit(model: str, explicit: Optional[int] = None) -> int:
    """
    Resolve the per-chunk token limit for an embedding model.

    An explicit limit wins. Otherwise the model name is looked up after
    trimming and lower-casing, first exactly and then as a prefix match
    (so dated or suffixed variants inherit their family's limit).

    Args:
        model: Embedding model name
        explicit: Configured override

    Returns:
        Token limit for one embedded chunk
    """
    if explicit is not None:
        return explicit

    normalized = (model or '').strip().lower()
    if normalized in EMBEDDING_TOKEN_LIMITS:
        return EMBEDDING_TOKEN_LIMITS[normalized]

    for name, limit in EMBEDDING_TOKEN_LIMITS.items():
        if normalized.startswith(name):
            return limit

    return DEFAULT_EMBEDDING_TOKEN_LIMIT


class ModelEndpointConfig(BaseModel):
    """Connection, model and rate limit settings shared by both sections."""

    call_kind: ClassVar[CallKind]

    provider: str = 'openai'

    model: str

    api_key: Optional[SecretStr] = Field(
        default=None,
        description="API key (falls back to the vendor's usual environment variable)"
    )

    base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the provider API"
    )

    timeout: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Request timeout in seconds"
    )

    limits: RateLimitSettings = Field(
        default_factory=RateLimitSettings,
        description="Rate limit overrides for this call kind"
    )

    @field_validator('api_key', mode='before')
    def empty_api_key_is_unset(cls, v: Any) -> Any:
        return v or None

    @field_validator('base_url')
    def validate_base_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate and normalize base URL."""
        return normalize_base_url(v)

    @model_validator(mode='after')
    def apply_environment_fallbacks(self) -> 'ModelEndpointConfig':
        """Fill the key and base URL from the vendor's own environment variables."""
        if self.api_key is None:
            key = os.getenv(PROVIDER_API_KEY_ENV.get(self.provider, ''), '') or None
            if key:
                self.api_key = SecretStr(key)
        if self.base_url is None and self.provider in ('openai', 'openai-compatible'):
            base_url = os.getenv('OPENAI_BASE_URL') or None
            if base_url:
                self.base_url = normalize_base_url(base_url)
        return self

    def get_budget(self) -> RateLimitBudget:
        """
        Resolve the admission budget for this section's call kind.

        Provider defaults are applied first and any configured override
        replaces the matching field.

        Returns:
            Budget for the request scheduler of this call kind
        """
        kind = self.call_kind
        values = dict(PROVIDER_DEFAULT_LIMITS.get(self.provider, {}).get(kind, GENERIC_DEFAULT_LIMITS))
        values.update(self.limits.model_dump(exclude_none=True))

        return RateLimitBudget(
            concurrency=values.get('concurrency', GENERIC_DEFAULT_LIMITS['concurrency']),
            requests_per_window=values.get('requests_per_minute'),
            tokens_per_window=values.get('tokens_per_minute'),
            retries=values.get('retries', GENERIC_DEFAULT_LIMITS['retries']),
            batch_size=values.get('batch_size', GENERIC_DEFAULT_LIMITS['batch_size']),
            window_seconds=60.0,
        )

    def get_missing_config(self) -> list[str]:
        """
        Get list of missing required configuration parameters.

        Returns:
            List of missing configuration parameter names
        """
        section = self.call_kind.value
        if self.provider == 'openai-compatible':
            if not self.base_url:
                return [f'{section}.base_url (MIMIR_LLM_{section.upper()}__BASE_URL)']
            return []
        if not self.api_key:
            env_name = PROVIDER_API_KEY_ENV.get(self.provider, 'API_KEY')
            return [f'{section}.api_key (MIMIR_LLM_{section.upper()}__API_KEY or {env_name})']
        return []

    def is_provider_configured(self) -> bool:
        """Check if the provider has all required configuration."""
        return not self.get_missing_config()

    def __repr__(self) -> str:
        """String representation hiding sensitive information."""
        api_key_display = "***" if self.api_key else None
        return (
            f"{self.__class__.__name__}("
            f"provider={self.provider}, "
            f"model={self.model}, "
            f"api_key={api_key_display}, "
            f"base_url={self.base_url})"
        )


class EmbeddingModelConfig(ModelEndpointConfig):
    """Embedding model section."""

    call_kind: ClassVar[CallKind] = CallKind.EMBEDDING

    provider: Literal['openai', 'openai-compatible', 'mistral'] = Field(
        default='openai',
        description="Embedding provider to use"
    )

    model: str = Field(
        default='text-embedding-3-small',
        description="Embedding model name"
    )

    dimensions: Optional[int] = Field(
        default=None,
        ge=1,
        le=8192,
        description="Requested embedding dimensions (model default if not specified)"
    )

    def get_dimensions(self) -> int:
        """Configured dimensions, or the model's native size."""
        if self.dimensions:
            return self.dimensions
        return EMBEDDING_DIMENSIONS.get(self.model.strip().lower(), DEFAULT_EMBEDDING_DIMENSIONS)

    def get_token_limit(self, explicit: Optional[int] = None) -> int:
        """Per-chunk token limit for this model, unless `explicit` is given."""
        return resolve_embedding_token_limit(self.model, explicit)


class ChatModelConfig(ModelEndpointConfig):
    """Chat model section."""

    call_kind: ClassVar[CallKind] = CallKind.CHAT

    provider: Literal['openai', 'openai-compatible', 'mistral', 'anthropic'] = Field(
        default='openai',
        description="Chat provider to use"
    )

    model: str = Field(
        default='gpt-4o-mini',
        description="Chat model used for context and answer generation"
    )

    temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for chat requests"
    )

    max_output_tokens: int = Field(
        default=2000,
        ge=1,
        le=32768,
        description="Completion token limit for answers"
    )


class LLMConfig(BaseSettings):
    """
    Configuration for the embedding and chat providers.

    Configuration Sources (in order of precedence):
    1. Runtime parameters (highest priority)
    2. Environment variables (MIMIR_LLM_*)
    3. Vendor key variables (OPENAI_API_KEY, MISTRAL_API_KEY, ANTHROPIC_API_KEY)
    4. Default values (lowest priority)

    Environment Variable Examples:
        MIMIR_LLM_EMBEDDING__PROVIDER=mistral
        MIMIR_LLM_EMBEDDING__MODEL=mistral-embed
        MIMIR_LLM_CHAT__PROVIDER=anthropic
        MIMIR_LLM_CHAT__MODEL=claude-3-5-haiku-latest
        MIMIR_LLM_CHAT__LIMITS__CONCURRENCY=2
    """

    model_config = SettingsConfigDict(
        env_prefix='MIMIR_LLM_',
        env_nested_delimiter='__',
        case_sensitive=False,
        validate_default=True,
        extra='ignore',  # Ignore unknown fields for forward compatibility
    )

    embedding: EmbeddingModelConfig = Field(
        default_factory=EmbeddingModelConfig,
        description="Embedding model configuration"
    )

    chat: ChatModelConfig = Field(
        default_factory=ChatModelConfig,
        description="Chat model configuration"
    )

    def get_section(self, kind: CallKind) -> ModelEndpointConfig:
        """Section serving one call kind."""
        return self.embedding if kind == CallKind.EMBEDDING else self.chat

    def get_budget(self, kind: CallKind) -> RateLimitBudget:
        """Admission budget for one call kind."""
        return self.get_section(kind).get_budget()

    def is_provider_configured(self) -> bool:
        """
        Check if both providers are properly configured.

        Returns:
            True if each section has all required configuration
        """
        return self.embedding.is_provider_configured() and self.chat.is_provider_configured()

    def get_missing_config(self) -> list[str]:
        """
        Get list of missing required configuration parameters.

        Returns:
            List of missing configuration parameter names
        """
        return self.embedding.get_missing_config() + self.chat.get_missing_config()

    def __repr__(self) -> str:
        """String representation hiding sensitive information."""
        return f"LLMConfig(embedding={self.embedding!r}, chat={self.chat!r})"
