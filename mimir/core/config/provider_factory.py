"""
LLM provider factory for Mimir.

This module builds the configured embedding and chat providers from
validated configuration so the CLI and the registry share one construction
path.
"""

from loguru import logger

from core.exceptions import ConfigurationError
from core.types import ProviderKind
from interfaces.llm_provider import ChatProvider, EmbeddingProvider
from providers.llm import AnthropicProvider, OpenAIProvider

from .llm_config import ChatModelConfig, EmbeddingModelConfig, ModelEndpointConfig


class ProviderFactory:
    """Factory for creating embedding and chat providers from configuration."""

    @staticmethod
    def _validate(config: ModelEndpointConfig) -> ProviderKind:
        # Validate configuration completeness
        if not config.is_provider_configured():
            missing = config.get_missing_config()
            raise ConfigurationError(
                f"llm.{config.call_kind.value}",
                config.provider,
                f"Incomplete configuration for {config.provider} provider. Missing: {', '.join(missing)}"
            )

        kind = ProviderKind.from_string(config.provider)
        logger.debug(
            f"Creating {kind.value} {config.call_kind.value} provider: model={config.model}, "
            f"base_url={config.base_url}, api_key={'***' if config.api_key else None}"
        )
        return kind

    @staticmethod
    def _api_key(config: ModelEndpointConfig):
        return config.api_key.get_secret_value() if config.api_key else None

    @staticmethod
    def create_embedding_provider(config: EmbeddingModelConfig) -> EmbeddingProvider:
        """
        Create the embedding provider from configuration.

        Args:
            config: Validated embedding section

        Returns:
            Configured provider instance

        Raises:
            ConfigurationError: If the configuration is incomplete or the
                vendor has no embeddings endpoint
        """
        kind = ProviderFactory._validate(config)
        if not kind.supports_embeddings:
            raise ConfigurationError("llm.embedding.provider", kind.value, f"{kind.value} does not serve embeddings")

        return OpenAIProvider(
            kind=kind,
            api_key=ProviderFactory._api_key(config),
            base_url=config.base_url,
            embedding_model=config.model,
            dimensions=config.dimensions,
            timeout=config.timeout,
        )

    @staticmethod
    def create_chat_provider(config: ChatModelConfig) -> ChatProvider:
        """
        Create the chat provider from configuration.

        Args:
            config: Validated chat section

        Returns:
            Configured provider instance

        Raises:
            ConfigurationError: If the configuration is incomplete
        """
        kind = ProviderFactory._validate(config)
        if kind == ProviderKind.ANTHROPIC:
            return AnthropicProvider(
                api_key=ProviderFactory._api_key(config),
                base_url=config.base_url,
                chat_model=config.model,
                timeout=config.timeout,
                temperature=config.temperature,
                max_output_tokens=config.max_output_tokens,
            )

        return OpenAIProvider(
            kind=kind,
            api_key=ProviderFactory._api_key(config),
            base_url=config.base_url,
            chat_model=config.model,
            timeout=config.timeout,
            temperature=config.temperature,
            max_output_tokens=config.max_output_tokens,
        )

    @staticmethod
    def get_supported_providers() -> list[str]:
        """
        Get list of supported LLM providers.

        Returns:
            List of supported provider names
        """
        return [kind.value for kind in ProviderKind]
