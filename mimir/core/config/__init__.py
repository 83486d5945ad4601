"""
Configuration management package for Mimir.

This package provides a unified configuration system that supports:
- Multiple configuration sources (environment variables, YAML and JSON files, runtime overrides)
- Type-safe configuration validation using Pydantic
- Separate embedding and chat providers, each with its own rate limit budget
- Secure handling of sensitive configuration data
"""

from .llm_config import (
    ChatModelConfig,
    EmbeddingModelConfig,
    LLMConfig,
    RateLimitSettings,
    resolve_embedding_token_limit,
)
from .provider_factory import ProviderFactory
from .settings_sources import (
    JsonConfigSettingsSource,
    YamlConfigSettingsSource,
    create_config_sources,
    find_config_files,
)
from .unified_config import (
    DatabaseConfig,
    IngestionConfig,
    MimirConfig,
    RetrievalConfig,
    SourceConfig,
)

__all__ = [
    "ChatModelConfig",
    "EmbeddingModelConfig",
    "LLMConfig",
    "RateLimitSettings",
    "resolve_embedding_token_limit",
    "ProviderFactory",
    "YamlConfigSettingsSource",
    "JsonConfigSettingsSource",
    "create_config_sources",
    "find_config_files",
    "MimirConfig",
    "SourceConfig",
    "IngestionConfig",
    "RetrievalConfig",
    "DatabaseConfig",
]
