"""
Unified configuration system for Mimir.

This module provides a single, type-safe configuration model that unifies
LLM, document source, ingestion, retrieval and database settings with
hierarchical loading from config files, runtime overrides and the
environment.
"""

import os
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .llm_config import LLMConfig
from .settings_sources import USER_CONFIG_DIR, create_config_sources, deep_merge, find_config_files


class SourceConfig(BaseModel):
    """Document source and link configuration."""

    directory: str = Field(
        default='docs',
        description="Local directory documents are read from"
    )

    scope: Optional[str] = Field(
        default=None,
        description="Sub-path of the directory to ingest"
    )

    include_patterns: list[str] = Field(
        default_factory=lambda: ['**/*.md', '**/*.mdx', '**/*.markdown'],
        description="File patterns to include in ingestion"
    )

    exclude_patterns: list[str] = Field(
        default_factory=lambda: ['**/node_modules/**', '**/.git/**'],
        description="File patterns to exclude from ingestion"
    )

    github_url: Optional[str] = Field(
        default=None,
        description="Repository URL used to build source links"
    )

    branch: Optional[str] = Field(
        default=None,
        description="Branch for source links (defaults to the URL's branch or main)"
    )

    repo_directory: Optional[str] = Field(
        default=None,
        description="Repository sub-directory holding the documents"
    )

    docs_base_url: Optional[str] = Field(
        default=None,
        description="Base URL of the rendered documentation site"
    )

    content_path: str = Field(
        default='content/docs',
        description="Content root stripped from paths when building docs links"
    )


class IngestionConfig(BaseModel):
    """Ingestion configuration."""

    token_limit: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum tokens per chunk (embedding model limit if not specified)"
    )

    generate_context: bool = Field(
        default=True,
        description="Generate situating context for new or changed chunks"
    )

    prune_missing: bool = Field(
        default=True,
        description="Delete stored documents that no longer exist in the source"
    )


class RetrievalConfig(BaseModel):
    """Retrieval and answer configuration."""

    match_count: int = Field(
        default=10,
        ge=1,
        le=200,
        description="Number of matches passed to the answer model"
    )

    similarity_threshold: float = Field(
        default=0.75,
        ge=-1.0,
        le=1.0,
        description="Minimum cosine similarity for vector matches"
    )

    hybrid: bool = Field(
        default=True,
        description="Merge lexical matches with vector matches"
    )

    lexical_match_count: Optional[int] = Field(
        default=None,
        ge=1,
        description="Lexical candidates to fetch (defaults to match_count)"
    )

    system_prompt: Optional[str] = Field(
        default=None,
        description="Override for the answer system prompt"
    )


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = Field(
        default='.mimir/mimir.duckdb',
        description="Path to DuckDB database file"
    )

    dimensions: Optional[int] = Field(
        default=None,
        ge=1,
        le=8192,
        description="Embedding column size (provider dimensions if not specified)"
    )


class MimirConfig(BaseSettings):
    """
    Unified configuration for Mimir.

    Configuration Sources (in order of precedence):
    1. Runtime parameters (highest priority)
    2. Explicit config file (argument or MIMIR_CONFIG_PATH)
    3. Project config file (mimir.yaml, .mimir.yaml, .mimir.json)
    4. User config file (~/.config/mimir/mimir.yaml)
    5. Environment variables (MIMIR_*)
    6. Default values (lowest priority)

    Environment Variable Examples:
        MIMIR_LLM__CHAT__PROVIDER=anthropic
        MIMIR_LLM__EMBEDDING__API_KEY=sk-...
        MIMIR_SOURCE__DIRECTORY=content/docs
        MIMIR_RETRIEVAL__MATCH_COUNT=8
        MIMIR_DATABASE__PATH=custom.duckdb
        MIMIR_DEBUG=true
    """

    model_config = SettingsConfigDict(
        env_prefix='MIMIR_',
        env_nested_delimiter='__',
        case_sensitive=False,
        validate_default=True,
        extra='ignore',
        env_file=None,  # Disable automatic .env loading
    )

    # Component configurations
    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="LLM provider configuration"
    )

    source: SourceConfig = Field(
        default_factory=SourceConfig,
        description="Document source configuration"
    )

    ingestion: IngestionConfig = Field(
        default_factory=IngestionConfig,
        description="Ingestion configuration"
    )

    retrieval: RetrievalConfig = Field(
        default_factory=RetrievalConfig,
        description="Retrieval configuration"
    )

    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig,
        description="Database configuration"
    )

    # Global settings
    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    @field_validator('llm', mode='before')
    def build_llm_config(cls, v: Any) -> Any:
        """Instantiate nested LLM settings so MIMIR_LLM_* variables still apply."""
        if isinstance(v, dict):
            return LLMConfig(**v)
        return v

    @classmethod
    def load_hierarchical(
        cls,
        project_dir: Optional[Path] = None,
        config_file: Optional[Union[str, Path]] = None,
        **override_values: Any
    ) -> 'MimirConfig':
        """
        Load configuration from hierarchical sources.

        Args:
            project_dir: Project directory to search for config files
            config_file: Explicit config file (must exist when given)
            **override_values: Runtime parameter overrides, nested as dicts

        Returns:
            Loaded and validated configuration

        Raises:
            ConfigurationError: If the explicit config file is missing or invalid
        """
        search_dirs = [Path.home() / USER_CONFIG_DIR, project_dir or Path.cwd()]
        config_data: dict[str, Any] = {}

        # 1. User and project config files
        for source in create_config_sources(cls, find_config_files(search_dirs)):
            config_data = deep_merge(config_data, source())

        # 2. Explicit config file
        explicit = config_file or os.getenv('MIMIR_CONFIG_PATH')
        if explicit:
            for source in create_config_sources(cls, [explicit], required=True):
                config_data = deep_merge(config_data, source())

        # 3. Apply runtime overrides
        config_data = deep_merge(config_data, override_values)

        # 4. Create instance with environment variable support
        return cls(**config_data)

    def get_missing_config(self) -> list[str]:
        """
        Get list of missing required configuration parameters.

        Returns:
            List of missing configuration parameter names
        """
        return [f'llm.{item}' for item in self.llm.get_missing_config()]

    def is_fully_configured(self) -> bool:
        """
        Check if all required configuration is present.

        Returns:
            True if fully configured, False otherwise
        """
        return self.llm.is_provider_configured()

    def get_dimensions(self) -> int:
        """Embedding dimensions for the store column."""
        if self.database.dimensions:
            return self.database.dimensions
        return self.llm.embedding.get_dimensions()

    def get_token_limit(self) -> int:
        """Per-chunk token limit: the ingestion override or the embedding model's limit."""
        return self.llm.embedding.get_token_limit(self.ingestion.token_limit)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert configuration to dictionary format without secrets.

        Returns:
            Configuration as dictionary
        """
        return self.model_dump(mode='json', exclude_none=True, exclude={'llm': {'embedding': {'api_key'}, 'chat': {'api_key'}}})

    def __repr__(self) -> str:
        """String representation hiding sensitive information."""
        return (
            f"MimirConfig("
            f"llm.embedding={self.llm.embedding!r}, "
            f"llm.chat={self.llm.chat!r}, "
            f"source.directory={self.source.directory}, "
            f"database.path={self.database.path})"
        )
