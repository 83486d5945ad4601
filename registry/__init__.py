"""Provider registry and dependency injection container for Mimir."""

from typing import Any, Callable, Dict, Optional

from loguru import logger

from core.types import CallKind
from mimir.chunker import DocumentChunker
from mimir.core.config import MimirConfig, ProviderFactory
from mimir.rate_limiter import RequestScheduler
from mimir.source_links import SourceLinkResolver
from mimir.tokenizer import TokenizerRegistry
from providers.database.duckdb_provider import DuckDBChunkStore
from providers.source.local_source import LocalDocumentSource
from services.answer_assembler import CitationAssembler
from services.embedding_service import EmbeddingBatcher
from services.indexing_coordinator import IngestionCoordinator
from services.query_service import QueryService
from services.retrieval_service import HybridRetrievalRanker


class ProviderRegistry:
    """Registry for managing provider implementations and dependency injection."""

    def __init__(self):
        """Initialize the provider registry."""
        self._providers: Dict[str, Any] = {}
        self._singletons: Dict[str, Any] = {}
        self._config: Optional[MimirConfig] = None

    @property
    def config(self) -> MimirConfig:
        if self._config is None:
            raise ValueError("Provider registry is not configured")
        return self._config

    def configure(self, config: MimirConfig) -> None:
        """Configure the registry with application settings.

        Registers default factories for every component. Call
        register_provider afterwards to replace one of them.

        Args:
            config: Loaded configuration
        """
        self._config = config
        self._register_default_providers()
        logger.info("Provider registry configured")

    def register_provider(self, name: str, implementation: Callable[[], Any], singleton: bool = True) -> None:
        """Register a provider factory.

        Args:
            name: Provider name/identifier
            implementation: Callable producing the instance
            singleton: Whether to use singleton pattern for this provider
        """
        self._providers[name] = (implementation, singleton)

        # Clear existing singleton if registered
        if name in self._singletons:
            del self._singletons[name]

        logger.debug(f"Registered provider {name}")

    def get_provider(self, name: str) -> Any:
        """Get a provider instance for the specified name.

        Args:
            name: Provider name to get

        Returns:
            Provider instance

        Raises:
            ValueError: If no provider is registered for the name
        """
        if name not in self._providers:
            raise ValueError(f"No provider registered for {name}")

        factory, is_singleton = self._providers[name]

        if is_singleton:
            if name not in self._singletons:
                self._singletons[name] = factory()
            return self._singletons[name]
        return factory()

    def _register_default_providers(self) -> None:
        """Register default provider implementations from configuration."""
        config = self.config

        self.register_provider("database", self._create_store)
        self.register_provider("embedding", lambda: ProviderFactory.create_embedding_provider(config.llm.embedding))
        self.register_provider("chat", lambda: ProviderFactory.create_chat_provider(config.llm.chat))
        self.register_provider("tokenizer", lambda: TokenizerRegistry(config.llm.embedding.model))
        self.register_provider("embedding_scheduler", lambda: self._create_scheduler(CallKind.EMBEDDING))
        self.register_provider("chat_scheduler", lambda: self._create_scheduler(CallKind.CHAT))
        self.register_provider("source", lambda: LocalDocumentSource(
            config.source.directory,
            patterns=config.source.include_patterns,
            exclude_patterns=config.source.exclude_patterns,
        ))
        self.register_provider("links", lambda: SourceLinkResolver(
            github_url=config.source.github_url,
            branch=config.source.branch,
            directory=config.source.repo_directory,
            docs_base_url=config.source.docs_base_url,
            content_path=config.source.content_path,
        ))

    def _create_store(self) -> DuckDBChunkStore:
        store = DuckDBChunkStore(self.config.database.path, self.config.get_dimensions())
        store.connect()
        return store

    def _create_scheduler(self, kind: CallKind) -> RequestScheduler:
        budget = self.config.llm.get_budget(kind)
        name = f"{self.config.llm.get_section(kind).provider}:{kind.value}"
        logger.debug(
            f"Creating scheduler {name}: concurrency={budget.concurrency}, "
            f"rpm={budget.requests_per_window}, tpm={budget.tokens_per_window}, retries={budget.retries}"
        )
        return RequestScheduler(name, budget)

    def create_embedding_batcher(self) -> EmbeddingBatcher:
        """Create an EmbeddingBatcher with all dependencies.

        Returns:
            Configured EmbeddingBatcher instance
        """
        return EmbeddingBatcher(
            provider=self.get_provider("embedding"),
            scheduler=self.get_provider("embedding_scheduler"),
            tokenizer=self.get_provider("tokenizer"),
        )

    def create_ingestion_coordinator(self) -> IngestionCoordinator:
        """Create an IngestionCoordinator with all dependencies.

        Returns:
            Configured IngestionCoordinator instance
        """
        config = self.config
        tokenizer = self.get_provider("tokenizer")
        token_limit = config.get_token_limit()
        logger.debug(f"Chunk token limit {token_limit} for {config.llm.embedding.model}")

        return IngestionCoordinator(
            chunk_store=self.get_provider("database"),
            chat_provider=self.get_provider("chat"),
            chat_scheduler=self.get_provider("chat_scheduler"),
            embedding_batcher=self.create_embedding_batcher(),
            chunker=DocumentChunker(tokenizer, token_limit, config.llm.embedding.model),
            tokenizer=tokenizer,
            document_source=self.get_provider("source"),
            generate_context=config.ingestion.generate_context,
            prune_missing=config.ingestion.prune_missing,
        )

    def create_query_service(self) -> QueryService:
        """Create a QueryService with all dependencies.

        Returns:
            Configured QueryService instance
        """
        config = self.config
        ranker = HybridRetrievalRanker(
            self.get_provider("database"),
            match_count=config.retrieval.match_count,
            similarity_threshold=config.retrieval.similarity_threshold,
            hybrid=config.retrieval.hybrid,
            lexical_match_count=config.retrieval.lexical_match_count,
        )

        return QueryService(
            chat_provider=self.get_provider("chat"),
            chat_scheduler=self.get_provider("chat_scheduler"),
            embedding_batcher=self.create_embedding_batcher(),
            ranker=ranker,
            assembler=CitationAssembler(self.get_provider("links")),
            tokenizer=self.get_provider("tokenizer"),
            system_prompt=config.retrieval.system_prompt,
            temperature=config.llm.chat.temperature,
            max_tokens=config.llm.chat.max_output_tokens,
        )

    async def close(self) -> None:
        """Release provider resources that were created."""
        for name in ("embedding", "chat"):
            provider = self._singletons.pop(name, None)
            if provider is not None:
                await provider.close()

        store = self._singletons.pop("database", None)
        if store is not None and store.is_connected:
            store.disconnect()


# Global registry instance (lazy initialization)
_registry = None


def get_registry() -> ProviderRegistry:
    """Get the global registry instance.

    Returns:
        Global ProviderRegistry instance
    """
    global _registry
    if _registry is None:
        _registry = ProviderRegistry()
    return _registry


def configure_registry(config: MimirConfig) -> ProviderRegistry:
    """Configure the global provider registry.

    Args:
        config: Loaded configuration

    Returns:
        The configured global registry
    """
    registry = get_registry()
    registry.configure(config)
    return registry


def reset_registry() -> None:
    """Drop the global registry instance."""
    global _registry
    _registry = None


__all__ = [
    'ProviderRegistry',
    'get_registry',
    'configure_registry',
    'reset_registry'
]
