"""Main argument parser for Mimir CLI."""

import argparse
from pathlib import Path

from mimir import __version__


def create_main_parser() -> argparse.ArgumentParser:
    """Create and configure the main argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="mimir",
        description="Keep a documentation knowledge base in sync and answer questions with cited sources",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  mimir ingest --source ./docs
  mimir ingest --scope guides/getting-started --no-context
  mimir ask "How do I configure the cache?"
  mimir ask "What does the sync command do?" --match-count 5 --stream
  mimir stats --db ./mimir.duckdb
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"mimir {__version__}",
    )

    return parser


def setup_subparsers(parser: argparse.ArgumentParser) -> argparse._SubParsersAction:
    """Set up subparsers for the main parser.

    Args:
        parser: Main argument parser

    Returns:
        Subparsers action for adding command parsers
    """
    return parser.add_subparsers(dest="command", help="Available commands")


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Add common arguments used across multiple commands.

    Args:
        parser: Parser to add arguments to
    """
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Configuration file path (YAML or JSON)",
    )


def add_llm_arguments(parser: argparse.ArgumentParser) -> None:
    """Add LLM provider override arguments to a parser.

    Args:
        parser: Parser to add arguments to
    """
    parser.add_argument(
        "--embedding-provider",
        choices=["openai", "openai-compatible", "mistral"],
        help="Embedding provider to use (overrides llm.embedding.provider)",
    )

    parser.add_argument(
        "--chat-provider",
        choices=["openai", "openai-compatible", "mistral", "anthropic"],
        help="Chat provider to use (overrides llm.chat.provider)",
    )

    parser.add_argument(
        "--embedding-model",
        help="Embedding model to use (overrides llm.embedding.model)",
    )

    parser.add_argument(
        "--chat-model",
        help="Chat model for context and answers (overrides llm.chat.model)",
    )

    parser.add_argument(
        "--api-key",
        help="API key for both providers (defaults to each vendor's key variable, e.g. OPENAI_API_KEY)",
    )

    parser.add_argument(
        "--base-url",
        help="Base URL of an OpenAI-compatible API serving both embeddings and chat",
    )


def add_database_argument(parser: argparse.ArgumentParser) -> None:
    """Add database path argument to a parser.

    Args:
        parser: Parser to add argument to
    """
    parser.add_argument(
        "--db",
        type=Path,
        help="DuckDB database file path (default: .mimir/mimir.duckdb)",
    )


__all__ = [
    "create_main_parser",
    "setup_subparsers",
    "add_common_arguments",
    "add_llm_arguments",
    "add_database_argument",
]
