"""Output formatting utilities for Mimir CLI commands."""

import json
import sys
from typing import Any, Dict, List

from core.models import IngestionStats, SourceReference


class OutputFormatter:
    """Handles consistent output formatting across CLI commands."""

    def __init__(self, verbose: bool = False):
        """Initialize output formatter.

        Args:
            verbose: Whether to enable verbose output
        """
        self.verbose = verbose

    def info(self, message: str) -> None:
        print(f"ℹ️  {message}")

    def success(self, message: str) -> None:
        print(f"✅ {message}")

    def warning(self, message: str) -> None:
        print(f"⚠️  {message}")

    def error(self, message: str) -> None:
        print(f"❌ {message}", file=sys.stderr)

    def verbose_info(self, message: str) -> None:
        """Print a verbose info message if verbose mode is enabled."""
        if self.verbose:
            print(f"🔍 {message}")

    def text(self, message: str = "", end: str = "\n") -> None:
        """Print text as-is, flushing immediately for streamed output."""
        print(message, end=end, flush=True)

    def json_output(self, data: Dict[str, Any]) -> None:
        """Print data as formatted JSON.

        Args:
            data: Data to output as JSON
        """
        print(json.dumps(data, indent=2, default=str))


def format_stats(stats: Dict[str, Any]) -> str:
    """Format store statistics for display.

    Args:
        stats: Statistics dictionary from the chunk store

    Returns:
        Formatted statistics string
    """
    documents = stats.get('documents', 0)
    chunks = stats.get('chunks', 0)
    contextual = stats.get('contextualized_chunks', 0)

    return f"{documents} documents, {chunks} chunks ({contextual} with context)"


def format_ingestion_stats(stats: IngestionStats) -> str:
    """Format ingestion counters for display."""
    return (
        f"{stats.processed_documents} processed, {stats.skipped_documents} skipped, "
        f"{stats.upserted_chunks} upserted, {stats.reordered_chunks} reordered, "
        f"{stats.deleted_chunks} deleted, {stats.pruned_documents} documents pruned"
    )


def format_sources(sources: List[SourceReference]) -> str:
    """Format cited sources as a numbered list."""
    return "\n".join(
        f"{index}. {source.title or source.filepath} - {source.url}"
        for index, source in enumerate(sources, start=1)
    )
