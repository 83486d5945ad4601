"""Shared utilities for Mimir CLI commands."""

from .config_helpers import args_to_config
from .output import OutputFormatter, format_ingestion_stats, format_sources, format_stats

__all__ = [
    "OutputFormatter",
    "args_to_config",
    "format_stats",
    "format_ingestion_stats",
    "format_sources",
]
