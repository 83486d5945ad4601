"""Ingest command argument parser for Mimir CLI."""

import argparse
from pathlib import Path
from typing import Any, cast

from .main_parser import add_common_arguments, add_database_argument, add_llm_arguments


def add_ingest_subparser(subparsers: Any) -> argparse.ArgumentParser:
    """Add ingest command subparser to the main parser.

    Args:
        subparsers: Subparsers object from the main argument parser

    Returns:
        The configured ingest subparser
    """
    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Synchronize the knowledge base with the documents",
        description="Chunk documents, reconcile them with stored chunks, and embed what changed.",
    )

    ingest_parser.add_argument(
        "--source",
        type=Path,
        help="Directory to read documents from (overrides source.directory)",
    )

    ingest_parser.add_argument(
        "--scope",
        help="Only ingest documents under this sub-path (disables pruning)",
    )

    ingest_parser.add_argument(
        "--no-context",
        action="store_true",
        help="Skip situating context generation for new chunks",
    )

    ingest_parser.add_argument(
        "--no-prune",
        action="store_true",
        help="Keep stored documents that no longer exist in the source",
    )

    ingest_parser.add_argument(
        "--token-limit",
        type=int,
        help="Maximum tokens per chunk",
    )

    add_common_arguments(ingest_parser)
    add_database_argument(ingest_parser)
    add_llm_arguments(ingest_parser)

    return cast(argparse.ArgumentParser, ingest_parser)


__all__ = ["add_ingest_subparser"]
