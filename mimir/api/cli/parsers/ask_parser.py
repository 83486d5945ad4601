"""Ask command argument parser for Mimir CLI."""

import argparse
from typing import Any, cast

from .main_parser import add_common_arguments, add_database_argument, add_llm_arguments


def add_ask_subparser(subparsers: Any) -> argparse.ArgumentParser:
    """Add ask command subparser to the main parser.

    Args:
        subparsers: Subparsers object from the main argument parser

    Returns:
        The configured ask subparser
    """
    ask_parser = subparsers.add_parser(
        "ask",
        help="Answer a question from the knowledge base",
        description="Retrieve relevant chunks and answer the question with cited sources.",
    )

    ask_parser.add_argument(
        "question",
        help="Question to answer",
    )

    ask_parser.add_argument(
        "--match-count",
        type=int,
        help="Number of chunks to retrieve",
    )

    ask_parser.add_argument(
        "--threshold",
        type=float,
        help="Minimum cosine similarity for vector matches",
    )

    ask_parser.add_argument(
        "--no-hybrid",
        action="store_true",
        help="Use vector search only",
    )

    ask_parser.add_argument(
        "--stream",
        action="store_true",
        help="Print the answer as it is generated",
    )

    ask_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the answer and sources as JSON",
    )

    add_common_arguments(ask_parser)
    add_database_argument(ask_parser)
    add_llm_arguments(ask_parser)

    return cast(argparse.ArgumentParser, ask_parser)


__all__ = ["add_ask_subparser"]
