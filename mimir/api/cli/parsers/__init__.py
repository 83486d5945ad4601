"""Argument parser utilities for Mimir CLI commands."""

from .main_parser import create_main_parser, setup_subparsers
from .ingest_parser import add_ingest_subparser
from .ask_parser import add_ask_subparser
from .stats_parser import add_stats_subparser

__all__ = [
    "create_main_parser",
    "setup_subparsers",
    "add_ingest_subparser",
    "add_ask_subparser",
    "add_stats_subparser",
]
