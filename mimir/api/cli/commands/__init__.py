"""Mimir CLI commands package - modular command implementations."""

from .ask import ask_command
from .ingest import ingest_command
from .stats import stats_command

__all__ = [
    "ingest_command",
    "ask_command",
    "stats_command",
]
