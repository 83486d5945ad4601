"""Stats command module - shows knowledge base statistics."""

import argparse
import sys

from core.exceptions import MimirError
from registry import ProviderRegistry
from ..utils.config_helpers import args_to_config
from ..utils.output import OutputFormatter, format_stats


async def stats_command(args: argparse.Namespace) -> None:
    """Execute the stats command.

    Args:
        args: Parsed command-line arguments
    """
    formatter = OutputFormatter(verbose=args.verbose)
    registry = ProviderRegistry()

    try:
        config = args_to_config(args)
        registry.configure(config)
        stats = registry.get_provider("database").get_stats()

        if args.json:
            formatter.json_output(stats)
        else:
            formatter.info(f"Database: {stats['db_path']}")
            formatter.info(format_stats(stats))
            if not stats.get("lexical_search"):
                formatter.warning("Full-text search extension unavailable; answers use vector search only")

    except MimirError as e:
        formatter.error(str(e))
        sys.exit(1)
    finally:
        await registry.close()
