"""Ingest command module - synchronizes the knowledge base with the document source."""

import argparse
import sys

from loguru import logger

from core.exceptions import IngestionError, MimirError
from mimir import __version__
from mimir.rate_limiter import CancellationToken
from registry import ProviderRegistry
from ..utils.config_helpers import args_to_config
from ..utils.output import OutputFormatter, format_ingestion_stats, format_stats


async def ingest_command(args: argparse.Namespace) -> None:
    """Execute the ingest command using the service layer.

    Args:
        args: Parsed command-line arguments
    """
    formatter = OutputFormatter(verbose=args.verbose)
    registry = ProviderRegistry()
    cancellation = CancellationToken()

    try:
        config = args_to_config(args)
        registry.configure(config)

        formatter.info(f"Starting Mimir v{__version__}")
        formatter.info(f"Source: {config.source.directory}" + (f" (scope {config.source.scope})" if config.source.scope else ""))
        formatter.info(f"Database: {config.database.path}")
        formatter.verbose_info(repr(config))

        coordinator = registry.create_ingestion_coordinator()
        stats = await coordinator.ingest(scope=config.source.scope, cancellation=cancellation)

        formatter.success(f"Ingestion complete: {format_ingestion_stats(stats)}")
        formatter.info(f"Knowledge base: {format_stats(coordinator.store.get_stats())}")

    except IngestionError as e:
        formatter.error(f"Ingestion failed: {e.cause}")
        formatter.info(f"Completed before failure: {format_ingestion_stats(e.stats)}")
        logger.debug(f"Ingestion error details: {e!r}")
        sys.exit(1)
    except MimirError as e:
        formatter.error(str(e))
        sys.exit(1)
    except BaseException:
        cancellation.cancel()
        raise
    finally:
        await registry.close()
