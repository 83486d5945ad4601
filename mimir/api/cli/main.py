"""CLI entry point for Mimir."""

import argparse
import asyncio
import sys

from loguru import logger


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the CLI.

    Args:
        verbose: Whether to enable verbose logging
    """
    logger.remove()

    if verbose:
        logger.add(
            sys.stderr,
            level="DEBUG",
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
        )
    else:
        logger.add(
            sys.stderr,
            level="INFO",
            format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
        )


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the complete argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    from .parsers import (
        add_ask_subparser,
        add_ingest_subparser,
        add_stats_subparser,
        create_main_parser,
        setup_subparsers,
    )

    parser = create_main_parser()
    subparsers = setup_subparsers(parser)

    # Add command subparsers
    add_ingest_subparser(subparsers)
    add_ask_subparser(subparsers)
    add_stats_subparser(subparsers)

    return parser


async def async_main(argv: list[str] | None = None) -> None:
    """Async main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(getattr(args, "verbose", False))

    # Command modules are imported lazily to keep --help fast
    if args.command == "ingest":
        from .commands.ingest import ingest_command
        await ingest_command(args)
    elif args.command == "ask":
        from .commands.ask import ask_command
        await ask_command(args)
    elif args.command == "stats":
        from .commands.stats import stats_command
        await stats_command(args)
    else:
        logger.error(f"Unknown command: {args.command}")
        sys.exit(1)


def main() -> None:
    """Main entry point for the CLI."""
    try:
        asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        logger.opt(exception=e).debug("Full error details")
        sys.exit(1)


if __name__ == "__main__":
    main()
