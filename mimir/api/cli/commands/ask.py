"""Ask command module - answers a question from the knowledge base with cited sources."""

import argparse
import sys

from core.exceptions import MimirError
from mimir.rate_limiter import CancellationToken
from registry import ProviderRegistry
from services.answer_assembler import SourcesBlockFilter
from ..utils.config_helpers import args_to_config
from ..utils.output import OutputFormatter, format_sources


async def ask_command(args: argparse.Namespace) -> None:
    """Execute the ask command.

    Args:
        args: Parsed command-line arguments
    """
    formatter = OutputFormatter(verbose=args.verbose)
    registry = ProviderRegistry()
    cancellation = CancellationToken()
    stream = args.stream and not args.json
    sources_filter = SourcesBlockFilter()

    try:
        config = args_to_config(args)
        registry.configure(config)
        service = registry.create_query_service()

        result = await service.ask(
            args.question,
            on_token=(lambda token: formatter.text(sources_filter.feed(token), end="")) if stream else None,
            cancellation=cancellation,
        )

        if args.json:
            formatter.json_output(result.to_dict())
        elif stream:
            formatter.text(sources_filter.flush())
            if result.sources:
                formatter.text("\nSources:")
                formatter.text(format_sources(result.sources))
            elif not result.matches:
                formatter.text(result.answer)
        else:
            formatter.text(result.answer)

        formatter.verbose_info(f"{len(result.matches)} matches, {len(result.sources)} cited")

    except MimirError as e:
        formatter.error(str(e))
        sys.exit(1)
    except BaseException:
        cancellation.cancel()
        raise
    finally:
        await registry.close()
