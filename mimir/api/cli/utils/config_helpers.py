"""
Configuration helper utilities for CLI commands.

This module provides utilities to bridge CLI arguments with the unified
configuration system.
"""

import argparse
from pathlib import Path
from typing import Any, Dict

from mimir.core.config import MimirConfig


def args_to_config(args: argparse.Namespace, project_dir: Path | None = None) -> MimirConfig:
    """
    Convert CLI arguments to unified configuration.

    Args:
        args: Parsed CLI arguments
        project_dir: Project directory for config file loading

    Returns:
        MimirConfig instance

    Raises:
        ConfigurationError: If an explicit config file cannot be loaded
    """
    config_overrides: Dict[str, Any] = {}

    # LLM provider configuration, one section per call kind
    llm_config: Dict[str, Dict[str, Any]] = {}
    for section in ('embedding', 'chat'):
        values: Dict[str, Any] = {}
        for option, field in ((f'{section}_provider', 'provider'), (f'{section}_model', 'model'),
                              ('api_key', 'api_key'), ('base_url', 'base_url')):
            value = getattr(args, option, None)
            if value:
                values[field] = value
        if values:
            llm_config[section] = values
    if llm_config:
        config_overrides['llm'] = llm_config

    # Database configuration
    if getattr(args, 'db', None):
        config_overrides['database'] = {'path': str(args.db)}

    # Source configuration
    source_config: Dict[str, Any] = {}
    if getattr(args, 'source', None):
        source_config['directory'] = str(args.source)
    if getattr(args, 'scope', None):
        source_config['scope'] = args.scope
    if source_config:
        config_overrides['source'] = source_config

    # Ingestion configuration
    ingestion_config: Dict[str, Any] = {}
    if getattr(args, 'no_context', False):
        ingestion_config['generate_context'] = False
    if getattr(args, 'no_prune', False):
        ingestion_config['prune_missing'] = False
    if getattr(args, 'token_limit', None):
        ingestion_config['token_limit'] = args.token_limit
    if ingestion_config:
        config_overrides['ingestion'] = ingestion_config

    # Retrieval configuration
    retrieval_config: Dict[str, Any] = {}
    if getattr(args, 'match_count', None):
        retrieval_config['match_count'] = args.match_count
    if getattr(args, 'threshold', None) is not None:
        retrieval_config['similarity_threshold'] = args.threshold
    if getattr(args, 'no_hybrid', False):
        retrieval_config['hybrid'] = False
    if retrieval_config:
        config_overrides['retrieval'] = retrieval_config

    if getattr(args, 'verbose', False):
        config_overrides['debug'] = True

    return MimirConfig.load_hierarchical(
        project_dir=project_dir,
        config_file=getattr(args, 'config', None),
        **config_overrides
    )
