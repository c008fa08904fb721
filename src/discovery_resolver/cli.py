"""
Command-line interface for the discovery resolver.

This module provides the main CLI entry point with commands for:
- lookup: Resolve an identifier and print the result as JSON
- config: Show the effective configuration
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .audit_logger import AuditLogger
from .cache import CacheStore, InMemoryCache, JSONFileCache
from .config import ResolverConfig, load_config_from_env
from .enums import LogLevel
from .exceptions import ConfigurationError, PersistenceError
from .identifier import IdentifierValidator
from .orchestrator import ResolutionOrchestrator
from .provider_client import ProviderClient

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_CLIENT_ERROR = 2


def load_config(env_file: Optional[str]) -> Optional[ResolverConfig]:
    """
    Load configuration, reporting problems on stderr.

    Args:
        env_file: Optional path to a ``.env`` file

    Returns:
        ResolverConfig if successful, None otherwise
    """
    try:
        return load_config_from_env(env_file=Path(env_file) if env_file else None)
    except ConfigurationError as e:
        print(f"Error loading config: {e.message}", file=sys.stderr)
        return None


async def lookup_identifier(
    raw_identifier: str,
    config: ResolverConfig,
    cache: CacheStore,
    pretty: bool = False,
    verbose: bool = False,
    client: Optional[ProviderClient] = None,
) -> int:
    """
    Validate, resolve and print one identifier.

    Args:
        raw_identifier: Identifier as typed by the user
        config: Resolver configuration
        cache: Cache store to read from and write to
        pretty: Pretty-print the JSON output
        verbose: Log every resolution step to stderr (debug level)
        client: Optional provider client (built from config if omitted)

    Returns:
        Exit code (0 on success, 1 for an unreadable cache, 2 for an invalid identifier)
    """
    validation = IdentifierValidator().validate(raw_identifier)
    if not validation.valid:
        print(json.dumps(validation.error.to_dict()))
        return EXIT_CLIENT_ERROR

    logger = AuditLogger.from_config(
        level=LogLevel.DEBUG.value if verbose else config.logging.level,
        output_format=config.logging.output_format,
    )

    try:
        async with ResolutionOrchestrator(
            config=config,
            cache=cache,
            client=client,
            logger=logger,
        ) as orchestrator:
            output = await orchestrator.lookup(validation.identifier, pretty=pretty)
    except PersistenceError as e:
        print(f"Error reading cache: {e.message}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    print(output)
    return EXIT_OK


def cmd_lookup(args: argparse.Namespace) -> int:
    """Handle the 'lookup' command."""
    config = load_config(args.env_file)
    if config is None:
        return EXIT_CONFIG_ERROR

    cache: CacheStore
    if args.cache_file:
        cache = JSONFileCache(Path(args.cache_file))
    else:
        cache = InMemoryCache()

    return asyncio.run(lookup_identifier(
        raw_identifier=args.identifier,
        config=config,
        cache=cache,
        pretty=args.pretty,
        verbose=args.verbose,
    ))


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config = load_config(args.env_file)
    if config is None:
        return EXIT_CONFIG_ERROR

    print("Resolver configuration:")
    print(f"  TTL min/default/max: {config.ttl.minimum}/{config.ttl.default}/{config.ttl.maximum}")
    print(f"  Root providers: {', '.join(config.providers.root_providers)}")
    print(f"  Timeouts: connect={config.providers.connect_timeout}s read={config.providers.read_timeout}s")
    print(f"  Parallel fallback: {config.providers.parallel_fallback}")
    print(f"  Distinct protocol errors: {config.distinct_protocol_errors}")
    print(f"  Log level: {config.logging.level} ({config.logging.output_format})")
    return EXIT_OK


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="discovery-resolver",
        description="Resolve business identifiers through OpenDiscovery providers",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    lookup_parser = subparsers.add_parser(
        "lookup",
        help="Resolve an identifier and print the result as JSON",
    )
    lookup_parser.add_argument(
        "identifier",
        help="Identifier to resolve (e.g., DK12345678)",
    )
    lookup_parser.add_argument(
        "--pretty",
        action="store_true",
        help="Pretty-print the JSON output",
    )
    lookup_parser.add_argument(
        "--env-file", "-e",
        help="Path to a .env file with resolver settings",
    )
    lookup_parser.add_argument(
        "--cache-file",
        help="Path to a JSON file used as a persistent cache",
    )
    lookup_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log resolution steps to stderr",
    )
    lookup_parser.set_defaults(func=cmd_lookup)

    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--env-file", "-e",
        help="Path to a .env file with resolver settings",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
