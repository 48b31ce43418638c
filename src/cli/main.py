"""fork-off CLI entry points.
This module exposes the fork, fetch, and prefixes commands.
It maps argparse commands onto pipeline calls.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from dotenv import find_dotenv, load_dotenv

from core.config import ForkOffConfig, normalize_endpoint
from core.constants import SUPPORTED_FETCH_STRATEGIES
from core.errors import ForkOffError
from core.logging_config import get_logger
from core.types import ForkOptions
from fork.pipeline import build_fork_options, fetch_snapshot, load_prefix_registry, run_fork

_LOGGER = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="fork-off",
        description="Fork a live Substrate chain into a local genesis spec",
    )
    parser.add_argument("--data-root", help="Override FORK_DATA_ROOT for this command")
    parser.add_argument("--rpc-endpoint", help="Override HTTP_RPC_ENDPOINT for this command")
    parser.add_argument("--profile", help="YAML fork profile, overrides FORK_PROFILE")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_fork_command(subparsers)
    _add_fetch_command(subparsers)
    _add_prefixes_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the fork-off CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    load_dotenv(find_dotenv(usecwd=True))
    try:
        config = _build_config(args)
        options = _build_options(config, args)
        if args.command == "fork":
            return _run_fork_command(config, options)
        if args.command == "fetch":
            return _run_fetch_command(config, options)
        if args.command == "prefixes":
            return _run_prefixes_command(config, options)
    except ForkOffError as error:
        _LOGGER.error("command_failed", command=args.command, error=str(error))
        return 1
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_config(args: argparse.Namespace) -> ForkOffConfig:
    """Build config from the environment with CLI overrides applied."""
    config = ForkOffConfig.from_env()
    overrides: dict[str, Any] = {}
    if args.data_root:
        overrides["data_root"] = Path(args.data_root).expanduser().resolve()
    if args.rpc_endpoint:
        overrides["rpc_endpoint"] = normalize_endpoint(args.rpc_endpoint)
        if config.identity_endpoint == config.rpc_endpoint:
            overrides["identity_endpoint"] = overrides["rpc_endpoint"]
    if args.profile:
        overrides["profile_path"] = Path(args.profile).expanduser().resolve()
    for field_name in ("fetch_strategy", "batch_size", "chunks_level"):
        value = getattr(args, field_name, None)
        if value is not None:
            overrides[field_name] = value
    if getattr(args, "quick", False):
        overrides["quick_mode"] = True
    for field_name in ("root_account", "original_chain", "fork_chain"):
        value = getattr(args, field_name, None)
        if value:
            overrides[field_name] = value
    return replace(config, **overrides) if overrides else config


def _build_options(config: ForkOffConfig, args: argparse.Namespace) -> ForkOptions:
    options = build_fork_options(config)
    if getattr(args, "refresh", False):
        options = replace(options, fetch=replace(options.fetch, refresh=True))
    return options


def _run_fork_command(config: ForkOffConfig, options: ForkOptions) -> int:
    """Handle fork command.

    Args:
        config: Runtime config.
        options: Fork options.

    Returns:
        Exit code.
    """
    result = run_fork(options, config)
    print(f"forked_spec_path={result.forked_spec_path}")
    print(f"snapshot_entries={result.snapshot_entries}")
    print(f"merged_count={result.merge.merged_count}")
    print(f"cache_reused={str(result.cache_reused).lower()}")
    return 0


def _run_fetch_command(config: ForkOffConfig, options: ForkOptions) -> int:
    """Handle fetch command.

    Args:
        config: Runtime config.
        options: Fork options.

    Returns:
        Exit code.
    """
    acquisition = fetch_snapshot(options, config)
    print(f"cache_path={acquisition.cache_path}")
    print(f"cache_reused={str(acquisition.reused).lower()}")
    if acquisition.summary is not None:
        print(f"block_hash={acquisition.block_hash}")
        print(f"entries={acquisition.summary.entry_count}")
    return 0


def _run_prefixes_command(config: ForkOffConfig, options: ForkOptions) -> int:
    """Handle prefixes command."""
    registry = load_prefix_registry(options, config)
    for prefix, label in registry.items():
        print(f"{prefix}\t{label}")
    return 0


def _add_fetch_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--strategy",
        dest="fetch_strategy",
        choices=SUPPORTED_FETCH_STRATEGIES,
        help="Snapshot fetch strategy",
    )
    parser.add_argument(
        "--chunks-level",
        type=_non_negative_int,
        help="Key prefix bytes used to partition the key space",
    )
    parser.add_argument(
        "--batch-size",
        type=_positive_int,
        help="Keys per page for the paged strategy",
    )
    parser.add_argument(
        "--quick",
        action="store_true",
        help="Fetch final-level chunks concurrently",
    )
    parser.add_argument(
        "--refresh",
        action="store_true",
        help="Delete an existing snapshot cache and fetch again",
    )


def _add_fork_command(subparsers: Any) -> None:
    """Register fork subcommand."""
    parser = subparsers.add_parser("fork", help="Build a forked genesis spec from live state")
    _add_fetch_arguments(parser)
    parser.add_argument("--root-account", help="Dev alias, SS58 address, or hex sudo account")
    parser.add_argument("--original-chain", help="Chain id for the original spec")
    parser.add_argument("--fork-chain", help="Chain id for the forked spec template")


def _add_fetch_command(subparsers: Any) -> None:
    """Register fetch subcommand."""
    parser = subparsers.add_parser("fetch", help="Fetch the live state into the snapshot cache")
    _add_fetch_arguments(parser)


def _add_prefixes_command(subparsers: Any) -> None:
    """Register prefixes subcommand."""
    subparsers.add_parser("prefixes", help="List storage prefixes retained in the fork")


def _positive_int(raw_value: str) -> int:
    value = int(raw_value)
    if value < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return value


def _non_negative_int(raw_value: str) -> int:
    value = int(raw_value)
    if value < 0:
        raise argparse.ArgumentTypeError(f"expected zero or a positive integer, got {value}")
    return value
