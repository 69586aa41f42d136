#!/usr/bin/env python
"""CLI entry point for the recipe search."""
from __future__ import annotations

import argparse
import cProfile
import pstats
import sys
from io import StringIO
from pathlib import Path
from typing import List, Optional, Union

from .bfs import BreadthFirstSearch
from .cache import CombinationCache, Oracle, RetryPolicy
from .config import ConfigError, CrafterConfig, load_config
from .context import SearchContext
from .iddfs import IterativeDeepeningSearch
from .oracle import HttpOracle
from .recipes import RecipeReporter
from .search_logging import LogLevel, SearchLogger, create_logger
from .snapshot import Checkpointer, SnapshotError, load_cache

EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Miscellaneous tools for Infinite Craft routing."
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-e",
        "--elements",
        nargs="*",
        default=[],
        metavar="ELEMENT",
        help="Additional elements to add to the initial state",
    )
    common.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to config YAML (default: Crafter/DefaultConfig.yaml)",
    )
    common.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Snapshot file to load and checkpoint (default: from config)",
    )
    common.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="Stop after recipes of this many steps (default: run until interrupted)",
    )
    common.add_argument(
        "--log-level",
        type=str,
        default="summary",
        choices=[level.name.lower() for level in LogLevel],
        help="Diagnostic verbosity on stderr (default: summary)",
    )
    common.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write diagnostics to this file",
    )
    common.add_argument(
        "--profile",
        action="store_true",
        help="Run with cProfile and display performance statistics",
    )

    subparsers = parser.add_subparsers(dest="mode", required=True)
    subparsers.add_parser(
        "bfs",
        parents=[common],
        help="Do a Breadth-First Search of the state space to find optimal routes",
    )
    iddfs = subparsers.add_parser(
        "iddfs",
        parents=[common],
        help="Do an Iterative-Deepening Depth-First Search to find optimal routes",
    )
    iddfs.add_argument(
        "--strict",
        action="store_true",
        help="Prune branches that cannot use every produced element in time",
    )
    iddfs.add_argument(
        "--require-extras",
        action="store_true",
        help="Only report recipes that use every extra element (implies --strict)",
    )
    return parser


def open_cache(config: CrafterConfig, oracle: Oracle, retry: RetryPolicy,
               logger: SearchLogger) -> CombinationCache:
    """Load the snapshot, or start empty when there is none yet."""
    try:
        cache = load_cache(config.db_path, oracle=oracle, retry=retry,
                           request_observer=logger.log_oracle_request)
    except FileNotFoundError:
        logger.log_snapshot_missing(config.db_path)
        return CombinationCache(oracle=oracle, retry=retry,
                                request_observer=logger.log_oracle_request)
    logger.log_snapshot_loaded(config.db_path, cache.pair_count, len(cache.registry))
    return cache


def build_search(args: argparse.Namespace, context: SearchContext,
                 seed_names: List[str]) -> Union[BreadthFirstSearch, IterativeDeepeningSearch]:
    seeds = context.seed_ids(seed_names)
    if args.mode == "bfs":
        return BreadthFirstSearch(context, seeds)

    required = context.seed_ids(args.elements) if args.require_extras else []
    return IterativeDeepeningSearch(context, seeds,
                                    strict=args.strict or args.require_extras,
                                    required=required)


def run_search(args: argparse.Namespace, context: SearchContext, seed_names: List[str]) -> None:
    build_search(args, context, seed_names).run(max_depth=args.max_depth)


def main(argv: Optional[List[str]] = None, oracle: Optional[Oracle] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    if args.db is not None:
        config = config.model_copy(update={"db_path": args.db})

    logger = create_logger(args.log_level, log_file=args.log_file)
    logger.log_config(config)
    retry = RetryPolicy(delay_seconds=config.retry_delay_seconds,
                        observer=logger.log_oracle_retry)
    http_oracle = None
    if oracle is None:
        http_oracle = oracle = HttpOracle(config)

    try:
        try:
            cache = open_cache(config, oracle, retry, logger)
        except SnapshotError as exc:
            print(f"error while loading db: {exc}", file=sys.stderr)
            return 1

        checkpointer = Checkpointer(config.db_path, cache,
                                    interval_seconds=config.save_interval_seconds,
                                    logger=logger)
        context = SearchContext(cache=cache, checkpointer=checkpointer,
                                reporter=RecipeReporter(), logger=logger)
        seed_names = list(config.seeds) + list(args.elements)
        logger.log_startup(args.mode, seed_names)

        try:
            if args.profile:
                profiler = cProfile.Profile()
                profiler.enable()
                try:
                    run_search(args, context, seed_names)
                finally:
                    profiler.disable()
                    stream = StringIO()
                    stats = pstats.Stats(profiler, stream=stream)
                    stats.strip_dirs()
                    stats.sort_stats("cumulative")
                    stats.print_stats(30)
                    print(stream.getvalue(), file=sys.stderr)
            else:
                run_search(args, context, seed_names)
        except KeyboardInterrupt:
            checkpointer.save()
            return EXIT_INTERRUPTED

        if cache.dirty:
            checkpointer.save()
        return 0
    finally:
        if http_oracle is not None:
            http_oracle.close()
        logger.close()


if __name__ == "__main__":
    sys.exit(main())
