"""Crafter package: shortest recipe search for Infinite Craft."""
from .bfs import BreadthFirstSearch, StateQueue
from .cache import CombinationCache, RetryPolicy
from .config import ConfigError, CrafterConfig, load_config
from .context import SearchContext
from .iddfs import Derived, IterativeDeepeningSearch, RecipeState, Seed
from .oracle import CombinationResult, HttpOracle, OracleError
from .recipes import Recipe, RecipeReporter, Step, format_recipe
from .registry import NOTHING, NOTHING_ID, ElementRegistry
from .search_logging import LogLevel, SearchLogger, create_logger, create_string_logger
from .snapshot import Checkpointer, SnapshotError, load_cache, save_cache

__all__ = [
    "BreadthFirstSearch",
    "StateQueue",
    "CombinationCache",
    "RetryPolicy",
    "ConfigError",
    "CrafterConfig",
    "load_config",
    "SearchContext",
    "Derived",
    "IterativeDeepeningSearch",
    "RecipeState",
    "Seed",
    "CombinationResult",
    "HttpOracle",
    "OracleError",
    "Recipe",
    "RecipeReporter",
    "Step",
    "format_recipe",
    "NOTHING",
    "NOTHING_ID",
    "ElementRegistry",
    "LogLevel",
    "SearchLogger",
    "create_logger",
    "create_string_logger",
    "Checkpointer",
    "SnapshotError",
    "load_cache",
    "save_cache",
]
