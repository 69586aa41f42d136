"""Shared fixtures: an in-memory oracle driven by a combination table."""
from __future__ import annotations

from io import StringIO
from typing import Dict, List, Optional, Tuple

import pytest

from Crafter.cache import CombinationCache, RetryPolicy
from Crafter.context import SearchContext
from Crafter.oracle import CombinationResult, OracleError
from Crafter.recipes import RecipeReporter
from Crafter.registry import NOTHING

SEEDS = ["Water", "Fire", "Wind", "Earth"]


class TableOracle:
    """
    Answers pairs from a fixed table; unknown pairs give ``Nothing``.

    ``failures`` makes the next N requests raise OracleError.
    """

    def __init__(self, table: Optional[Dict[Tuple[str, str], str]] = None, failures: int = 0):
        self.table = {tuple(sorted(pair)): result for pair, result in (table or {}).items()}
        self.failures = failures
        self.requests: List[Tuple[str, str]] = []

    def pair(self, first: str, second: str) -> CombinationResult:
        self.requests.append((first, second))
        if self.failures:
            self.failures -= 1
            raise OracleError("connection reset")
        result = self.table.get(tuple(sorted((first, second))), NOTHING)
        return CombinationResult(result=result, emoji="", isNew=False)


# A small world: Steam and Mud at one step, Cloud and Plant at two,
# Rain at three via Cloud, Swamp at three via Mud and Plant.
SMALL_WORLD = {
    ("Water", "Fire"): "Steam",
    ("Water", "Earth"): "Mud",
    ("Steam", "Wind"): "Cloud",
    ("Mud", "Water"): "Plant",
    ("Cloud", "Water"): "Rain",
    ("Mud", "Plant"): "Swamp",
    ("Fire", "Fire"): "Fire",
}


def make_context(oracle: TableOracle) -> Tuple[SearchContext, StringIO]:
    output = StringIO()
    cache = CombinationCache(oracle=oracle, retry=RetryPolicy(delay_seconds=0, sleep=lambda _: None))
    context = SearchContext(cache=cache, reporter=RecipeReporter(output=output))
    return context, output


@pytest.fixture
def steam_oracle() -> TableOracle:
    return TableOracle({("Water", "Fire"): "Steam"})


@pytest.fixture
def small_world_oracle() -> TableOracle:
    return TableOracle(SMALL_WORLD)
