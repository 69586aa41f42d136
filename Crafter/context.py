"""The single owned object every search operation works through."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .cache import CombinationCache
from .recipes import Recipe, RecipeReporter
from .registry import ElementId
from .search_logging import LogLevel, SearchLogger
from .snapshot import Checkpointer


@dataclass
class SearchContext:
    """
    Bundles the cache (and its registry) with checkpointing and reporting.

    Passed explicitly into the engines; nothing in the package keeps
    module-level cache or registry state.
    """
    cache: CombinationCache
    checkpointer: Optional[Checkpointer] = None
    reporter: RecipeReporter = field(default_factory=RecipeReporter)
    logger: SearchLogger = field(default_factory=lambda: SearchLogger(level=LogLevel.SILENT))

    def combine(self, a: ElementId, b: ElementId) -> ElementId:
        output = self.cache.combine(a, b)
        if self.checkpointer is not None:
            self.checkpointer.maybe_save()
        return output

    def element_id(self, name: str) -> ElementId:
        return self.cache.element_id(name)

    def element_name(self, element: ElementId) -> str:
        return self.cache.element_name(element)

    def seed_ids(self, names: Iterable[str]) -> List[ElementId]:
        """Register seed names, dropping repeats while keeping order."""
        seeds: List[ElementId] = []
        for name in names:
            element = self.element_id(name)
            if element not in seeds:
                seeds.append(element)
        return seeds

    def report(self, recipe: Recipe) -> None:
        self.logger.log_recipe_found(recipe.target, recipe.depth)
        self.reporter.report(recipe)
