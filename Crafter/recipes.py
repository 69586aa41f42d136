"""Recipe reconstruction and the plain-text recipe output."""
from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, TextIO, Tuple

from .registry import ElementId


@dataclass(frozen=True)
class Step:
    first: str
    second: str
    output: str

    def format(self) -> str:
        return f"{self.first} + {self.second} -> {self.output}"


@dataclass(frozen=True)
class Recipe:
    """Ordered production steps for ``target``, starting from the seeds."""
    target: str
    steps: Tuple[Step, ...]
    depth: int = 0

    def format(self) -> str:
        lines = [self.target]
        lines.extend(step.format() for step in self.steps)
        return "\n".join(lines) + "\n\n"


def format_recipe(recipe: Recipe) -> str:
    return recipe.format()


def pair_positions(size: int, start: Tuple[int, int] = (0, 0)) -> Iterator[Tuple[int, int]]:
    """
    Yield position pairs (i, j), i <= j < size, column by column.

    Order is (0,0), (0,1), (1,1), (0,2), (1,2), (2,2), ... so every pair
    that involves a later position comes after all pairs of earlier ones.
    """
    i, j = start
    while j < size:
        yield i, j
        i, j = (i + 1, j) if i < j else (0, j + 1)


def reconstruct_steps(context, seeds: Sequence[ElementId],
                      produced: Sequence[ElementId]) -> List[Step]:
    """
    Recover one derivation for each produced element of a BFS state.

    Every pair over the preceding elements was already combined when the
    state was built, so this only reads cached results.
    """
    steps: List[Step] = []
    elements = list(seeds)
    for output in produced:
        for i, j in pair_positions(len(elements)):
            a, b = elements[i], elements[j]
            if context.combine(a, b) == output:
                break
        else:
            raise AssertionError(
                f"{context.element_name(output)} is not produced by any pair of its state"
            )
        steps.append(Step(context.element_name(a), context.element_name(b),
                          context.element_name(output)))
        elements.append(output)
    return steps


@dataclass
class RecipeReporter:
    """Writes recipe blocks to ``output`` and remembers what was reported."""
    output: Optional[TextIO] = None
    reported: List[Recipe] = field(default_factory=list)

    def __post_init__(self):
        if self.output is None:
            self.output = sys.stdout

    def report(self, recipe: Recipe) -> None:
        self.reported.append(recipe)
        self.output.write(recipe.format())
        self.output.flush()

    def targets(self) -> List[str]:
        return [recipe.target for recipe in self.reported]
