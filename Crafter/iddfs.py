"""
Iterative-deepening depth-first recipe search.

Each pass walks a single mutable ``RecipeState`` with an explicit frame
stack, so the depth of the search is not limited by the interpreter's
recursion limit. Within a pass:

- every unordered pair is combined at most once per visited state, by
  starting each state's enumeration just after the pair that produced
  its newest element;
- ``banned`` counts how many open frames have offered an element; an
  element already offered higher up or by an earlier sibling is skipped;
- in strict mode, ``usage`` counts how often each element feeds a later
  step, and branches that can no longer use every produced element (and
  every required seed) in the remaining steps are cut.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple, Union

from .context import SearchContext
from .recipes import Recipe, Step, pair_positions
from .registry import NOTHING_ID, ElementId


@dataclass(frozen=True)
class Seed:
    """Derivation of a starting element."""


@dataclass(frozen=True)
class Derived:
    first: ElementId
    second: ElementId

    def inputs(self) -> Set[ElementId]:
        return {self.first, self.second}


SEED = Seed()
Derivation = Union[Seed, Derived]


class RecipeState:
    """Insertion-ordered element -> derivation map with stack-style updates."""

    def __init__(self, seeds: Iterable[ElementId] = ()):
        self.elements: List[ElementId] = []
        self._derivations: Dict[ElementId, Derivation] = {}
        self._positions: Dict[ElementId, int] = {}
        for seed in seeds:
            self.push(seed, SEED)

    def push(self, element: ElementId, derivation: Derivation) -> None:
        if element in self._positions:
            raise AssertionError(f"Element {element} is already in the state")
        self._positions[element] = len(self.elements)
        self.elements.append(element)
        self._derivations[element] = derivation

    def pop(self) -> Tuple[ElementId, Derivation]:
        element = self.elements.pop()
        del self._positions[element]
        return element, self._derivations.pop(element)

    def last(self) -> ElementId:
        return self.elements[-1]

    def position(self, element: ElementId) -> int:
        return self._positions[element]

    def derivation(self, element: ElementId) -> Derivation:
        try:
            return self._derivations[element]
        except KeyError:
            raise AssertionError(f"Element {element} was never produced in this state") from None

    def edge_start(self) -> Tuple[int, int]:
        """First pair position not yet combined from this exact state."""
        if not self.elements:
            return 0, 0
        derivation = self._derivations[self.elements[-1]]
        if isinstance(derivation, Seed):
            return 0, 0
        i, j = sorted((self.position(derivation.first), self.position(derivation.second)))
        return (i + 1, j) if i < j else (0, j + 1)

    def steps(self) -> Iterator[Tuple[ElementId, Derived]]:
        for element in self.elements:
            derivation = self._derivations[element]
            if isinstance(derivation, Derived):
                yield element, derivation

    def key(self) -> Tuple[ElementId, ...]:
        return tuple(sorted(self.elements))

    def __len__(self) -> int:
        return len(self.elements)

    def __contains__(self, element: object) -> bool:
        return element in self._positions


@dataclass
class _Frame:
    remaining: int
    edges: Optional[Iterator[Tuple[ElementId, Derived]]]
    pushed: bool
    banned: List[ElementId] = field(default_factory=list)


@dataclass
class PassStats:
    depth: int
    leaves: int = 0
    pruned: int = 0
    reported: int = 0


@dataclass
class SearchStats:
    recipes_reported: int = 0
    max_depth: int = 0
    passes: List[PassStats] = field(default_factory=list)


class IterativeDeepeningSearch:
    """
    Depth-bounded passes for depth 1, 2, 3, ... over a shared state.

    A leaf at exactly the pass depth is reported when its newest element
    is first completed at this depth and its element set has not been
    reported yet during the pass.
    """

    def __init__(
        self,
        context: SearchContext,
        seeds: Sequence[ElementId],
        strict: bool = False,
        required: Iterable[ElementId] = (),
    ):
        self.context = context
        self.seeds: List[ElementId] = list(seeds)
        self.required: Set[ElementId] = set(required)
        missing = self.required.difference(self.seeds)
        if missing:
            raise ValueError(f"Required elements must be seeds: {sorted(missing)}")
        self.strict = strict or bool(self.required)

        self.state = RecipeState(self.seeds)
        self.banned: Dict[ElementId, int] = {}
        self.usage: Dict[ElementId, int] = {}
        self.unused_required = len(self.required)
        self.recipe_depths: Dict[ElementId, int] = {}
        self.stats = SearchStats()
        self._seed_set = set(self.seeds)
        self._reported_sets: Set[Tuple[ElementId, ...]] = set()

    # -------------------------------------------------------------------------
    # Edge enumeration
    # -------------------------------------------------------------------------

    def _edges(self) -> Iterator[Tuple[ElementId, Derived]]:
        state = self.state
        for i, j in pair_positions(len(state), state.edge_start()):
            a, b = state.elements[i], state.elements[j]
            output = self.context.combine(a, b)
            if output != NOTHING_ID:
                yield output, Derived(a, b)

    # -------------------------------------------------------------------------
    # Usage bookkeeping
    # -------------------------------------------------------------------------

    def _is_required(self, element: ElementId) -> bool:
        return element not in self._seed_set or element in self.required

    def _newly_used(self, derivation: Derived) -> int:
        return sum(
            1 for element in derivation.inputs()
            if self.usage.get(element, 0) == 0 and self._is_required(element)
        )

    def _within_bound(self, derivation: Derived, remaining_after: int) -> bool:
        # Each later step uses at most two unused elements and adds one; the
        # final product is the only element allowed to stay unused.
        unused = self.unused_required - self._newly_used(derivation) + 1
        return unused <= remaining_after + 1

    def _push(self, element: ElementId, derivation: Derived) -> None:
        self.unused_required += 1 - self._newly_used(derivation)
        for source in derivation.inputs():
            self.usage[source] = self.usage.get(source, 0) + 1
        self.state.push(element, derivation)

    def _pop(self) -> None:
        _, derivation = self.state.pop()
        self.unused_required -= 1
        for source in derivation.inputs():
            count = self.usage[source] - 1
            if count:
                self.usage[source] = count
            else:
                del self.usage[source]
                if self._is_required(source):
                    self.unused_required += 1

    # -------------------------------------------------------------------------
    # Depth-bounded pass
    # -------------------------------------------------------------------------

    def _open(self, remaining: int, pushed: bool) -> _Frame:
        edges = self._edges() if remaining > 0 else None
        return _Frame(remaining=remaining, edges=edges, pushed=pushed)

    def _advance(self, frame: _Frame, stats: PassStats) -> Optional[_Frame]:
        """Push the next unexplored element from ``frame``, or return None."""
        for output, derivation in frame.edges:
            if output in self.state:
                continue
            if self.strict and not self._within_bound(derivation, frame.remaining - 1):
                stats.pruned += 1
                continue
            count = self.banned.get(output, 0)
            self.banned[output] = count + 1
            frame.banned.append(output)
            if count:
                continue
            self._push(output, derivation)
            return self._open(frame.remaining - 1, pushed=True)
        return None

    def _close(self, frame: _Frame) -> None:
        for output in frame.banned:
            count = self.banned[output] - 1
            if count:
                self.banned[output] = count
            else:
                del self.banned[output]
        if frame.pushed:
            self._pop()

    def _on_leaf(self, depth: int, stats: PassStats) -> None:
        stats.leaves += 1
        element = self.state.last()
        if self.recipe_depths.setdefault(element, depth) != depth:
            return
        key = self.state.key()
        if key in self._reported_sets:
            return
        self._reported_sets.add(key)

        name = self.context.element_name
        steps = tuple(
            Step(name(derivation.first), name(derivation.second), name(output))
            for output, derivation in self.state.steps()
        )
        self.context.report(Recipe(name(element), steps, depth))
        stats.reported += 1
        self.stats.recipes_reported += 1

    def run_pass(self, depth: int) -> PassStats:
        """Run one depth-bounded pass; counters are restored on return."""
        stats = PassStats(depth=depth)
        self._reported_sets.clear()
        stack = [self._open(depth, pushed=False)]
        while stack:
            frame = stack[-1]
            if frame.remaining == 0:
                self._on_leaf(depth, stats)
                self._close(stack.pop())
                continue
            child = self._advance(frame, stats)
            if child is None:
                self._close(stack.pop())
            else:
                stack.append(child)
        self.stats.passes.append(stats)
        self.stats.max_depth = depth
        return stats

    def run(self, max_depth: Optional[int] = None) -> SearchStats:
        """
        Deepen until ``max_depth``, or until a pass finds no leaf at all.

        Without a limit this only ends once no deeper state exists, which
        in the live game means it runs until interrupted.
        """
        logger = self.context.logger
        depth = 0
        while max_depth is None or depth < max_depth:
            depth += 1
            logger.log_depth_start(depth)
            started = time.monotonic()
            stats = self.run_pass(depth)
            logger.log_depth_complete(depth, stats.leaves, stats.reported,
                                      time.monotonic() - started)
            if stats.leaves == 0 and stats.pruned == 0:
                logger.log_search_complete("exhausted", self.stats.recipes_reported)
                return self.stats
        logger.log_search_complete(f"depth limit {max_depth}", self.stats.recipes_reported)
        return self.stats
