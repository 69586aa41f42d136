"""Breadth-first enumeration of production states."""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from .context import SearchContext
from .recipes import Recipe, pair_positions, reconstruct_steps
from .registry import NOTHING_ID, ElementId

State = Tuple[ElementId, ...]


def state_key(state: Sequence[ElementId]) -> State:
    return tuple(sorted(state))


@dataclass
class StateQueue:
    """
    FIFO of produced-element sequences, deduplicated by sorted content.

    Keys are dropped on pop. States only ever grow by one element and are
    served strictly in size order, so every state of a given size is pushed
    before the first one of that size is popped; dropping popped keys
    therefore never lets an equivalent state back in.
    """
    queue: Deque[State] = field(default_factory=deque)
    queued: Set[State] = field(default_factory=set)

    def push(self, state: State) -> bool:
        key = state_key(state)
        if key in self.queued:
            return False
        self.queued.add(key)
        self.queue.append(state)
        return True

    def pop(self) -> Optional[State]:
        if not self.queue:
            return None
        state = self.queue.popleft()
        self.queued.discard(state_key(state))
        return state

    def __len__(self) -> int:
        return len(self.queue)


@dataclass
class SearchStats:
    states_expanded: int = 0
    recipes_reported: int = 0
    max_depth: int = 0


class BreadthFirstSearch:
    """
    Enumerate states in order of step count, reporting each element once.

    A state is the tuple of elements produced so far, in production order;
    the seeds are shared by every state.
    """

    def __init__(self, context: SearchContext, seeds: Sequence[ElementId]):
        self.context = context
        self.seeds: List[ElementId] = list(seeds)
        self.recipe_depths: Dict[ElementId, int] = {}
        self.stats = SearchStats()

    def edges(self, state: State) -> Iterator[Tuple[ElementId, ElementId]]:
        elements = self.seeds + list(state)
        for i, j in pair_positions(len(elements)):
            yield elements[i], elements[j]

    def expand(self, state: State) -> Iterator[State]:
        """Yield the children of ``state``, reporting first-time elements."""
        present = set(self.seeds)
        present.update(state)
        for a, b in self.edges(state):
            output = self.context.combine(a, b)
            if output == NOTHING_ID or output in present:
                continue

            child = state + (output,)
            if output not in self.recipe_depths:
                self.recipe_depths[output] = len(child)
                self._report(child)
            yield child

    def _report(self, child: State) -> None:
        steps = reconstruct_steps(self.context, self.seeds, child)
        recipe = Recipe(self.context.element_name(child[-1]), tuple(steps), len(child))
        self.context.report(recipe)
        self.stats.recipes_reported += 1

    def run(self, max_depth: Optional[int] = None) -> SearchStats:
        """
        Search until the queue drains, or past ``max_depth`` steps if given.
        """
        logger = self.context.logger
        queue = StateQueue()
        queue.push(())
        current_size = -1

        while True:
            state = queue.pop()
            if state is None:
                logger.log_search_complete("exhausted", self.stats.recipes_reported)
                break
            if max_depth is not None and len(state) >= max_depth:
                logger.log_search_complete(f"depth limit {max_depth}", self.stats.recipes_reported)
                break
            if len(state) != current_size:
                current_size = len(state)
                logger.log_depth_start(current_size + 1)

            self.stats.states_expanded += 1
            self.stats.max_depth = max(self.stats.max_depth, len(state) + 1)
            for child in self.expand(state):
                queue.push(child)

        return self.stats
