"""
Combination cache in front of the remote oracle.

Every resolved pair is kept for the lifetime of the process and written to
the snapshot at checkpoints. A miss blocks until the oracle answers; oracle
failures are reported to the retry observer and retried forever, so
``combine`` never raises them to the search.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from .oracle import CombinationResult, OracleError
from .registry import ElementId, ElementRegistry

Pair = Tuple[ElementId, ElementId]
Derivations = Dict[str, List[Tuple[str, str]]]


class Oracle(Protocol):
    """Anything that can resolve two element names into a result."""

    def pair(self, first: str, second: str) -> CombinationResult:
        ...


def _ignore_error(error: BaseException) -> None:
    pass


@dataclass
class RetryPolicy:
    """Fixed-delay, unbounded retry for oracle failures."""
    delay_seconds: float = 3.0
    observer: Callable[[BaseException], None] = _ignore_error
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def on_failure(self, error: BaseException) -> None:
        self.observer(error)
        self.sleep(self.delay_seconds)


def canonical_pair(a: ElementId, b: ElementId) -> Pair:
    return (a, b) if a <= b else (b, a)


class CombinationCache:
    """
    Pair -> result table backed by the oracle.

    Owns the element registry; ids handed out by ``element_id`` and by
    ``combine`` come from the same registry.
    """

    def __init__(
        self,
        oracle: Optional[Oracle] = None,
        retry: Optional[RetryPolicy] = None,
        registry: Optional[ElementRegistry] = None,
        request_observer: Optional[Callable[[str, str], None]] = None,
    ):
        self.registry = registry or ElementRegistry()
        self._oracle = oracle
        self._request_observer = request_observer
        self._retry = retry or RetryPolicy()
        self._table: Dict[Pair, ElementId] = {}
        self.lookups = 0
        self.misses = 0
        self.dirty = False

    # -------------------------------------------------------------------------
    # Registry passthrough
    # -------------------------------------------------------------------------

    def element_id(self, name: str) -> ElementId:
        return self.registry.element_id(name)

    def element_name(self, element: ElementId) -> str:
        return self.registry.element_name(element)

    def element_ids(self, names: Iterable[str]) -> List[ElementId]:
        return [self.registry.element_id(name) for name in names]

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    @property
    def pair_count(self) -> int:
        return len(self._table)

    def combine(self, a: ElementId, b: ElementId) -> ElementId:
        """Resolve a pair, querying the oracle until it answers on a miss."""
        key = canonical_pair(a, b)
        self.lookups += 1
        cached = self._table.get(key)
        if cached is not None:
            return cached

        if self._oracle is None:
            raise RuntimeError("Cache has no oracle to resolve uncached pairs")

        first, second = sorted((self.element_name(a), self.element_name(b)))
        while True:
            if self._request_observer is not None:
                self._request_observer(first, second)
            try:
                result = self._oracle.pair(first, second)
            except OracleError as exc:
                self._retry.on_failure(exc)
                continue
            break

        output = self.registry.element_id(result.result)
        self._table[key] = output
        self.misses += 1
        self.dirty = True
        return output

    def insert(self, a: ElementId, b: ElementId, output: ElementId) -> None:
        """Record a known combination (used when loading a snapshot)."""
        self._table[canonical_pair(a, b)] = output

    def items(self) -> Iterable[Tuple[Pair, ElementId]]:
        return self._table.items()

    def mark_clean(self) -> None:
        self.dirty = False

    # -------------------------------------------------------------------------
    # Inverse index (snapshot shape)
    # -------------------------------------------------------------------------

    def derivations(self) -> Derivations:
        """Build the output-name -> [(input, input), ...] index."""
        index: Derivations = {}
        for (a, b), output in self._table.items():
            index.setdefault(self.element_name(output), []).append(
                (self.element_name(a), self.element_name(b))
            )
        return index

    @classmethod
    def from_derivations(
        cls,
        derivations: Mapping[str, Sequence[Sequence[str]]],
        oracle: Optional[Oracle] = None,
        retry: Optional[RetryPolicy] = None,
        request_observer: Optional[Callable[[str, str], None]] = None,
    ) -> CombinationCache:
        cache = cls(oracle=oracle, retry=retry, request_observer=request_observer)
        for output_name, pairs in derivations.items():
            output = cache.element_id(output_name)
            for a_name, b_name in pairs:
                cache.insert(cache.element_id(a_name), cache.element_id(b_name), output)
        return cache
