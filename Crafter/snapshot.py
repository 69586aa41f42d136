"""
Snapshot persistence for the combination cache.

The snapshot is a JSON object mapping each output element name to the list
of input-name pairs that produce it. Saves go through a temporary file in
the target directory followed by an atomic replace, so an interrupted save
leaves the previous snapshot untouched.
"""
from __future__ import annotations

import json
import os
import tempfile
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from .cache import CombinationCache, Derivations, Oracle, RetryPolicy
from .search_logging import SearchLogger

DERIVATIONS_ADAPTER: TypeAdapter = TypeAdapter(Dict[str, List[Tuple[str, str]]])


class SnapshotError(RuntimeError):
    """Raised when an existing snapshot cannot be read or parsed."""


def read_snapshot(path: Path) -> Derivations:
    """
    Read and validate a snapshot file.

    Raises FileNotFoundError when there is no snapshot yet and
    SnapshotError for anything else that prevents loading it.
    """
    try:
        raw_text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except OSError as exc:
        raise SnapshotError(f"Unable to read {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise SnapshotError(f"Snapshot {path} is not valid UTF-8: {exc}") from exc

    try:
        raw = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"Invalid JSON in {path}: {exc}") from exc

    try:
        return DERIVATIONS_ADAPTER.validate_python(raw)
    except ValidationError as exc:
        raise SnapshotError(f"Snapshot {path} has unexpected structure: {exc}") from exc


def write_snapshot(path: Path, derivations: Derivations) -> None:
    """Atomically replace ``path`` with the given derivations."""
    directory = path.resolve().parent
    directory.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=directory)
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(derivations, fh, ensure_ascii=False)
            fh.flush()
            os.fsync(fh.fileno())
        temp_path.replace(path)
    except BaseException:
        if temp_path.exists():
            temp_path.unlink()
        raise


def load_cache(
    path: Path,
    oracle: Optional[Oracle] = None,
    retry: Optional[RetryPolicy] = None,
    request_observer: Optional[Callable[[str, str], None]] = None,
) -> CombinationCache:
    """Build a cache from the snapshot at ``path``."""
    return CombinationCache.from_derivations(read_snapshot(path), oracle=oracle, retry=retry,
                                             request_observer=request_observer)


def save_cache(path: Path, cache: CombinationCache) -> None:
    write_snapshot(path, cache.derivations())


class Checkpointer:
    """
    Saves the cache when new pairs were resolved and the interval elapsed.

    Driven by the search loop: ``maybe_save`` is called after combinations
    and blocks while the snapshot is written.
    """

    def __init__(
        self,
        path: Path,
        cache: CombinationCache,
        interval_seconds: float = 60.0,
        logger: Optional[SearchLogger] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.path = path
        self.cache = cache
        self.interval_seconds = interval_seconds
        self.logger = logger
        self._clock = clock
        self._last_save = clock()
        self.saves = 0

    def due(self) -> bool:
        return self.cache.dirty and self._clock() - self._last_save >= self.interval_seconds

    def maybe_save(self) -> bool:
        if not self.due():
            return False
        self.save()
        return True

    def save(self) -> None:
        if self.logger is not None:
            self.logger.log_checkpoint(self.path, self.cache.pair_count, len(self.cache.registry))
            self.logger.log_cache_stats(self.cache.lookups, self.cache.misses, self.cache.pair_count)
        save_cache(self.path, self.cache)
        self.cache.mark_clean()
        self._last_save = self._clock()
        self.saves += 1
