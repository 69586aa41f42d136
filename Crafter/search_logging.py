"""
Structured logging for the recipe search.

Diagnostics go to stderr so that recipe blocks on stdout stay clean.
Verbosity levels:
    - MINIMAL: Checkpoints, oracle retries and errors
    - SUMMARY: Startup overview and per-depth progress
    - DETAILED: Configuration tables, every discovered recipe
    - DEBUG: Cache statistics at each checkpoint
    - TRACE: Every remote oracle request

Usage:
    from Crafter.search_logging import SearchLogger, LogLevel

    logger = SearchLogger(level=LogLevel.DETAILED)
    logger.log_startup("iddfs", seeds)
    logger.log_depth_start(3)
"""
from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from io import StringIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TextIO, Tuple, Union


class LogLevel(IntEnum):
    """Verbosity levels for search logging."""
    SILENT = 0      # No output at all
    MINIMAL = 10    # Checkpoints, retries, errors
    SUMMARY = 20    # Startup overview and search progress
    DETAILED = 30   # Config tables, discovered recipes
    DEBUG = 40      # Cache statistics
    TRACE = 50      # Every oracle request


@dataclass
class LogEntry:
    """A single log entry with metadata."""
    timestamp: datetime
    level: LogLevel
    category: str
    message: str
    data: Optional[Dict[str, Any]] = None

    def format(self, include_timestamp: bool = True, include_level: bool = True) -> str:
        """Format the log entry as a string."""
        parts = []
        if include_timestamp:
            parts.append(f"[{self.timestamp.strftime('%H:%M:%S.%f')[:-3]}]")
        if include_level:
            parts.append(f"[{self.level.name:8}]")
        parts.append(f"[{self.category}]")
        parts.append(self.message)
        return " ".join(parts)


@dataclass
class SearchLogger:
    """
    Structured logger for the search engines and the combination cache.

    Attributes
    ----------
    level : LogLevel
        Minimum level to log (entries above this level are ignored)
    output : TextIO | None
        Output stream (defaults to sys.stderr)
    log_to_file : Path | None
        Optional path to also write logs to a file
    entries : list[LogEntry]
        All logged entries (for programmatic access)
    """
    level: LogLevel = LogLevel.SUMMARY
    output: Optional[TextIO] = None
    log_to_file: Optional[Path] = None
    include_timestamp: bool = True
    include_level: bool = True
    entries: List[LogEntry] = field(default_factory=list)
    _file_handle: Optional[TextIO] = field(default=None, repr=False)

    def __post_init__(self):
        if self.output is None:
            self.output = sys.stderr
        if self.log_to_file:
            self._file_handle = open(self.log_to_file, "w", encoding="utf-8")

    def close(self):
        """Close the file handle if opened."""
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def _log(self, level: LogLevel, category: str, message: str,
             data: Optional[Dict[str, Any]] = None) -> None:
        """Internal method to record and output a log entry."""
        if level > self.level:
            return

        entry = LogEntry(
            timestamp=datetime.now(),
            level=level,
            category=category,
            message=message,
            data=data,
        )
        self.entries.append(entry)

        formatted = entry.format(self.include_timestamp, self.include_level)
        if self.output:
            self.output.write(formatted + "\n")
            self.output.flush()
        if self._file_handle:
            self._file_handle.write(formatted + "\n")
            self._file_handle.flush()

    def _log_table(self, level: LogLevel, category: str,
                   headers: List[str], rows: List[List[Any]],
                   title: Optional[str] = None) -> None:
        """Log a formatted table."""
        if level > self.level:
            return

        all_rows = [headers] + rows
        widths = [max(len(str(row[i])) for row in all_rows) for i in range(len(headers))]

        lines = []
        if title:
            lines.append(title)
            lines.append("=" * len(title))

        header_line = " | ".join(str(h).ljust(w) for h, w in zip(headers, widths))
        lines.append(header_line)
        lines.append("-" * len(header_line))

        for row in rows:
            row_line = " | ".join(str(v).ljust(w) for v, w in zip(row, widths))
            lines.append(row_line)

        for line in lines:
            self._log(level, category, line)

    # -------------------------------------------------------------------------
    # Startup Logging
    # -------------------------------------------------------------------------

    def log_startup(self, mode: str, seeds: Sequence[str]) -> None:
        """Log the start of a search run."""
        self._log(LogLevel.SUMMARY, "STARTUP",
                  f"Starting {mode} search from {len(seeds)} seeds "
                  f"({', '.join(seeds)})")

    def log_config(self, config: Any) -> None:
        """Log the effective configuration as a table."""
        if self.level < LogLevel.DETAILED:
            return

        rows = [[key, value] for key, value in config.model_dump().items()]
        self._log_table(LogLevel.DETAILED, "CONFIG", ["Setting", "Value"],
                        rows, title="Search Configuration")

    # -------------------------------------------------------------------------
    # Snapshot Logging
    # -------------------------------------------------------------------------

    def log_snapshot_loaded(self, path: Path, pairs: int, elements: int) -> None:
        """Log a successfully loaded snapshot."""
        self._log(LogLevel.SUMMARY, "SNAPSHOT",
                  f"Loaded {pairs} combinations over {elements} elements from {path}")

    def log_snapshot_missing(self, path: Path) -> None:
        """Log that no snapshot exists yet."""
        self._log(LogLevel.SUMMARY, "SNAPSHOT",
                  f"No snapshot at {path}, starting with an empty cache")

    def log_checkpoint(self, path: Path, pairs: int, elements: int) -> None:
        """Log a snapshot save."""
        self._log(LogLevel.MINIMAL, "CHECKPOINT", "Saving DB...")
        self._log(LogLevel.DEBUG, "CHECKPOINT",
                  f"Wrote {pairs} combinations over {elements} elements to {path}")

    # -------------------------------------------------------------------------
    # Oracle Logging
    # -------------------------------------------------------------------------

    def log_oracle_request(self, first: str, second: str) -> None:
        """Log a remote combination request."""
        self._log(LogLevel.TRACE, "ORACLE", f"Requesting {first} + {second}")

    def log_oracle_retry(self, error: BaseException) -> None:
        """Log a failed oracle request that is about to be retried."""
        self._log(LogLevel.MINIMAL, "ORACLE", f"API Error: {error}. Retrying...")

    # -------------------------------------------------------------------------
    # Search Logging
    # -------------------------------------------------------------------------

    def log_depth_start(self, depth: int) -> None:
        """Log the start of a depth-bounded pass or BFS level."""
        self._log(LogLevel.SUMMARY, "SEARCH", f"Searching depth {depth}")

    def log_depth_complete(self, depth: int, leaves: int, reported: int,
                           elapsed_seconds: float) -> None:
        """Log the end of a depth-bounded pass."""
        self._log(LogLevel.SUMMARY, "SEARCH",
                  f"Depth {depth} complete: {leaves} leaves, "
                  f"{reported} new recipes, {elapsed_seconds:.1f}s")

    def log_recipe_found(self, name: str, depth: int) -> None:
        """Log a reported recipe."""
        self._log(LogLevel.DETAILED, "RECIPE", f"{name} (depth {depth})")

    def log_search_complete(self, reason: str, recipes: int) -> None:
        """Log the end of a search."""
        self._log(LogLevel.SUMMARY, "SEARCH",
                  f"Search finished ({reason}): {recipes} recipes reported")

    def log_cache_stats(self, lookups: int, misses: int, pairs: int) -> None:
        """Log cache hit statistics."""
        if self.level < LogLevel.DEBUG:
            return

        hits = lookups - misses
        hit_rate = hits / lookups if lookups else 0.0
        self._log_table(LogLevel.DEBUG, "CACHE",
                        ["Lookups", "Hits", "Misses", "Hit rate", "Pairs"],
                        [[lookups, hits, misses, f"{hit_rate:.1%}", pairs]],
                        title="Combination Cache")

    # -------------------------------------------------------------------------
    # Utility Methods
    # -------------------------------------------------------------------------

    def get_entries_by_category(self, category: str) -> List[LogEntry]:
        """Return entries matching a category."""
        return [e for e in self.entries if e.category == category]


def create_logger(
    level: Union[LogLevel, str, int] = LogLevel.SUMMARY,
    output: Optional[TextIO] = None,
    log_file: Optional[Path] = None,
) -> SearchLogger:
    """
    Factory function to create a SearchLogger.

    Parameters
    ----------
    level : LogLevel | str | int
        Verbosity level. Can be LogLevel enum, string name, or integer.
    output : TextIO | None
        Output stream. Defaults to sys.stderr.
    log_file : Path | None
        Optional path to write logs to file.
    """
    if isinstance(level, str):
        level = LogLevel[level.upper()]
    elif isinstance(level, int) and not isinstance(level, LogLevel):
        level = LogLevel(level)

    return SearchLogger(
        level=level,
        output=output,
        log_to_file=log_file,
    )


def create_string_logger(level: LogLevel = LogLevel.DETAILED) -> Tuple[SearchLogger, StringIO]:
    """
    Create a logger that writes to a string buffer.

    Useful for testing or capturing logs programmatically.
    """
    buffer = StringIO()
    logger = SearchLogger(level=level, output=buffer)
    return logger, buffer
