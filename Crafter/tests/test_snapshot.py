"""Tests for snapshot persistence and checkpointing."""
from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import TableOracle, make_context

from Crafter.cache import CombinationCache
from Crafter.snapshot import (
    Checkpointer,
    SnapshotError,
    load_cache,
    read_snapshot,
    save_cache,
    write_snapshot,
)


def pair_relation(cache: CombinationCache) -> set:
    """Name-level (input, input, output) triples, independent of ids."""
    relation = set()
    for (a, b), output in cache.items():
        first, second = sorted((cache.element_name(a), cache.element_name(b)))
        relation.add((first, second, cache.element_name(output)))
    return relation


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


# ---------------------------------------------------------------------------
# Tests: Round trip
# ---------------------------------------------------------------------------

class TestRoundTrip:
    """save followed by load reproduces the pair -> output relation."""

    def test_round_trip(self, tmp_path, small_world_oracle):
        context, _ = make_context(small_world_oracle)
        cache = context.cache
        water, fire, wind, earth = cache.element_ids(["Water", "Fire", "Wind", "Earth"])
        steam = cache.combine(water, fire)
        mud = cache.combine(earth, water)
        cache.combine(steam, wind)
        cache.combine(mud, water)
        cache.combine(wind, earth)

        path = tmp_path / "db.json"
        save_cache(path, cache)
        restored = load_cache(path)

        assert restored.pair_count == cache.pair_count == 5
        assert pair_relation(restored) == pair_relation(cache)

    def test_on_disk_shape(self, tmp_path):
        cache = CombinationCache.from_derivations({"Steam": [["Water", "Fire"]]})
        path = tmp_path / "db.json"
        save_cache(path, cache)
        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw == {"Steam": [["Water", "Fire"]]}

    def test_unicode_names(self, tmp_path):
        write_snapshot(tmp_path / "db.json", {"Café": [("Coffee", "Paris")]})
        assert read_snapshot(tmp_path / "db.json") == {"Café": [("Coffee", "Paris")]}


# ---------------------------------------------------------------------------
# Tests: Load failures
# ---------------------------------------------------------------------------

class TestLoadFailures:
    """Missing snapshots are distinguishable from broken ones."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_cache(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "db.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(SnapshotError):
            load_cache(path)

    @pytest.mark.parametrize("payload", [
        [["Water", "Fire"]],
        {"Steam": "Water + Fire"},
        {"Steam": [["Water"]]},
        {"Steam": [["Water", "Fire", "Wind"]]},
    ])
    def test_wrong_shape(self, tmp_path, payload):
        path = tmp_path / "db.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        with pytest.raises(SnapshotError):
            load_cache(path)

    def test_directory_is_not_a_snapshot(self, tmp_path):
        with pytest.raises(SnapshotError):
            load_cache(tmp_path)

    def test_undecodable_bytes(self, tmp_path):
        path = tmp_path / "db.json"
        path.write_bytes(b'{"Steam": [["Wat\xff\xfe", "Fire"]]}')
        with pytest.raises(SnapshotError, match="UTF-8"):
            load_cache(path)


# ---------------------------------------------------------------------------
# Tests: Atomic writes
# ---------------------------------------------------------------------------

class TestAtomicSave:
    """A failed save leaves the previous snapshot and no temp files behind."""

    def test_failed_write_keeps_previous_snapshot(self, tmp_path, monkeypatch):
        path = tmp_path / "db.json"
        write_snapshot(path, {"Steam": [("Water", "Fire")]})
        before = path.read_text(encoding="utf-8")

        def explode(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr("Crafter.snapshot.json.dump", explode)
        with pytest.raises(OSError):
            write_snapshot(path, {"Mud": [("Water", "Earth")]})

        assert path.read_text(encoding="utf-8") == before
        assert sorted(p.name for p in tmp_path.iterdir()) == ["db.json"]

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "db.json"
        write_snapshot(path, {})
        assert read_snapshot(path) == {}


# ---------------------------------------------------------------------------
# Tests: Checkpointing
# ---------------------------------------------------------------------------

class TestCheckpointer:
    """Saves happen only when new pairs exist and the interval elapsed."""

    def test_waits_for_interval(self, tmp_path, steam_oracle):
        context, _ = make_context(steam_oracle)
        clock = FakeClock()
        path = tmp_path / "db.json"
        checkpointer = Checkpointer(path, context.cache, interval_seconds=60, clock=clock)
        water, fire = context.cache.element_ids(["Water", "Fire"])
        context.cache.combine(water, fire)

        clock.now = 59.9
        assert not checkpointer.maybe_save()
        assert not path.exists()

        clock.now = 60.0
        assert checkpointer.maybe_save()
        assert path.exists()
        assert not context.cache.dirty

    def test_clean_cache_is_not_saved(self, tmp_path):
        cache = CombinationCache()
        clock = FakeClock()
        checkpointer = Checkpointer(tmp_path / "db.json", cache, interval_seconds=1, clock=clock)
        clock.now = 100
        assert not checkpointer.maybe_save()
        assert checkpointer.saves == 0

    def test_restart_after_checkpoint(self, tmp_path, small_world_oracle):
        """Pairs resolved after the last checkpoint are lost, earlier ones kept."""
        context, _ = make_context(small_world_oracle)
        cache = context.cache
        clock = FakeClock()
        path = tmp_path / "db.json"
        context.checkpointer = Checkpointer(path, cache, interval_seconds=10, clock=clock)
        water, fire, wind, earth = cache.element_ids(["Water", "Fire", "Wind", "Earth"])

        steam = context.combine(water, fire)
        context.combine(earth, water)
        clock.now = 10
        context.combine(steam, wind)  # crosses the interval: checkpoint here
        saved = pair_relation(cache)
        context.combine(wind, earth)  # resolved after the checkpoint
        # process killed here

        restored = load_cache(path, oracle=TableOracle())
        assert pair_relation(restored) == saved
        assert ("Earth", "Wind", "Nothing") not in pair_relation(restored)
        assert restored.pair_count == 3
