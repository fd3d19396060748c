"""Tests for pattern persistence.

Covers:
- Names are normalised; defaults are not saved
- Unknown fields are rejected
- JSON file store round trip and a corrupt file
- In-memory fallback while the store is not ready
- Decay of patterns not seen for a week
- Sample list is capped, newest first
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from src.core.enums import DangerLevel, MovementPattern
from src.core.patterns import JsonFileStore, MemoryStore, PatternEntry, PatternRepository

DAY_MS = 86_400_000


class TestRepository:
    """Basic persistence semantics."""

    def test_default_is_not_saved(self):
        repo = PatternRepository()
        entry = repo.get_or_default("Dragon")
        assert entry.name == "dragon"
        assert entry.wave_cooldown == 2000.0
        assert entry.danger_level == DangerLevel.MEDIUM
        assert len(repo) == 0

    def test_persist_normalises_name(self):
        repo = PatternRepository()
        repo.persist("  Dragon Lord ", {"danger_level": 4})
        assert "dragon lord" in repo
        assert repo.get("DRAGON LORD").danger_level == 4
        assert repo.names() == ["dragon lord"]

    def test_unknown_field_rejected(self):
        repo = PatternRepository()
        with pytest.raises(ValueError):
            repo.persist("Dragon", {"breath_colour": "red"})

    def test_samples_capped_newest_first(self):
        repo = PatternRepository()
        for i in range(40):
            repo.append_sample("Dragon", {"interval": i})
        samples = repo.get("dragon").samples
        assert len(samples) == 30
        assert samples[0]["interval"] == 39

    def test_entry_dict_round_trip_keeps_enums(self):
        entry = PatternEntry(name="hunter", movement_pattern=MovementPattern.KITE, danger_level=3)
        restored = PatternEntry.from_dict(entry.to_dict())
        assert restored.movement_pattern is MovementPattern.KITE
        assert restored.danger_level == 3


class TestStores:
    """JSON file store and the not-ready fallback."""

    def test_json_store_survives_restart(self, tmp_path):
        path = tmp_path / "patterns.json"
        repo = PatternRepository(JsonFileStore(path))
        repo.persist("Dragon", {"wave_cooldown": 2200.0, "confidence": 0.8})

        reloaded = PatternRepository(JsonFileStore(path))
        entry = reloaded.get("dragon")
        assert entry.wave_cooldown == 2200.0
        assert entry.confidence == 0.8

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "patterns.json"
        path.write_text("{not json", encoding="utf-8")
        repo = PatternRepository(JsonFileStore(path))
        assert len(repo) == 0
        repo.persist("Dragon", {"danger_level": 3})
        assert PatternRepository(JsonFileStore(path)).get("dragon").danger_level == 3

    def test_malformed_entry_dropped(self):
        store = MemoryStore()
        store.set("combat.monster_patterns", {
            "dragon": {"name": "dragon", "danger_level": 4},
            "broken": {"name": "broken", "movement_pattern": 99},
        })
        repo = PatternRepository(store)
        assert repo.names() == ["dragon"]

    def test_fallback_until_store_ready(self):
        store = MemoryStore(available=False)
        repo = PatternRepository(store)
        assert repo.fallback_active

        repo.persist("Dragon", {"danger_level": 4})
        assert repo.get("dragon").danger_level == 4
        assert store.get("combat.monster_patterns") is None

        store.available = True
        repo.persist("Dragon", {"confidence": 0.7})
        assert not repo.fallback_active
        assert store.get("combat.monster_patterns")["dragon"]["danger_level"] == 4


class TestDecay:
    """Week-old patterns relax."""

    def test_stale_entry_decays(self):
        repo = PatternRepository()
        now = 30 * DAY_MS
        repo.persist("Dragon", {"last_seen": now - 8 * DAY_MS, "confidence": 0.5, "wave_cooldown": 2000.0})
        repo.persist("Rotworm", {"last_seen": now - DAY_MS, "confidence": 0.5})

        assert repo.decay(now) == 1
        dragon = repo.get("dragon")
        assert dragon.confidence == pytest.approx(0.45)
        assert dragon.wave_cooldown == pytest.approx(2100.0)
        assert repo.get("rotworm").confidence == 0.5

    def test_never_seen_entries_untouched(self):
        repo = PatternRepository()
        repo.persist("Dragon", {})
        assert repo.decay(30 * DAY_MS) == 0
