"""Persisted per-creature-type patterns and the key-value stores behind them.

PatternEntry      — learned cooldown, danger, movement and confidence for one type.
KeyValueStore     — minimal get/set contract of the host persistence layer.
MemoryStore       — process-local store.
JsonFileStore     — JSON file on disk, read lazily, written on every set.
PatternRepository — the only place creature-type names are normalised.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Protocol

from src.core.enums import DangerLevel, MovementPattern

logger = logging.getLogger(__name__)

_MAX_PATTERN_SAMPLES = 30
_DAY_MS = 86_400_000


@dataclass(slots=True)
class PatternEntry:
    """Learned behavior of one creature type."""

    name: str
    has_wave_attack: bool = True
    wave_width: int = 1
    wave_range: int = 5
    wave_cooldown: float = 2000.0
    wave_variance: float = 0.0
    has_area_attack: bool = False
    movement_pattern: MovementPattern = MovementPattern.CHASE
    danger_level: int = DangerLevel.MEDIUM
    preferred_distance: int = 1
    confidence: float = 0.5
    last_seen: int = 0
    auto_tuned: bool = False
    auto_tune_time: int = 0
    samples: list[dict[str, Any]] = field(default_factory=list)  # newest first

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["movement_pattern"] = int(self.movement_pattern)
        data["danger_level"] = int(self.danger_level)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PatternEntry:
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        entry = cls(**kwargs)
        entry.movement_pattern = MovementPattern(int(entry.movement_pattern))
        entry.danger_level = int(entry.danger_level)
        return entry


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class KeyValueStore(Protocol):
    """Opaque-blob persistence keyed by a string path."""

    def ready(self) -> bool: ...
    def get(self, key: str) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...


class MemoryStore:
    """Dictionary-backed store; ``available=False`` simulates a store not yet ready."""

    __slots__ = ("_data", "available")

    def __init__(self, available: bool = True) -> None:
        self._data: dict[str, Any] = {}
        self.available = available

    def ready(self) -> bool:
        return self.available

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value


class JsonFileStore:
    """All keys in one JSON document on disk."""

    __slots__ = ("_path", "_cache")

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._cache: dict[str, Any] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if self._cache is not None:
            return self._cache
        if not self._path.is_file():
            self._cache = {}
            return self._cache
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Pattern store %s unreadable (%s); starting empty", self._path, exc)
            data = {}
        self._cache = data if isinstance(data, dict) else {}
        return self._cache

    def ready(self) -> bool:
        return True

    def get(self, key: str) -> Any:
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

def normalize_name(name: str) -> str:
    return (name or "").strip().lower()


class PatternRepository:
    """Per-type pattern table with write-through persistence.

    If the store is not ready the table lives only in memory and
    ``fallback_active`` is set; writes resume once the store reports ready.
    """

    __slots__ = ("_store", "_key", "_entries", "_loaded", "fallback_active")

    def __init__(self, store: KeyValueStore | None = None, key: str = "combat.monster_patterns") -> None:
        self._store = store if store is not None else MemoryStore()
        self._key = key
        self._entries: dict[str, PatternEntry] = {}
        self._loaded = False
        self.fallback_active = False
        self._load()

    def _load(self) -> None:
        if self._loaded:
            return
        if not self._store.ready():
            self.fallback_active = True
            return
        raw = self._store.get(self._key) or {}
        for name, data in raw.items():
            try:
                self._entries.setdefault(name, PatternEntry.from_dict(data))
            except (TypeError, ValueError) as exc:
                logger.warning("Dropping malformed pattern %r: %s", name, exc)
        self._loaded = True
        self.fallback_active = False
        logger.debug("Loaded %d patterns from store", len(self._entries))

    def _save(self) -> None:
        self._load()
        if not self._store.ready():
            if not self.fallback_active:
                logger.warning("Pattern store unavailable; keeping patterns in memory")
            self.fallback_active = True
            return
        self._store.set(self._key, {n: e.to_dict() for n, e in self._entries.items()})

    # -- queries --

    def get(self, name: str) -> PatternEntry | None:
        return self._entries.get(normalize_name(name))

    def get_or_default(self, name: str) -> PatternEntry:
        """Learned pattern for *name*, or an unsaved default."""
        key = normalize_name(name)
        return self._entries.get(key) or PatternEntry(name=key)

    def names(self) -> list[str]:
        return sorted(self._entries)

    def all(self) -> list[PatternEntry]:
        return [self._entries[n] for n in self.names()]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return normalize_name(name) in self._entries

    # -- mutation --

    def persist(self, name: str, patch: dict[str, Any], sample: dict[str, Any] | None = None) -> PatternEntry:
        """Merge *patch* into the entry for *name*, creating it lazily.

        An optional *sample* is prepended to the entry's history in the
        same write.
        """
        key = normalize_name(name)
        entry = self._entries.get(key)
        if entry is None:
            entry = PatternEntry(name=key)
            self._entries[key] = entry
        for attr, value in patch.items():
            if attr == "name" or not hasattr(entry, attr):
                raise ValueError(f"Unknown pattern field: {attr}")
            setattr(entry, attr, value)
        if sample is not None:
            entry.samples.insert(0, sample)
            del entry.samples[_MAX_PATTERN_SAMPLES:]
        self._save()
        return entry

    def append_sample(self, name: str, sample: dict[str, Any]) -> None:
        self.persist(name, {}, sample=sample)

    def decay(self, now_ms: int, max_age_days: int = 7) -> int:
        """Relax entries not seen for *max_age_days*. Returns how many decayed."""
        cutoff = now_ms - max_age_days * _DAY_MS
        decayed = 0
        for entry in self._entries.values():
            if entry.last_seen and entry.last_seen < cutoff:
                entry.confidence = (entry.confidence or 0.5) * 0.9
                entry.wave_cooldown = entry.wave_cooldown * 1.05
                decayed += 1
        if decayed:
            self._save()
            logger.info("Decayed %d stale patterns", decayed)
        return decayed
