"""Volume adaptation: shed per-tick work as the hostile count grows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from src.core.enums import VolumeLevel
from src.systems.slot_hash import SlotHasher

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class VolumeParams:
    telemetry_interval_ms: int
    threat_cache_ttl_ms: int
    ewma_alpha: float
    min_samples_for_prediction: int
    max_tracked_per_cycle: int


VOLUME_PARAMS: dict[VolumeLevel, VolumeParams] = {
    VolumeLevel.LOW: VolumeParams(100, 50, 0.35, 3, 10),
    VolumeLevel.NORMAL: VolumeParams(200, 100, 0.25, 5, 8),
    VolumeLevel.HIGH: VolumeParams(350, 150, 0.20, 7, 6),
    VolumeLevel.EXTREME: VolumeParams(500, 200, 0.15, 10, 4),
}

_HYSTERESIS_MS = 500
_CYCLE_MS = 100


def level_for_count(count: int) -> VolumeLevel:
    if count <= 2:
        return VolumeLevel.LOW
    if count <= 5:
        return VolumeLevel.NORMAL
    if count <= 10:
        return VolumeLevel.HIGH
    return VolumeLevel.EXTREME


class VolumeAdaptation:
    """Tracks hostile volume and decides which creatures to update per cycle."""

    __slots__ = (
        "_clock", "_hasher", "level", "last_change", "avg_count",
        "peak_count", "level_changes", "adaptations_saved",
    )

    def __init__(self, clock: Callable[[], int], hasher: SlotHasher | None = None) -> None:
        self._clock = clock
        self._hasher = hasher or SlotHasher()
        self.level = VolumeLevel.NORMAL
        self.last_change = 0
        self.avg_count = 0.0
        self.peak_count = 0
        self.level_changes = 0
        self.adaptations_saved = 0

    @property
    def params(self) -> VolumeParams:
        return VOLUME_PARAMS[self.level]

    def update(self, count: int, now: int | None = None) -> VolumeLevel:
        """Feed the current hostile count; the level moves at most every 500ms."""
        now = self._clock() if now is None else now
        self.avg_count = self.avg_count * 0.95 + count * 0.05
        self.peak_count = max(self.peak_count, count)

        target = level_for_count(count)
        if target != self.level and now - self.last_change >= _HYSTERESIS_MS:
            logger.debug("Volume %s -> %s (%d hostiles)", self.level.name, target.name, count)
            self.level = target
            self.last_change = now
            self.level_changes += 1
        return self.level

    def should_process(self, creature_id: int, now: int | None = None) -> bool:
        """Round-robin gate: under high load only a rotating subset is updated."""
        if self.level in (VolumeLevel.LOW, VolumeLevel.NORMAL):
            return True
        now = self._clock() if now is None else now
        per_cycle = self.params.max_tracked_per_cycle
        span = per_cycle * 2
        slot = (now // _CYCLE_MS) % span
        h = self._hasher.slot(creature_id, span)
        # Window of ``per_cycle`` slots ending at ``slot``, wrapping around.
        selected = (slot - h) % span < per_cycle
        if not selected:
            self.adaptations_saved += 1
        return selected

    def summary(self) -> dict:
        return {
            "level": self.level.name.lower(),
            "avg_count": round(self.avg_count, 2),
            "peak_count": self.peak_count,
            "level_changes": self.level_changes,
            "adaptations_saved": self.adaptations_saved,
            "params": {
                "telemetry_interval_ms": self.params.telemetry_interval_ms,
                "threat_cache_ttl_ms": self.params.threat_cache_ttl_ms,
                "ewma_alpha": self.params.ewma_alpha,
                "max_tracked_per_cycle": self.params.max_tracked_per_cycle,
            },
        }
