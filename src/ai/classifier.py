"""Behavior classifier — turns tracker ratios into a per-type archetype.

Results are cached by normalised creature-type name. Below the sample
threshold the cached result (or ``None``) is returned untouched.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from src.core.enums import MovementPattern
from src.core.models import ClassificationResult
from src.core.patterns import normalize_name

if TYPE_CHECKING:
    from src.ai.tracker import BehaviorTracker
    from src.config import CombatConfig
    from src.core.models import MonsterRecord

logger = logging.getLogger(__name__)


class BehaviorClassifier:
    """Rule-based archetype classification with a stale-but-valid cache."""

    __slots__ = ("_config", "_tracker", "_clock", "_cache", "_last_samples", "classifications")

    def __init__(self, config: CombatConfig, tracker: BehaviorTracker, clock: Callable[[], int]) -> None:
        self._config = config
        self._tracker = tracker
        self._clock = clock
        self._cache: dict[str, ClassificationResult] = {}
        self._last_samples: dict[int, int] = {}
        self.classifications = 0

    def get(self, name: str) -> ClassificationResult | None:
        return self._cache.get(normalize_name(name))

    def all(self) -> dict[str, ClassificationResult]:
        return dict(self._cache)

    def forget(self, creature_id: int) -> None:
        self._last_samples.pop(creature_id, None)

    def classify(self, record: MonsterRecord, force: bool = False) -> ClassificationResult | None:
        """Classify *record*'s type, or return the cached result if data is thin.

        A creature already classified is only reclassified after gathering
        ``reclassify_sample_step`` more samples (or with *force*).
        """
        key = normalize_name(record.name)
        cfg = self._config
        cached = self._cache.get(key)
        if record.movement_samples < cfg.min_classify_samples:
            return cached
        last = self._last_samples.get(record.creature_id)
        if (
            cached is not None
            and last is not None
            and not force
            and record.movement_samples < last + cfg.reclassify_sample_step
        ):
            return cached

        now = self._clock()
        stationary = record.stationary_ratio
        chase = record.chase_ratio
        facing = record.facing_ratio
        observed_s = max(1.0, (now - record.tracking_start) / 1000.0)
        wave_rate = record.wave_count / observed_s
        dps = self._tracker.dps(record, now)
        avg_distance = record.avg_distance

        result = ClassificationResult(name=key, sample_count=record.movement_samples, updated_at=now)

        # Range archetype, first match wins
        if stationary > 0.5 and record.wave_count > 3:
            result.is_ranged = True
            result.preferred_distance = 4
        elif stationary > 0.6 and chase < 0.3:
            result.is_ranged = True
            result.preferred_distance = 5
        elif chase > 0.6:
            result.is_melee = True
            result.preferred_distance = 1
        elif record.preferred_distance is not None:
            result.preferred_distance = record.preferred_distance

        if wave_rate >= cfg.wave_frequent or record.wave_count >= 3:
            result.is_wave_attacker = True
            result.is_aoe = True
            result.attack_cooldown = record.cooldown.mean

        if facing > 0.4 and record.wave_count > 2:
            result.is_aggressive = True
        elif facing < 0.2 and record.wave_count == 0:
            result.is_passive = True

        result.is_fast = record.reported_speed > cfg.fast_speed
        result.is_slow = 0 < record.reported_speed < cfg.slow_speed

        if stationary > 0.8:
            result.movement_pattern = MovementPattern.STATIC
        elif chase > 0.6:
            result.movement_pattern = MovementPattern.CHASE
        elif stationary > 0.4 and result.is_ranged:
            result.movement_pattern = MovementPattern.KITE
        elif chase < 0.3 and stationary < 0.3:
            result.movement_pattern = MovementPattern.ERRATIC
        else:
            result.movement_pattern = MovementPattern.CHASE

        danger = 1.0
        if dps > cfg.high_dps:
            danger += 2
        elif dps > cfg.high_dps / 2:
            danger += 1
        if result.is_wave_attacker:
            danger += 1
            if wave_rate > 0.5:
                danger += 1
        if result.is_fast:
            danger += 0.5
        if result.is_aggressive:
            danger += 0.5
        result.estimated_danger = min(4.0, danger)

        result.confidence = min(0.95, 0.3 + (record.movement_samples / 100) * 0.65)
        result.scores = {
            "stationary_ratio": stationary,
            "chase_ratio": chase,
            "facing_ratio": facing,
            "wave_rate": wave_rate,
            "dps": dps,
            "avg_distance": avg_distance,
        }

        previous = self._cache.get(key)
        self._cache[key] = result
        self._last_samples[record.creature_id] = record.movement_samples
        self.classifications += 1
        if previous is None or previous.movement_pattern != result.movement_pattern:
            logger.info(
                "Classified %s: %s danger=%.1f conf=%.2f",
                key, result.movement_pattern.name, result.estimated_danger, result.confidence,
            )
        return result
