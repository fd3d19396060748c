"""Damage attribution and missile bookkeeping.

The host reports damage without a reliable source, so the most likely
tracked hostile is credited: nearby, recently active and facing the
player. The credited interval feeds the cooldown estimator and the hit
is correlated against pending predictions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from src.ai.predictor import is_facing_position

if TYPE_CHECKING:
    from src.ai.cooldown import CooldownEstimator
    from src.ai.feedback import CombatFeedback
    from src.ai.tracker import BehaviorTracker
    from src.config import CombatConfig
    from src.core.creature import Access
    from src.core.models import MonsterRecord, Position
    from src.core.patterns import PatternRepository

logger = logging.getLogger(__name__)

_RECENT_WAVE_MS = 800
_RECENT_ATTACK_MS = 1500
_MIN_ATTACK_INTERVAL_MS = 80
_MIN_MISSILE_INTERVAL_MS = 100
_CONFIDENCE_BUMP = 0.03


@dataclass(frozen=True, slots=True)
class Attribution:
    creature_id: int
    name: str
    score: float
    amount: float
    predicted: bool


class DamageAttributor:
    """Credits received damage and observed missiles to tracked hostiles."""

    def __init__(
        self,
        config: CombatConfig,
        tracker: BehaviorTracker,
        cooldown: CooldownEstimator,
        feedback: CombatFeedback,
        patterns: PatternRepository,
        clock: Callable[[], int],
        player_position: Callable[[], Access[Position]],
    ) -> None:
        self._config = config
        self._tracker = tracker
        self._cooldown = cooldown
        self._feedback = feedback
        self._patterns = patterns
        self._clock = clock
        self._player_position = player_position
        self.attributed = 0
        self.unattributed = 0
        self.damage_received = 0.0

    def score(self, record: MonsterRecord, player: Position, now: int) -> float:
        if not record.last_position.same_floor(player):
            return 0.0
        dist = record.last_position.chebyshev(player)
        if dist > self._config.attribution_radius:
            return 0.0
        score = 1.0 / (1 + dist)
        if record.last_wave_time and now - record.last_wave_time < _RECENT_WAVE_MS:
            score += 1.2
        if record.last_attack_time and now - record.last_attack_time < _RECENT_ATTACK_MS:
            score += 0.8
        if is_facing_position(record.last_position, record.last_direction, player):
            score += 0.6
        return score

    def on_damage(self, amount: float) -> Attribution | None:
        """Credit *amount* of damage to the most likely attacker."""
        if amount <= 0:
            return None
        self.damage_received += amount
        player = self._player_position()
        if not player.ok:
            self.unattributed += 1
            return None

        now = self._clock()
        best: MonsterRecord | None = None
        best_score = 0.0
        for record in self._tracker.records():
            s = self.score(record, player.value, now)
            if s > best_score:
                best, best_score = record, s

        if best is None or best_score < self._config.attribution_threshold:
            self.unattributed += 1
            logger.debug("Unattributed damage %.0f (best score %.2f)", amount, best_score)
            return None

        if best.last_attack_time > 0:
            interval = now - best.last_attack_time
            if interval > _MIN_ATTACK_INTERVAL_MS:
                self._cooldown.observe(best, interval)
        best.last_attack_time = now
        best.wave_count += 1
        self._tracker.record_damage(best, amount, now)
        predicted = self._feedback.record_damage(best.creature_id, amount)

        pattern = self._patterns.get_or_default(best.name)
        self._patterns.persist(best.name, {
            "confidence": min(0.99, pattern.confidence + _CONFIDENCE_BUMP),
            "last_seen": now,
        })
        self.attributed += 1
        logger.debug(
            "Damage %.0f -> %s #%d (score %.2f, predicted=%s)",
            amount, best.name, best.creature_id, best_score, predicted,
        )
        return Attribution(best.creature_id, best.name, best_score, amount, predicted)

    def on_missile(self, creature_id: int) -> bool:
        """A tracked caster fired a missile. Returns False for unknown casters."""
        record = self._tracker.get(creature_id)
        if record is None:
            return False
        now = self._clock()
        if record.last_wave_time > 0:
            interval = now - record.last_wave_time
            if interval > _MIN_MISSILE_INTERVAL_MS:
                self._cooldown.observe(record, interval)
        record.wave_count += 1
        record.last_wave_time = now
        record.missile_count += 1
        return True
