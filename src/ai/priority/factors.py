"""Built-in priority factors.

Each factor reads a PriorityContext and returns an additive contribution.
Adaptive weights from the feedback loop scale the factors they belong to.
"""

from __future__ import annotations

from src.ai.predictor import is_facing_position, is_position_in_wave_path
from src.ai.priority.base import PriorityContext, PriorityFactor

_WAVE_PATH_RANGE = 5
_WAVE_PATH_WIDTH = 3


class DistanceFactor(PriorityFactor):
    """Closer is more urgent: melee > close > medium > far."""

    @property
    def name(self) -> str:
        return "distance"

    def score(self, ctx: PriorityContext) -> float:
        w = ctx.weights
        d = ctx.distance
        if d <= w.melee_range:
            bonus = 50.0
        elif d <= w.close_range:
            bonus = 35.0
        elif d <= w.medium_range:
            bonus = 20.0
        else:
            bonus = max(0.0, 15.0 - (d - w.medium_range) * 2)
        return bonus * w.distance_weight


class HealthFactor(PriorityFactor):
    """Wounded targets are cheaper to finish."""

    @property
    def name(self) -> str:
        return "health"

    def score(self, ctx: PriorityContext) -> float:
        w = ctx.weights
        if ctx.health <= w.critical_health:
            bonus = 30.0
        elif ctx.health <= w.low_health:
            bonus = 20.0
        elif ctx.health <= 50:
            bonus = 10.0
        else:
            bonus = 0.0
        return bonus * w.health_weight


class TrackedDangerFactor(PriorityFactor):
    """Observed damage output: DPS, hit count, recent damage, waves, recency."""

    @property
    def name(self) -> str:
        return "tracked_danger"

    def score(self, ctx: PriorityContext) -> float:
        record = ctx.record
        if record is None:
            return 0.0
        bonus = 0.0

        if ctx.dps >= 80:
            dps_bonus = 40.0
        elif ctx.dps >= 40:
            dps_bonus = 25.0
        elif ctx.dps >= 20:
            dps_bonus = 10.0
        else:
            dps_bonus = 0.0
        bonus += dps_bonus * ctx.adaptive_weight("dps_based")

        if record.hit_count >= 10:
            bonus += 15
        elif record.hit_count >= 5:
            bonus += 8
        elif record.hit_count >= 2:
            bonus += 3

        bonus += min(30.0, ctx.recent_damage / 5)

        if record.wave_count >= 3:
            bonus += 20
        elif record.wave_count >= 1:
            bonus += 10

        if record.last_attack_time > 0:
            since = ctx.now - record.last_attack_time
            if since < 2000:
                bonus += 20
            elif since < 5000:
                bonus += 10

        return bonus * ctx.weights.danger_weight


class WaveThreatFactor(PriorityFactor):
    """Wave attack timing, facing and whether the player stands in the beam."""

    @property
    def name(self) -> str:
        return "wave_threat"

    def score(self, ctx: PriorityContext) -> float:
        w = ctx.weights
        bonus = 0.0
        record = ctx.record

        if ctx.pattern.has_wave_attack and record is not None and record.last_hostile_action() > 0:
            cooldown = record.cooldown.mean or ctx.pattern.wave_cooldown
            if cooldown > 0:
                elapsed = ctx.now - record.last_hostile_action()
                remaining = max(0.0, cooldown - elapsed)
                ratio = elapsed / cooldown
                timing = ctx.adaptive_weight("cooldown_based")
                if remaining <= w.imminent_threshold_ms:
                    bonus += 50 * w.imminent_weight * timing
                    if ratio >= w.dangerous_cooldown_ratio:
                        bonus += 10 * w.imminent_weight * timing
                elif remaining <= 1500:
                    bonus += 40 * w.wave_weight * timing
                elif remaining <= 2500:
                    bonus += 20 * w.wave_weight * timing

        if is_facing_position(ctx.position, ctx.direction, ctx.player):
            bonus += 15 * ctx.adaptive_weight("facing_based")
        if ctx.pattern.has_wave_attack and is_position_in_wave_path(
            ctx.player, ctx.position, ctx.direction, _WAVE_PATH_RANGE, _WAVE_PATH_WIDTH,
        ):
            bonus += 25 * ctx.adaptive_weight("wave_prediction")
        return bonus


class ClassificationFactor(PriorityFactor):
    """Learned archetype: estimated danger, wave attacker, ranged."""

    @property
    def name(self) -> str:
        return "classification"

    def score(self, ctx: PriorityContext) -> float:
        cls = ctx.classification
        if cls is None:
            return 0.0
        bonus = 0.0
        if cls.estimated_danger >= 4:
            bonus += 50
        elif cls.estimated_danger >= 3:
            bonus += 30
        elif cls.estimated_danger >= 2:
            bonus += 15
        if cls.is_wave_attacker:
            bonus += 20
        if cls.is_ranged:
            bonus += 10
        return bonus * ctx.adaptive_weight("classification_based")


class MovementFactor(PriorityFactor):
    """Approaching walkers are urgent, fleeing ones less so; fast ones more."""

    @property
    def name(self) -> str:
        return "movement"

    def score(self, ctx: PriorityContext) -> float:
        record = ctx.record
        if record is None:
            return 0.0
        bonus = 0.0
        walking = ctx.is_walking or record.walking_ratio > 0.5
        if walking and len(record.distance_samples) >= 2:
            previous = record.distance_samples[-2]
            if ctx.distance < previous:
                bonus += 15
            elif ctx.distance > previous:
                bonus -= 5
        if record.reported_speed >= ctx.weights.fast_speed:
            bonus += 10
        return bonus


def default_factors() -> list[PriorityFactor]:
    """Fresh instances of every built-in factor, in evaluation order."""
    return [
        DistanceFactor(),
        HealthFactor(),
        TrackedDangerFactor(),
        WaveThreatFactor(),
        ClassificationFactor(),
        MovementFactor(),
    ]
