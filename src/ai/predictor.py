"""Predictor — geometric and temporal attack reasoning.

The geometry helpers are pure functions over positions and directions.
``Predictor`` combines them with tracker records and learned patterns to
estimate whether a creature's wave attack is imminent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable

from src.core.enums import DangerLevel
from src.core.models import DIRECTION_VECTORS, NO_ATTACK_MS, WavePrediction

if TYPE_CHECKING:
    from src.ai.tracker import BehaviorTracker
    from src.config import CombatConfig
    from src.core.creature import Access, CreatureAdapter
    from src.core.models import Position
    from src.core.patterns import PatternRepository


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

def _aligned(dx: int, dy: int, vx: int, vy: int, width: int) -> bool:
    if vx == 0:
        return dy * vy > 0 and abs(dx) <= width
    if vy == 0:
        return dx * vx > 0 and abs(dy) <= width
    return dx * vx > 0 and dy * vy > 0


def is_facing_position(pos: Position, direction: int, target: Position) -> bool:
    """True if *target* lies in the 1-tile cone in front of *pos*.

    Orthogonal directions: ahead on the facing axis and within one tile
    sideways. Diagonal directions: both offsets carry the vector's signs.
    """
    vec = DIRECTION_VECTORS.get(direction)
    if vec is None or pos.z != target.z:
        return False
    return _aligned(target.x - pos.x, target.y - pos.y, vec[0], vec[1], 1)


def is_position_in_wave_path(
    pos: Position,
    source: Position,
    direction: int,
    wave_range: int = 5,
    width: int = 1,
) -> bool:
    """True if *pos* is inside the beam cast from *source* along *direction*."""
    vec = DIRECTION_VECTORS.get(direction)
    if vec is None or pos.z != source.z:
        return False
    dist = pos.chebyshev(source)
    if dist == 0 or dist > wave_range:
        return False
    dx, dy = pos.x - source.x, pos.y - source.y
    vx, vy = vec
    if vx != 0 and vy != 0:
        # Diagonal beam: stay within ``width`` of the diagonal line.
        return dx * vx > 0 and dy * vy > 0 and abs(abs(dx) - abs(dy)) <= width
    return _aligned(dx, dy, vx, vy, width)


def predict_position(pos: Position, direction: int, steps: int = 1) -> Position:
    """Where a creature walking along *direction* will be after *steps* tiles."""
    return pos.step(direction, steps)


# ---------------------------------------------------------------------------
# Danger aggregation result
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class DangerAssessment:
    level: DangerLevel
    confidence: float
    total: float
    sources: int


def danger_level_for(average: float) -> DangerLevel:
    if average >= 3:
        return DangerLevel.CRITICAL
    if average >= 2:
        return DangerLevel.HIGH
    if average >= 1:
        return DangerLevel.MEDIUM
    if average > 0:
        return DangerLevel.LOW
    return DangerLevel.NONE


# ---------------------------------------------------------------------------
# Predictor
# ---------------------------------------------------------------------------

class Predictor:
    """Attack-imminence estimates built from tracker and pattern data."""

    __slots__ = ("_config", "_tracker", "_patterns", "_clock", "_player_position")

    is_facing_position = staticmethod(is_facing_position)
    is_position_in_wave_path = staticmethod(is_position_in_wave_path)
    predict_position = staticmethod(predict_position)

    def __init__(
        self,
        config: CombatConfig,
        tracker: BehaviorTracker,
        patterns: PatternRepository,
        clock: Callable[[], int],
        player_position: Callable[[], Access[Position]],
    ) -> None:
        self._config = config
        self._tracker = tracker
        self._patterns = patterns
        self._clock = clock
        self._player_position = player_position

    def cooldown_for(self, creature_id: int, name: str) -> float:
        """Learned per-creature cooldown, else the type pattern, else the default."""
        record = self._tracker.get(creature_id)
        if record is not None and record.cooldown.mean:
            return record.cooldown.mean
        pattern = self._patterns.get(name)
        if pattern is not None and pattern.wave_cooldown:
            return pattern.wave_cooldown
        return float(self._config.default_wave_cooldown_ms)

    def predict_wave_attack(self, creature: CreatureAdapter) -> WavePrediction:
        """Return (is_imminent, confidence, time_to_attack) for *creature*."""
        name = creature.name().unwrap_or("")
        pattern = self._patterns.get_or_default(name)
        if not pattern.has_wave_attack:
            return WavePrediction(False, 0.8, NO_ATTACK_MS)

        pos = creature.position()
        cid = creature.id()
        player = self._player_position()
        if not pos.ok or not cid.ok or not player.ok:
            return WavePrediction(False, 0.0, NO_ATTACK_MS)

        direction = creature.direction()
        if not direction.ok or not is_facing_position(pos.value, direction.value, player.value):
            return WavePrediction(False, 0.7, NO_ATTACK_MS)

        now = self._clock()
        record = self._tracker.get(cid.value)
        last_attack = record.last_attack_time if record is not None else 0
        elapsed = now - last_attack if last_attack > 0 else NO_ATTACK_MS
        cooldown = self.cooldown_for(cid.value, name)
        time_to_attack = max(0.0, cooldown - elapsed)

        tracker_conf = record.confidence if record is not None else 0.1
        confidence = 0.5 + tracker_conf * 0.3 + 0.2
        if elapsed >= 0.8 * cooldown:
            confidence += 0.15
        if record is not None:
            confidence *= 1 - record.cooldown.variance_penalty
        confidence = max(0.05, min(0.95, confidence))

        return WavePrediction(time_to_attack < self._config.imminent_ms, confidence, time_to_attack)

    def predict_position_danger(
        self,
        position: Position,
        hostiles: Iterable[CreatureAdapter],
    ) -> DangerAssessment:
        """Aggregate danger at *position* from waves expected within the horizon."""
        horizon = self._config.danger_horizon_ms
        total = 0.0
        conf_sum = 0.0
        sources = 0
        for creature in hostiles:
            prediction = self.predict_wave_attack(creature)
            if not prediction.is_imminent or prediction.time_to_attack >= horizon:
                continue
            source = creature.position()
            direction = creature.direction()
            if not source.ok or not direction.ok:
                continue
            pattern = self._patterns.get_or_default(creature.name().unwrap_or(""))
            if not is_position_in_wave_path(
                position, source.value, direction.value, pattern.wave_range, pattern.wave_width,
            ):
                continue
            urgency = 1 - prediction.time_to_attack / horizon
            total += pattern.danger_level * urgency
            conf_sum += prediction.confidence
            sources += 1

        if sources == 0:
            return DangerAssessment(DangerLevel.NONE, 0.8, 0.0, 0)
        return DangerAssessment(danger_level_for(total / sources), conf_sum / sources, total, sources)
