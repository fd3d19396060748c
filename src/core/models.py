"""Core data models: Position, tracker records, predictions, classifications."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field

from src.core.enums import Direction, MovementPattern

# Sentinel "never" for time-to-attack and elapsed-time values.
NO_ATTACK_MS = 999_999


@dataclass(frozen=True, slots=True)
class Position:
    """Immutable map coordinate. ``z`` is the floor."""

    x: int = 0
    y: int = 0
    z: int = 0

    def __add__(self, other: Position) -> Position:
        return Position(self.x + other.x, self.y + other.y, self.z)

    def __sub__(self, other: Position) -> Position:
        return Position(self.x - other.x, self.y - other.y, self.z)

    def chebyshev(self, other: Position) -> int:
        return max(abs(self.x - other.x), abs(self.y - other.y))

    def manhattan(self, other: Position) -> int:
        return abs(self.x - other.x) + abs(self.y - other.y)

    def same_floor(self, other: Position) -> bool:
        return self.z == other.z

    def step(self, direction: int, steps: int = 1) -> Position:
        dx, dy = DIRECTION_VECTORS.get(direction, (0, 0))
        return Position(self.x + dx * steps, self.y + dy * steps, self.z)

    def __repr__(self) -> str:
        return f"({self.x}, {self.y}, {self.z})"


# Unit vectors mapped to Direction enum values
DIRECTION_VECTORS: dict[int, tuple[int, int]] = {
    Direction.NORTH: (0, -1),
    Direction.EAST: (1, 0),
    Direction.SOUTH: (0, 1),
    Direction.WEST: (-1, 0),
    Direction.NORTHEAST: (1, -1),
    Direction.SOUTHEAST: (1, 1),
    Direction.SOUTHWEST: (-1, 1),
    Direction.NORTHWEST: (-1, -1),
}


def direction_towards(origin: Position, target: Position) -> Direction:
    """Return the 8-way direction that best points from *origin* to *target*."""
    dx = (target.x > origin.x) - (target.x < origin.x)
    dy = (target.y > origin.y) - (target.y < origin.y)
    for direction, vec in DIRECTION_VECTORS.items():
        if vec == (dx, dy):
            return Direction(direction)
    return Direction.SOUTH


# ---------------------------------------------------------------------------
# Cooldown estimator state
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class CooldownEstimate:
    """EWMA mean/variance of a creature's attack interval."""

    mean: float | None = None
    variance: float = 0.0
    alpha: float = 0.25
    samples: int = 0

    @property
    def coefficient_of_variation(self) -> float:
        if self.mean is None or self.mean <= 0:
            return 0.0
        return math.sqrt(self.variance) / (self.mean + 1e-6)

    @property
    def variance_penalty(self) -> float:
        """Confidence penalty in [0, 0.45] derived from the CV."""
        return min(0.45, 0.28 * self.coefficient_of_variation)


# ---------------------------------------------------------------------------
# Behavior tracker records
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Sample:
    """One timestamped observation of a creature."""

    time: int
    position: Position
    direction: int
    health: int


@dataclass(slots=True)
class MonsterRecord:
    """Rolling behavior history of one visible hostile, keyed by creature id."""

    creature_id: int
    name: str
    tracking_start: int
    last_position: Position
    last_direction: int
    last_health: int = 100
    last_sample_time: int = 0
    last_update: int = 0

    samples: deque[Sample] = field(default_factory=deque)

    # --- Movement counters ---
    movement_samples: int = 0
    stationary_count: int = 0
    chase_count: int = 0
    facing_count: int = 0
    direction_changes: int = 0
    direction_history: deque[tuple[int, int]] = field(default_factory=lambda: deque(maxlen=30))
    turn_frequency: float = 0.0

    # --- Speed & walking ---
    avg_speed: float = 0.0          # tiles/second from observed movement
    reported_speed: float = 0.0     # host speed units, smoothed
    base_speed: float = 0.0
    walk_samples: deque[bool] = field(default_factory=lambda: deque(maxlen=50))
    walking_ratio: float = 0.0
    last_telemetry: int = 0

    # --- Health ---
    health_samples: deque[tuple[int, int]] = field(default_factory=lambda: deque(maxlen=30))
    health_change_rate: float = 0.0  # percent per second, negative when hurt
    last_health_time: int = 0
    engagement_start: int = 0

    # --- Distance to player ---
    distance_samples: deque[int] = field(default_factory=lambda: deque(maxlen=30))
    avg_distance: float = 0.0
    preferred_distance: int | None = None

    # --- Combat ---
    wave_count: int = 0
    missile_count: int = 0
    hit_count: int = 0
    total_damage: float = 0.0
    last_attack_time: int = 0
    last_wave_time: int = 0
    damage_samples: deque[tuple[int, float]] = field(default_factory=lambda: deque(maxlen=100))

    cooldown: CooldownEstimate = field(default_factory=CooldownEstimate)
    confidence: float = 0.1

    @property
    def stationary_ratio(self) -> float:
        return self.stationary_count / max(1, self.movement_samples)

    @property
    def chase_ratio(self) -> float:
        return self.chase_count / max(1, self.movement_samples - self.stationary_count)

    @property
    def facing_ratio(self) -> float:
        return self.facing_count / max(1, self.movement_samples)

    def last_hostile_action(self) -> int:
        """Most recent wave or attack timestamp, 0 if none seen."""
        return max(self.last_wave_time, self.last_attack_time)


@dataclass(slots=True)
class TypeStats:
    """Aggregate statistics per creature type, folded in on untrack."""

    encounters: int = 0
    avg_speed: float = 0.0
    avg_dps: float = 0.0
    total_damage: float = 0.0
    wave_count: int = 0
    kills: int = 0
    avg_kill_time: float = 0.0
    last_seen: int = 0

    @property
    def avg_damage_per_encounter(self) -> float:
        return self.total_damage / self.encounters if self.encounters else 0.0


# ---------------------------------------------------------------------------
# Predictions
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class WavePrediction:
    """Outcome of ``Predictor.predict_wave_attack``."""

    is_imminent: bool
    confidence: float
    time_to_attack: float


@dataclass(slots=True)
class PredictionEntry:
    """A queued expectation that a creature attacks at ``predicted_time``."""

    creature_id: int
    name: str
    predicted_time: int
    confidence: float
    reason: str
    registered_at: int


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class ClassificationResult:
    """Behavioral archetype of a creature type."""

    name: str
    is_ranged: bool = False
    is_melee: bool = False
    is_wave_attacker: bool = False
    is_aoe: bool = False
    is_aggressive: bool = False
    is_passive: bool = False
    is_fast: bool = False
    is_slow: bool = False
    movement_pattern: MovementPattern = MovementPattern.CHASE
    preferred_distance: int = 1
    attack_cooldown: float | None = None
    estimated_danger: float = 1.0
    confidence: float = 0.0
    sample_count: int = 0
    updated_at: int = 0
    scores: dict[str, float] = field(default_factory=dict)
