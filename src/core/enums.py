"""Enumerations used throughout the combat core."""

from __future__ import annotations

from enum import Enum, IntEnum, unique


@unique
class Direction(IntEnum):
    """Eight-way facing directions as reported by the host."""

    NORTH = 0
    EAST = 1
    SOUTH = 2
    WEST = 3
    NORTHEAST = 4
    SOUTHEAST = 5
    SOUTHWEST = 6
    NORTHWEST = 7

    def opposite(self) -> Direction:
        return _OPPOSITES[self]


_OPPOSITES = {
    Direction.NORTH: Direction.SOUTH,
    Direction.SOUTH: Direction.NORTH,
    Direction.EAST: Direction.WEST,
    Direction.WEST: Direction.EAST,
    Direction.NORTHEAST: Direction.SOUTHWEST,
    Direction.SOUTHWEST: Direction.NORTHEAST,
    Direction.SOUTHEAST: Direction.NORTHWEST,
    Direction.NORTHWEST: Direction.SOUTHEAST,
}


@unique
class DangerLevel(IntEnum):
    """Coarse danger of a creature type or a tile."""

    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


@unique
class MovementPattern(IntEnum):
    """How a creature type moves relative to the player."""

    STATIC = 1
    CHASE = 2
    KITE = 3
    ERRATIC = 4
    PATROL = 5


@unique
class ScenarioType(IntEnum):
    """Encounter size, ordered by nearby hostile count."""

    IDLE = 0
    SINGLE = 1
    FEW = 2
    MODERATE = 3
    SWARM = 4
    OVERWHELMING = 5


@unique
class VolumeLevel(IntEnum):
    """Load level used to shed per-tick work."""

    LOW = 0
    NORMAL = 1
    HIGH = 2
    EXTREME = 3


@unique
class EventType(str, Enum):
    """Named events flowing through the EventBus."""

    # Delivered by the host
    CREATURE_APPEARED = "creature_appeared"
    CREATURE_DISAPPEARED = "creature_disappeared"
    CREATURE_MOVED = "creature_moved"
    CREATURE_TURNED = "creature_turned"
    CREATURE_HEALTH_CHANGED = "creature_health_changed"
    CREATURE_DIED = "creature_died"
    DAMAGE_RECEIVED = "damage_received"
    MISSILE_OBSERVED = "missile_observed"

    # Emitted by the core
    THREAT_DETECTED = "threat_detected"
    ATTACK_IMMINENT = "attack_imminent"
    SCENARIO_CHANGED = "scenario_changed"
    TARGET_SWITCHED = "target_switched"
    ENGAGEMENT_STARTED = "engagement_started"
    ENGAGEMENT_ENDED = "engagement_ended"
    DANGER_TUNED = "danger_tuned"
