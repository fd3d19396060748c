"""Fake host objects for unit tests.

Usage:
    clock = FakeClock()
    world = FakeWorld(player=(10, 10))
    wolf = world.add(1, "Wolf", (12, 10), direction=Direction.WEST)
    core = CombatCore(world, CombatConfig(), clock=clock)
    clock.advance(500)
"""

from __future__ import annotations

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from src.core.creature import CreatureAdapter, HostGateway
from src.core.enums import Direction
from src.core.models import Position


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = 10_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class FakeCreature:
    """Host creature handle with every accessor the adapter uses."""

    def __init__(
        self,
        creature_id: int,
        name: str,
        pos: tuple[int, int] | tuple[int, int, int],
        direction: int = Direction.SOUTH,
        health: int = 100,
        speed: float = 200.0,
        walking: bool = False,
    ) -> None:
        self.creature_id = creature_id
        self.name = name
        self.position = Position(*pos)
        self.direction = int(direction)
        self.health = health
        self.speed = speed
        self.walking = walking
        self.dead = False
        self.removed = False

    def get_id(self) -> int:
        return self.creature_id

    def get_name(self) -> str:
        return self.name

    def get_position(self) -> Position:
        return self.position

    def get_direction(self) -> int:
        return self.direction

    def get_health_percent(self) -> int:
        return self.health

    def get_speed(self) -> float:
        return self.speed

    def get_base_speed(self) -> float:
        return self.speed

    def is_dead(self) -> bool:
        return self.dead

    def is_removed(self) -> bool:
        return self.removed

    def is_walking(self) -> bool:
        return self.walking

    def move_to(self, x: int, y: int) -> None:
        self.position = Position(x, y, self.position.z)


class FakeWorld:
    """Host world holding a player position and a dict of FakeCreatures."""

    def __init__(self, player: tuple[int, int] | tuple[int, int, int] = (10, 10)) -> None:
        self.player = Position(*player)
        self.creatures: dict[int, FakeCreature] = {}

    def add(self, creature_id: int, name: str, pos, **kwargs) -> FakeCreature:
        creature = FakeCreature(creature_id, name, pos, **kwargs)
        self.creatures[creature_id] = creature
        return creature

    def kill(self, creature_id: int) -> None:
        self.creatures[creature_id].dead = True

    def remove(self, creature_id: int) -> None:
        creature = self.creatures.pop(creature_id)
        creature.removed = True

    def player_position(self) -> Position:
        return self.player

    def creatures_in_range(self, center: Position, radius: int) -> list[FakeCreature]:
        return [
            c for c in self.creatures.values()
            if c.position.z == center.z and c.position.chebyshev(center) <= radius
        ]

    def find_creature(self, creature_id: int) -> FakeCreature | None:
        return self.creatures.get(creature_id)


def adapt(creature: FakeCreature) -> CreatureAdapter:
    return CreatureAdapter(creature)


def gateway(world: FakeWorld) -> HostGateway:
    return HostGateway(world)
