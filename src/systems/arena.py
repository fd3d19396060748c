"""Arena — a deterministic simulated host for the combat core.

A small grid holding the player and a population of monsters. Monsters
expose the host accessor methods the core adapts (``get_id``,
``get_position`` ...). Every ``step()`` advances arena time, moves and
turns monsters by archetype, fires their attacks, lets the player attack
the core's chosen target, and publishes the matching host events.

All randomness comes from ``SlotHasher`` keyed by (monster id, step), so
a seed fully determines a run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from src.ai.predictor import is_facing_position, is_position_in_wave_path
from src.core.enums import Direction, EventType
from src.core.models import DIRECTION_VECTORS, Position, direction_towards
from src.systems.slot_hash import DOMAIN_ARENA, SlotHasher
from src.systems.spatial_hash import SpatialHash

if TYPE_CHECKING:
    from src.ai.scenario import TargetChoice
    from src.config import CombatConfig
    from src.engine.combat_core import CombatCore

logger = logging.getLogger(__name__)

_START_TIME_MS = 1_000
_PLAYER_ATTACK_MS = 1000
_PLAYER_RANGE = 6
_RESPAWN_MS = 3000


@dataclass(frozen=True, slots=True)
class Archetype:
    """Static stats shared by every monster of one kind."""

    name: str
    behavior: str            # "chaser", "kiter" or "caster"
    max_health: int
    speed: float             # host speed units, also tiles per minute
    attack_cooldown_ms: int
    damage: int
    attack_range: int = 1
    wave: bool = False
    missile: bool = False
    preferred_distance: int = 1


ARCHETYPES: tuple[Archetype, ...] = (
    Archetype("Rotworm", "chaser", 260, 180, 2000, 18),
    Archetype("Demon", "chaser", 600, 260, 1800, 40, attack_range=4, wave=True),
    Archetype("Hunter", "kiter", 220, 270, 1500, 25, attack_range=5, missile=True, preferred_distance=4),
    Archetype("Dragon", "caster", 800, 110, 2200, 55, attack_range=5, wave=True),
)


@dataclass(slots=True)
class ArenaMonster:
    """Host-side monster handle."""

    creature_id: int
    archetype: Archetype
    position: Position
    direction: int = Direction.SOUTH
    health: int = 0
    last_attack: int = 0
    last_move: int = 0
    walking: bool = False
    dead: bool = False
    removed: bool = False

    def __post_init__(self) -> None:
        if self.health <= 0:
            self.health = self.archetype.max_health

    # -- host accessor surface --

    def get_id(self) -> int:
        return self.creature_id

    def get_name(self) -> str:
        return self.archetype.name

    def get_position(self) -> Position:
        return self.position

    def get_direction(self) -> int:
        return int(self.direction)

    def get_health_percent(self) -> int:
        return max(0, round(self.health * 100 / self.archetype.max_health))

    def get_speed(self) -> float:
        return self.archetype.speed

    def get_base_speed(self) -> float:
        return self.archetype.speed

    def is_dead(self) -> bool:
        return self.dead

    def is_removed(self) -> bool:
        return self.removed

    def is_walking(self) -> bool:
        return self.walking


@dataclass(slots=True)
class ArenaStats:
    steps: int = 0
    spawned: int = 0
    kills: int = 0
    damage_dealt: int = 0
    damage_taken: int = 0
    dodges: int = 0
    player_deaths: int = 0
    kills_by_name: dict[str, int] = field(default_factory=dict)


class Arena:
    """Simulated world implementing the host contract the core consumes."""

    def __init__(self, config: CombatConfig, monsters: int | None = None, seed: int | None = None) -> None:
        self._config = config
        self._hasher = SlotHasher(config.arena_seed if seed is None else seed)
        self._spatial = SpatialHash(cell_size=8)
        self.width = config.arena_width
        self.height = config.arena_height
        self.population = config.arena_monsters if monsters is None else monsters
        self.time_ms = _START_TIME_MS
        self.player = Position(self.width // 2, self.height // 2, 0)
        self.player_health = 100
        self.monsters: dict[int, ArenaMonster] = {}
        self.stats = ArenaStats()
        self.core: CombatCore | None = None
        self.last_choice: TargetChoice | None = None
        self._next_id = 1000
        self._last_spawn = 0
        self._last_player_attack = 0
        for _ in range(self.population):
            self.spawn()

    # ------------------------------------------------------------------
    # HostWorld contract
    # ------------------------------------------------------------------

    def clock(self) -> int:
        return self.time_ms

    def player_position(self) -> Position:
        return self.player

    def creatures_in_range(self, center: Position, radius: int) -> list[ArenaMonster]:
        found = []
        for cid in sorted(self._spatial.query_radius(center, radius)):
            monster = self.monsters.get(cid)
            if monster is not None and monster.position.chebyshev(center) <= radius:
                found.append(monster)
        return found

    def find_creature(self, creature_id: int) -> ArenaMonster | None:
        return self.monsters.get(creature_id)

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    def _rand(self, key: int, salt: int) -> float:
        return self._hasher.next_float(DOMAIN_ARENA, key, self.stats.steps * 16 + salt)

    def spawn(self, archetype: Archetype | None = None, position: Position | None = None) -> ArenaMonster:
        cid = self._next_id
        self._next_id += 1
        if archetype is None:
            archetype = ARCHETYPES[self._hasher.next_int(DOMAIN_ARENA, cid, 0, 0, len(ARCHETYPES) - 1)]
        if position is None:
            position = self._spawn_position(cid)
        monster = ArenaMonster(cid, archetype, position)
        monster.direction = direction_towards(position, self.player)
        self.monsters[cid] = monster
        self._spatial.insert(cid, position)
        self.stats.spawned += 1
        if self.core is not None:
            self.core.bus.emit(EventType.CREATURE_APPEARED, monster)
        return monster

    def _spawn_position(self, cid: int) -> Position:
        for attempt in range(20):
            dx = self._hasher.next_int(DOMAIN_ARENA, cid, 10 + attempt * 2, -8, 8)
            dy = self._hasher.next_int(DOMAIN_ARENA, cid, 11 + attempt * 2, -8, 8)
            if max(abs(dx), abs(dy)) < 3:
                continue
            pos = Position(self.player.x + dx, self.player.y + dy, self.player.z)
            if self._walkable(pos):
                return pos
        return Position(self.player.x + 3, self.player.y, self.player.z)

    def _walkable(self, pos: Position) -> bool:
        if not (0 <= pos.x < self.width and 0 <= pos.y < self.height):
            return False
        if pos == self.player:
            return False
        return all(m.position != pos for m in self.monsters.values() if not m.removed)

    def alive(self) -> list[ArenaMonster]:
        return [m for m in self.monsters.values() if not m.dead and not m.removed]

    def attach(self, core: CombatCore) -> None:
        """Connect *core* and announce every monster already present."""
        self.core = core
        for monster in self.alive():
            core.bus.emit(EventType.CREATURE_APPEARED, monster)

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def step(self) -> None:
        """Advance the arena by one step and let the core react."""
        self.time_ms += self._config.arena_step_ms
        self.stats.steps += 1
        self._reap()

        for monster in sorted(self.alive(), key=lambda m: m.creature_id):
            self._move(monster)
            self._turn(monster)
            self._attack(monster)

        if self.core is not None:
            self._dodge()
            self._player_attack()
            self.core.tick(self.time_ms)

        if len(self.alive()) < self.population and self.time_ms - self._last_spawn >= _RESPAWN_MS:
            self._last_spawn = self.time_ms
            self.spawn()

    def run(self, steps: int) -> ArenaStats:
        for _ in range(steps):
            self.step()
        return self.stats

    def _publish(self, event: EventType, *args) -> None:
        if self.core is not None:
            self.core.bus.emit(event, *args)

    def _reap(self) -> None:
        for cid in [cid for cid, m in self.monsters.items() if m.dead]:
            monster = self.monsters.pop(cid)
            monster.removed = True
            self._spatial.remove(cid, monster.position)

    def _move(self, monster: ArenaMonster) -> None:
        arch = monster.archetype
        monster.walking = False
        if arch.behavior == "caster":
            return
        step_ms = int(60_000 / max(arch.speed, 1))
        if self.time_ms - monster.last_move < step_ms:
            return

        dist = monster.position.chebyshev(self.player)
        towards = direction_towards(monster.position, self.player)
        if self._rand(monster.creature_id, 1) < 0.1:
            heading = Direction(self._hasher.next_int(DOMAIN_ARENA, monster.creature_id, self.stats.steps, 0, 7))
        elif dist > arch.preferred_distance:
            heading = towards
        elif dist < arch.preferred_distance:
            heading = towards.opposite()
        else:
            return

        dx, dy = DIRECTION_VECTORS[heading]
        target = Position(monster.position.x + dx, monster.position.y + dy, monster.position.z)
        if not self._walkable(target):
            return
        self._spatial.move(monster.creature_id, monster.position, target)
        monster.position = target
        monster.last_move = self.time_ms
        monster.walking = True
        self._publish(EventType.CREATURE_MOVED, monster)

    def _turn(self, monster: ArenaMonster) -> None:
        desired = direction_towards(monster.position, self.player)
        if monster.archetype.behavior == "caster" and self._rand(monster.creature_id, 2) < 0.15:
            desired = Direction(self._hasher.next_int(DOMAIN_ARENA, monster.creature_id, self.stats.steps + 7, 0, 7))
        if desired == monster.direction:
            return
        monster.direction = desired
        self._publish(EventType.CREATURE_TURNED, monster, int(desired))

    def _attack(self, monster: ArenaMonster) -> None:
        arch = monster.archetype
        if self.time_ms - monster.last_attack < arch.attack_cooldown_ms:
            return
        pos = monster.position
        dist = pos.chebyshev(self.player)
        if arch.wave:
            hits = is_facing_position(pos, monster.direction, self.player) and is_position_in_wave_path(
                self.player, pos, monster.direction, arch.attack_range, 1,
            )
        else:
            hits = dist <= arch.attack_range
        if not hits:
            return

        monster.last_attack = self.time_ms
        jitter = self._hasher.next_int(DOMAIN_ARENA, monster.creature_id, self.stats.steps + 3, -5, 5)
        damage = max(1, arch.damage + jitter)
        if arch.missile:
            self._publish(EventType.MISSILE_OBSERVED, monster.creature_id)
        self.player_health -= damage
        self.stats.damage_taken += damage
        self._publish(EventType.DAMAGE_RECEIVED, damage)
        if self.player_health <= 0:
            self.stats.player_deaths += 1
            self.player_health = 100
            logger.debug("Player went down at %dms; reset to full health", self.time_ms)

    def _dodge(self) -> None:
        dangerous, _ = self.core.is_position_dangerous(self.player)
        if not dangerous:
            return
        for heading in Direction:
            dx, dy = DIRECTION_VECTORS[heading]
            candidate = Position(self.player.x + dx, self.player.y + dy, self.player.z)
            if not self._walkable(candidate):
                continue
            if not self.core.is_position_dangerous(candidate)[0]:
                self.player = candidate
                self.stats.dodges += 1
                return

    def _player_attack(self) -> None:
        if self.time_ms - self._last_player_attack < _PLAYER_ATTACK_MS:
            return
        choice = self.core.get_optimal_target()
        self.last_choice = choice
        if choice is None:
            return
        monster = self.monsters.get(choice.creature_id)
        if monster is None or monster.dead:
            return
        if monster.position.chebyshev(self.player) > _PLAYER_RANGE:
            self._approach(monster.position)
            return
        self._last_player_attack = self.time_ms
        self.core.on_attack_command(monster.creature_id)

        damage = 60 + self._hasher.next_int(DOMAIN_ARENA, monster.creature_id, self.stats.steps + 5, 0, 40)
        monster.health -= damage
        self.stats.damage_dealt += damage
        if monster.health > 0:
            self._publish(EventType.CREATURE_HEALTH_CHANGED, monster)
            return

        monster.health = 0
        monster.dead = True
        self.stats.kills += 1
        name = monster.archetype.name
        self.stats.kills_by_name[name] = self.stats.kills_by_name.get(name, 0) + 1
        logger.debug("%s #%d killed at %dms", name, monster.creature_id, self.time_ms)
        self._publish(EventType.CREATURE_DIED, monster.creature_id)

    def _approach(self, target: Position) -> None:
        dx, dy = DIRECTION_VECTORS[direction_towards(self.player, target)]
        candidate = Position(self.player.x + dx, self.player.y + dy, self.player.z)
        if self._walkable(candidate):
            self.player = candidate

    def summary(self) -> dict:
        return {
            "time_ms": self.time_ms,
            "steps": self.stats.steps,
            "alive": len(self.alive()),
            "spawned": self.stats.spawned,
            "kills": self.stats.kills,
            "kills_by_name": dict(self.stats.kills_by_name),
            "damage_dealt": self.stats.damage_dealt,
            "damage_taken": self.stats.damage_taken,
            "dodges": self.stats.dodges,
            "player_deaths": self.stats.player_deaths,
            "player": {"x": self.player.x, "y": self.player.y, "z": self.player.z, "health": self.player_health},
        }
