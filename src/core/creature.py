"""Capability interface between the core and host creature handles.

The core never calls host methods directly. ``CreatureAdapter`` wraps a
host handle and turns every access into an ``Access`` result: a missing
method, a raised exception or a ``None`` value all become a failure with a
reason string. Callers branch on ``.ok`` or use ``.unwrap_or(default)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Generic, Iterable, Protocol, TypeVar

from src.core.models import Position

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Access(Generic[T]):
    """Result of a guarded host access."""

    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        return self.value if self.error is None else default

    @classmethod
    def success(cls, value: T) -> Access[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> Access[T]:
        return cls(error=error)


# ---------------------------------------------------------------------------
# Host-side contracts
# ---------------------------------------------------------------------------

class HostCreature(Protocol):
    """Methods a host creature handle is expected to expose.

    Any of them may be missing or may raise; the adapter copes.
    """

    def get_id(self) -> int: ...
    def get_name(self) -> str: ...
    def get_position(self) -> Any: ...
    def get_direction(self) -> int: ...
    def get_health_percent(self) -> int: ...
    def get_speed(self) -> float: ...
    def get_base_speed(self) -> float: ...
    def is_dead(self) -> bool: ...
    def is_removed(self) -> bool: ...
    def is_walking(self) -> bool: ...


class HostWorld(Protocol):
    """What the host exposes about the controlled actor and its surroundings."""

    def player_position(self) -> Any: ...
    def creatures_in_range(self, center: Any, radius: int) -> Iterable[HostCreature]: ...
    def find_creature(self, creature_id: int) -> HostCreature | None: ...


def to_position(raw: Any) -> Position | None:
    if raw is None:
        return None
    if isinstance(raw, Position):
        return raw
    if isinstance(raw, (tuple, list)):
        if len(raw) == 2:
            return Position(int(raw[0]), int(raw[1]), 0)
        return Position(int(raw[0]), int(raw[1]), int(raw[2]))
    return Position(int(raw.x), int(raw.y), int(getattr(raw, "z", 0)))


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------

class CreatureAdapter:
    """Guarded view of one host creature handle."""

    __slots__ = ("_handle",)

    def __init__(self, handle: Any) -> None:
        self._handle = handle

    @property
    def handle(self) -> Any:
        return self._handle

    def _call(self, method: str) -> Access[Any]:
        fn = getattr(self._handle, method, None)
        if fn is None:
            return Access.failure(f"missing:{method}")
        try:
            value = fn()
        except Exception as exc:  # host handle went invalid mid-call
            logger.debug("Host call %s failed: %s", method, exc)
            return Access.failure(f"raised:{method}")
        if value is None:
            return Access.failure(f"none:{method}")
        return Access.success(value)

    def id(self) -> Access[int]:
        return self._call("get_id")

    def name(self) -> Access[str]:
        return self._call("get_name")

    def position(self) -> Access[Position]:
        raw = self._call("get_position")
        if not raw.ok:
            return raw
        try:
            return Access.success(to_position(raw.value))
        except (AttributeError, TypeError, ValueError):
            return Access.failure("bad:position")

    def direction(self) -> Access[int]:
        return self._call("get_direction")

    def health_percent(self) -> Access[int]:
        return self._call("get_health_percent")

    def speed(self) -> Access[float]:
        return self._call("get_speed")

    def base_speed(self) -> Access[float]:
        return self._call("get_base_speed")

    def is_walking(self) -> bool:
        return bool(self._call("is_walking").unwrap_or(False))

    def is_alive(self) -> bool:
        """True only if the handle positively reports neither dead nor removed."""
        dead = self._call("is_dead")
        if not dead.ok or dead.value:
            return False
        removed = self._call("is_removed")
        if removed.ok and removed.value:
            return False
        return self.id().ok

    def __repr__(self) -> str:
        return f"CreatureAdapter({self.id().unwrap_or('?')}, {self.name().unwrap_or('?')})"


class HostGateway:
    """Guarded view of the host world: player position and nearby hostiles."""

    __slots__ = ("_world",)

    def __init__(self, world: HostWorld) -> None:
        self._world = world

    def player_position(self) -> Access[Position]:
        fn = getattr(self._world, "player_position", None)
        if fn is None:
            return Access.failure("missing:player_position")
        try:
            pos = to_position(fn())
        except Exception as exc:
            logger.debug("player_position failed: %s", exc)
            return Access.failure("raised:player_position")
        if pos is None:
            return Access.failure("none:player_position")
        return Access.success(pos)

    def hostiles_near(self, radius: int) -> list[CreatureAdapter]:
        """Alive hostiles on the player's floor within Chebyshev *radius*."""
        player = self.player_position()
        if not player.ok:
            return []
        try:
            handles = list(self._world.creatures_in_range(player.value, radius))
        except Exception as exc:
            logger.debug("creatures_in_range failed: %s", exc)
            return []
        result: list[CreatureAdapter] = []
        for handle in handles:
            creature = CreatureAdapter(handle)
            if not creature.is_alive():
                continue
            pos = creature.position()
            if not pos.ok or not pos.value.same_floor(player.value):
                continue
            if pos.value.chebyshev(player.value) <= radius:
                result.append(creature)
        return result

    def creature(self, creature_id: int) -> CreatureAdapter | None:
        try:
            handle = self._world.find_creature(creature_id)
        except Exception as exc:
            logger.debug("find_creature(%d) failed: %s", creature_id, exc)
            return None
        return CreatureAdapter(handle) if handle is not None else None
