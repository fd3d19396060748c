"""Spatial hashing for O(1) neighbor lookups on a multi-floor grid."""

from __future__ import annotations

from collections import defaultdict

from src.core.models import Position


class SpatialHash:
    """Grid-based spatial index mapping (cell, floor) keys to sets of creature IDs."""

    __slots__ = ("_cell_size", "_cells")

    def __init__(self, cell_size: int = 8) -> None:
        if cell_size <= 0:
            raise ValueError("cell_size must be positive")
        self._cell_size = cell_size
        self._cells: dict[tuple[int, int, int], set[int]] = defaultdict(set)

    def _key(self, pos: Position) -> tuple[int, int, int]:
        return pos.x // self._cell_size, pos.y // self._cell_size, pos.z

    def insert(self, creature_id: int, pos: Position) -> None:
        self._cells[self._key(pos)].add(creature_id)

    def remove(self, creature_id: int, pos: Position) -> None:
        key = self._key(pos)
        bucket = self._cells.get(key)
        if bucket is not None:
            bucket.discard(creature_id)
            if not bucket:
                del self._cells[key]

    def move(self, creature_id: int, old_pos: Position, new_pos: Position) -> None:
        if self._key(old_pos) != self._key(new_pos):
            self.remove(creature_id, old_pos)
            self.insert(creature_id, new_pos)

    def query_radius(self, pos: Position, radius: int) -> set[int]:
        """Return candidate IDs on *pos*'s floor in cells overlapping *radius*.

        Callers still filter by exact distance.
        """
        cx, cy, z = self._key(pos)
        r = (radius // self._cell_size) + 1
        result: set[int] = set()
        for dx in range(-r, r + 1):
            for dy in range(-r, r + 1):
                bucket = self._cells.get((cx + dx, cy + dy, z))
                if bucket:
                    result.update(bucket)
        return result

    def __len__(self) -> int:
        return sum(len(b) for b in self._cells.values())

    def clear(self) -> None:
        self._cells.clear()
