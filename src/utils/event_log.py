"""Thread-safe ring buffer for combat events exposed via the API."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CombatEvent:
    """A single notable combat event for the API event feed."""

    time_ms: int
    category: str
    message: str
    creature_ids: tuple[int, ...] = ()  # IDs of creatures involved in this event


class CombatEventLog:
    """Bounded event log. Writers append; readers snapshot a slice.

    The oldest events fall off once ``capacity`` is reached.
    Thread-safe via a simple lock — the engine thread writes and API
    handlers read copies.
    """

    __slots__ = ("_buffer", "_lock")

    def __init__(self, capacity: int = 1000) -> None:
        self._buffer: deque[CombatEvent] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, event: CombatEvent) -> None:
        with self._lock:
            self._buffer.append(event)

    def record(self, time_ms: int, category: str, message: str, *creature_ids: int) -> CombatEvent:
        event = CombatEvent(time_ms, category, message, tuple(creature_ids))
        self.append(event)
        return event

    def since(self, time_ms: int) -> list[CombatEvent]:
        """Return all events with time_ms >= *time_ms*."""
        with self._lock:
            return [e for e in self._buffer if e.time_ms >= time_ms]

    def latest(self, count: int = 50) -> list[CombatEvent]:
        """Return the *count* most recent events."""
        with self._lock:
            items = list(self._buffer)
        return items[-count:]

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()
