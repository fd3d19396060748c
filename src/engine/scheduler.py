"""Tick-driven timer scheduler.

Nothing here sleeps or blocks: the host calls ``run_pending()`` from its
own loop and every due timer runs to completion. Each timer carries an
explicit ``next_eligible_ms``; recurring timers are re-armed at
``now + interval`` after they run (missed intervals are not replayed).
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TimerHandle:
    """A scheduled call. ``cancel()`` prevents any further runs."""

    timer_id: int
    name: str
    callback: Callable[[], object] = field(repr=False)
    next_eligible_ms: int
    interval_ms: int | None = None
    cancelled: bool = False
    runs: int = 0

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def recurring(self) -> bool:
        return self.interval_ms is not None


class Scheduler:
    """One-shot and fixed-interval timers against an injected clock."""

    __slots__ = ("_clock", "_timers", "_ids", "_errors")

    def __init__(self, clock: Callable[[], int]) -> None:
        self._clock = clock
        self._timers: list[TimerHandle] = []
        self._ids = itertools.count(1)
        self._errors = 0

    def call_later(self, delay_ms: int, callback: Callable[[], object], name: str = "") -> TimerHandle:
        if delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")
        handle = TimerHandle(
            timer_id=next(self._ids),
            name=name or getattr(callback, "__name__", "timer"),
            callback=callback,
            next_eligible_ms=self._clock() + delay_ms,
        )
        self._timers.append(handle)
        return handle

    def call_every(
        self,
        interval_ms: int,
        callback: Callable[[], object],
        name: str = "",
        initial_delay_ms: int | None = None,
    ) -> TimerHandle:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be > 0")
        delay = interval_ms if initial_delay_ms is None else initial_delay_ms
        handle = self.call_later(delay, callback, name)
        handle.interval_ms = interval_ms
        return handle

    def run_pending(self, now: int | None = None) -> int:
        """Run every timer due at *now*. Returns how many ran."""
        now = self._clock() if now is None else now
        due = [t for t in self._timers if not t.cancelled and t.next_eligible_ms <= now]
        due.sort(key=lambda t: (t.next_eligible_ms, t.timer_id))
        ran = 0
        for timer in due:
            if timer.cancelled:
                continue
            try:
                timer.callback()
            except Exception:
                self._errors += 1
                logger.exception("Timer %s failed", timer.name)
            timer.runs += 1
            ran += 1
            if timer.recurring:
                timer.next_eligible_ms = now + timer.interval_ms
            else:
                timer.cancelled = True
        self._timers = [t for t in self._timers if not t.cancelled]
        return ran

    def pending(self) -> list[TimerHandle]:
        return [t for t in self._timers if not t.cancelled]

    def next_due_ms(self) -> int | None:
        live = self.pending()
        return min(t.next_eligible_ms for t in live) if live else None

    def cancel_all(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()

    @property
    def error_count(self) -> int:
        return self._errors
