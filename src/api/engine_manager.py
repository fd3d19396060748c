"""EngineManager — singleton wrapper that runs the arena and combat core on a background thread.

The combat core is single-threaded: the engine thread steps the arena
while holding ``_lock`` and every API read takes the same lock, so handlers
never observe a half-finished step.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Callable, TypeVar

from src.engine.combat_core import CombatCore
from src.systems.arena import Arena
from src.utils.event_log import CombatEventLog

if TYPE_CHECKING:
    from src.ai.scenario import TargetChoice
    from src.config import CombatConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EngineManager:
    """Manages the arena simulation lifecycle on a background thread.

    Provides thread-safe access to:
      - the combat core (``read(fn)`` runs *fn* under the engine lock)
      - event log (lock-guarded ring buffer)
      - control commands (start / pause / resume / step / reset)
    """

    def __init__(self, config: CombatConfig) -> None:
        self._config = config
        self.config = config
        self._tick_rate: float = 0.05  # seconds between steps (20 sps default)

        # Simulation components (built in _build)
        self._arena: Arena | None = None
        self._core: CombatCore | None = None
        self._last_choice: TargetChoice | None = None

        self._lock = threading.RLock()
        self._event_log = CombatEventLog()

        # Control
        self._thread: threading.Thread | None = None
        self._running = threading.Event()
        self._paused = threading.Event()
        self._step_requested = threading.Event()
        self._stop_requested = threading.Event()

        self._build()

    # -- public properties --

    @property
    def running(self) -> bool:
        return self._running.is_set()

    @property
    def paused(self) -> bool:
        return self._paused.is_set()

    @property
    def tick_rate(self) -> float:
        return self._tick_rate

    @tick_rate.setter
    def tick_rate(self, value: float) -> None:
        self._tick_rate = max(0.01, min(value, 2.0))

    @property
    def event_log(self) -> CombatEventLog:
        return self._event_log

    @property
    def core(self) -> CombatCore:
        assert self._core is not None
        return self._core

    @property
    def arena(self) -> Arena:
        assert self._arena is not None
        return self._arena

    @property
    def last_choice(self) -> TargetChoice | None:
        return self._last_choice

    def read(self, fn: Callable[[CombatCore], T]) -> T:
        """Run *fn* against the core while the engine thread is held off."""
        with self._lock:
            return fn(self.core)

    def time_ms(self) -> int:
        with self._lock:
            return self.arena.time_ms

    # -- lifecycle --

    def start(self) -> None:
        if self._running.is_set():
            return
        self._stop_requested.clear()
        self._paused.clear()
        self._running.set()
        self._thread = threading.Thread(target=self._run_loop, name="engine-loop", daemon=True)
        self._thread.start()
        logger.info("EngineManager started (tick_rate=%.3fs)", self._tick_rate)

    def pause(self) -> None:
        self._paused.set()
        logger.info("EngineManager paused at %dms", self.time_ms())

    def resume(self) -> None:
        self._paused.clear()
        logger.info("EngineManager resumed at %dms", self.time_ms())

    def step(self) -> None:
        """Execute exactly one arena step (must be paused)."""
        if not self._paused.is_set():
            self.pause()
        self._step_requested.set()

    def advance(self, steps: int = 1) -> int:
        """Run *steps* arena steps synchronously on the calling thread."""
        for _ in range(steps):
            self._step_once()
        return self.time_ms()

    def stop(self) -> None:
        self._stop_requested.set()
        self._paused.clear()
        self._running.clear()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)
        logger.info("EngineManager stopped.")

    def reset(self) -> None:
        """Stop, rebuild, and leave ready to start."""
        self.stop()
        self._event_log.clear()
        self._build()
        logger.info("EngineManager reset.")

    # -- internals --

    def _build(self) -> None:
        """Construct the arena and the core from config."""
        with self._lock:
            if self._core is not None:
                self._core.shutdown()
            arena = Arena(self._config)
            core = CombatCore(arena, self._config, clock=arena.clock, event_log=self._event_log)
            arena.attach(core)
            core.start()
            self._arena = arena
            self._core = core
            self._last_choice = None

    def _step_once(self) -> None:
        with self._lock:
            self.arena.step()
            self._last_choice = self.arena.last_choice

    def _run_loop(self) -> None:
        """Background thread main loop."""
        logger.info("Engine thread started.")

        while not self._stop_requested.is_set():
            # Handle pause
            if self._paused.is_set() and not self._step_requested.is_set():
                time.sleep(0.01)
                continue

            single_step = self._step_requested.is_set()
            if single_step:
                self._step_requested.clear()

            self._step_once()

            # Rate limiting
            if not single_step:
                time.sleep(self._tick_rate)

        self._running.clear()
        logger.info("Engine thread exited.")
