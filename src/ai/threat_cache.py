"""Real-time threat tracking.

Direction changes register short-lived ``PredictionEntry`` items in a
time-ordered queue. A TTL-cached ``ThreatSnapshot`` aggregates "who is
about to attack" so avoidance logic can poll it every frame.
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable

from src.ai.predictor import is_facing_position
from src.core.enums import EventType
from src.core.models import NO_ATTACK_MS, PredictionEntry

if TYPE_CHECKING:
    from src.ai.feedback import CombatFeedback
    from src.ai.predictor import Predictor
    from src.ai.tracker import BehaviorTracker
    from src.config import CombatConfig
    from src.core.creature import Access, CreatureAdapter
    from src.core.models import Position
    from src.engine.events import EventBus

logger = logging.getLogger(__name__)

_FIRE_WINDOW_MS = 300
_MISS_AFTER_MS = -1000
_EMIT_CONFIDENCE = 0.6
_FACING_GRACE_MS = 500


@dataclass(slots=True)
class DirectionState:
    """Last known facing of one creature."""

    direction: int
    last_change: int
    last_seen: int
    consecutive_changes: int = 0
    turn_rate: float = 0.0
    facing_player_since: int | None = None


@dataclass(frozen=True, slots=True)
class ThreatSnapshot:
    """Aggregate returned by ``get_immediate_threat``."""

    immediate_threat: bool = False
    total_threat: float = 0.0
    threat_count: int = 0
    highest_confidence: float = 0.0
    computed_at: int = 0


class ThreatCache:
    """Direction-change driven prediction queue plus the polled threat cache."""

    def __init__(
        self,
        config: CombatConfig,
        tracker: BehaviorTracker,
        predictor: Predictor,
        clock: Callable[[], int],
        player_position: Callable[[], Access[Position]],
        bus: EventBus | None = None,
    ) -> None:
        self._config = config
        self._tracker = tracker
        self._predictor = predictor
        self._clock = clock
        self._player_position = player_position
        self._bus = bus
        self.ttl_ms = config.threat_cache_ttl_ms
        self.directions: dict[int, DirectionState] = {}
        self.queue: list[PredictionEntry] = []
        self._cache: ThreatSnapshot | None = None
        self.metrics = {
            "events_processed": 0,
            "threats_registered": 0,
            "predictions_fired": 0,
            "predictions_missed": 0,
            "cache_hits": 0,
        }

    # ------------------------------------------------------------------
    # Timing helpers
    # ------------------------------------------------------------------

    def time_to_attack(self, creature_id: int, name: str, now: int) -> float:
        record = self._tracker.get(creature_id)
        cooldown = self._predictor.cooldown_for(creature_id, name)
        last = record.last_hostile_action() if record is not None else 0
        elapsed = now - last if last > 0 else NO_ATTACK_MS
        return max(0.0, cooldown - elapsed)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on_direction_change(self, creature: CreatureAdapter, direction: int) -> PredictionEntry | None:
        """Update turn statistics; register a threat if the turn faces the player."""
        cid = creature.id()
        if not cid.ok:
            return None
        now = self._clock()
        self.metrics["events_processed"] += 1

        state = self.directions.get(cid.value)
        if state is None:
            state = DirectionState(direction=direction, last_change=now, last_seen=now)
            self.directions[cid.value] = state
        elif direction != state.direction:
            dt = now - state.last_change
            if 0 < dt < 2000:
                state.turn_rate = state.turn_rate * 0.7 + (1000.0 / dt) * 0.3
                state.consecutive_changes += 1
            else:
                state.turn_rate = 0.0
                state.consecutive_changes = 1
            state.direction = direction
            state.last_change = now
        state.last_seen = now

        pos = creature.position()
        player = self._player_position()
        if not pos.ok or not player.ok or not is_facing_position(pos.value, direction, player.value):
            state.facing_player_since = None
            return None
        if state.facing_player_since is None:
            state.facing_player_since = now

        if state.consecutive_changes >= 2:
            confidence = min(0.95, 0.75 + state.turn_rate * 0.05)
            reason = "direction_lock"
        else:
            confidence = 0.50
            reason = "facing"
        return self.register_immediate_threat(creature, confidence, reason)

    def register_immediate_threat(
        self,
        creature: CreatureAdapter,
        confidence: float,
        reason: str,
    ) -> PredictionEntry | None:
        cid = creature.id()
        if not cid.ok:
            return None
        now = self._clock()
        name = creature.name().unwrap_or("unknown")
        tta = self.time_to_attack(cid.value, name, now)
        if tta < self._config.immediate_threat_ms:
            confidence = min(0.95, confidence + 0.25)

        entry = PredictionEntry(
            creature_id=cid.value,
            name=name,
            predicted_time=int(now + tta),
            confidence=confidence,
            reason=reason,
            registered_at=now,
        )
        self.queue = [e for e in self.queue if e.creature_id != cid.value]
        keys = [e.predicted_time for e in self.queue]
        self.queue.insert(bisect.bisect_right(keys, entry.predicted_time), entry)
        del self.queue[self._config.prediction_queue_cap:]
        self.metrics["threats_registered"] += 1
        self._cache = None

        if confidence >= _EMIT_CONFIDENCE and self._bus is not None:
            self._bus.emit(EventType.THREAT_DETECTED, entry)
        logger.debug("Threat %s #%d in %.0fms conf=%.2f (%s)", name, cid.value, tta, confidence, reason)
        return entry

    def forget(self, creature_id: int) -> None:
        self.directions.pop(creature_id, None)
        self.queue = [e for e in self.queue if e.creature_id != creature_id]
        self._cache = None

    # ------------------------------------------------------------------
    # Periodic work
    # ------------------------------------------------------------------

    def process_queue(self, feedback: CombatFeedback | None = None) -> list[PredictionEntry]:
        """Fire entries about to land; drop those long overdue as misses."""
        now = self._clock()
        fired: list[PredictionEntry] = []
        kept: list[PredictionEntry] = []
        for entry in self.queue:
            tta = entry.predicted_time - now
            if 0 < tta < _FIRE_WINDOW_MS and entry.confidence >= _EMIT_CONFIDENCE:
                fired.append(entry)
                self.metrics["predictions_fired"] += 1
                if self._bus is not None:
                    self._bus.emit(EventType.ATTACK_IMMINENT, entry)
                if feedback is not None:
                    feedback.record_prediction(entry.creature_id, entry.name, entry.predicted_time, entry.confidence)
            elif tta < _MISS_AFTER_MS:
                self.metrics["predictions_missed"] += 1
            else:
                kept.append(entry)
        self.queue = kept
        return fired

    def cleanup(self, now: int | None = None) -> None:
        now = self._clock() if now is None else now
        stale = [cid for cid, st in self.directions.items() if now - st.last_seen > self._config.direction_stale_ms]
        for cid in stale:
            del self.directions[cid]
        max_age = self._config.prediction_max_age_ms
        self.queue = [e for e in self.queue if now - e.registered_at <= max_age]

    def refresh(self, hostiles: Iterable[CreatureAdapter]) -> ThreatSnapshot:
        """Recompute the cache from live hostiles facing the player."""
        now = self._clock()
        player = self._player_position()
        if not player.ok:
            self._cache = ThreatSnapshot(computed_at=now)
            return self._cache

        total = 0.0
        count = 0
        highest = 0.0
        immediate = False
        for creature in hostiles:
            pos = creature.position()
            direction = creature.direction()
            cid = creature.id()
            if not pos.ok or not direction.ok or not cid.ok:
                continue
            if not pos.value.same_floor(player.value):
                continue
            if pos.value.chebyshev(player.value) > self._config.threat_radius:
                continue
            if not is_facing_position(pos.value, direction.value, player.value):
                continue
            tta = self.time_to_attack(cid.value, creature.name().unwrap_or(""), now)
            if tta < self._config.immediate_threat_ms:
                total += 1.5
                immediate = True
            else:
                total += 0.5
            count += 1
            highest = max(highest, self._predictor.predict_wave_attack(creature).confidence)

        self._cache = ThreatSnapshot(immediate, total, count, highest, now)
        return self._cache

    def get_immediate_threat(self) -> ThreatSnapshot:
        """Cached aggregate; rebuilt from the queue and facing states when stale."""
        now = self._clock()
        if self._cache is not None and now - self._cache.computed_at < self.ttl_ms:
            self.metrics["cache_hits"] += 1
            return self._cache

        total = 0.0
        count = 0
        highest = 0.0
        immediate = False
        counted: set[int] = set()
        for entry in self.queue:
            tta = entry.predicted_time - now
            if _MISS_AFTER_MS < tta <= self._config.immediate_threat_ms:
                immediate = True
                total += entry.confidence
                count += 1
                highest = max(highest, entry.confidence)
                counted.add(entry.creature_id)

        for cid, state in self.directions.items():
            if cid in counted or state.facing_player_since is None:
                continue
            if now - state.facing_player_since <= _FACING_GRACE_MS:
                continue
            record = self._tracker.get(cid)
            if record is None:
                continue
            cooldown = self._predictor.cooldown_for(cid, record.name)
            last = record.last_hostile_action()
            elapsed = now - last if last > 0 else NO_ATTACK_MS
            if elapsed >= 0.8 * cooldown:
                immediate = True
                total += 0.7
                count += 1
                highest = max(highest, 0.7)

        self._cache = ThreatSnapshot(immediate, total, count, highest, now)
        return self._cache
