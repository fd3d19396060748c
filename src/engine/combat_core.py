"""CombatCore — wires every component and drives them from events and timers.

Two trigger sources, both single-threaded:
  1. Host events published on ``core.bus`` (creature lifecycle, movement,
     damage, missiles), each handled to completion.
  2. Scheduler timers run from ``tick()``: the main update pass, the
     auto-tune pass and the pattern decay pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from src.ai.attribution import DamageAttributor
from src.ai.auto_tuner import AutoTuner
from src.ai.classifier import BehaviorClassifier
from src.ai.cooldown import CooldownEstimator
from src.ai.feedback import CombatFeedback
from src.ai.predictor import Predictor, is_position_in_wave_path
from src.ai.priority import PriorityScorer
from src.ai.scenario import ScenarioManager
from src.ai.threat_cache import ThreatCache
from src.ai.tracker import BehaviorTracker
from src.ai.volume import VolumeAdaptation
from src.config import CombatConfig, now_ms
from src.core.creature import CreatureAdapter, HostGateway, to_position
from src.core.enums import EventType
from src.core.patterns import JsonFileStore, MemoryStore, PatternRepository
from src.engine.events import EventBus
from src.engine.scheduler import Scheduler
from src.systems.slot_hash import SlotHasher
from src.utils.event_log import CombatEventLog

if TYPE_CHECKING:
    from src.ai.auto_tuner import DangerSuggestion
    from src.ai.scenario import TargetChoice
    from src.ai.threat_cache import ThreatSnapshot
    from src.core.creature import HostWorld
    from src.core.patterns import KeyValueStore
    from src.engine.scheduler import TimerHandle

logger = logging.getLogger(__name__)

# Host event -> handler priority (higher runs first).
HANDLER_PRIORITIES: dict[EventType, int] = {
    EventType.CREATURE_APPEARED: 35,
    EventType.CREATURE_DISAPPEARED: 35,
    EventType.CREATURE_MOVED: 40,
    EventType.CREATURE_HEALTH_CHANGED: 30,
    EventType.DAMAGE_RECEIVED: 30,
    EventType.CREATURE_TURNED: 25,
    EventType.MISSILE_OBSERVED: 25,
    EventType.CREATURE_DIED: 25,
}

_DANGER_URGENCY_MS = 2000
_FACING_RECENT_MS = 2000
_DANGEROUS_THRESHOLD = 0.5


@dataclass(slots=True)
class SessionStats:
    start_time: int
    kills: int = 0
    total_kill_time: int = 0
    damage_received: float = 0.0
    updates: int = 0
    events_handled: int = 0

    @property
    def avg_kill_time(self) -> float:
        return self.total_kill_time / self.kills if self.kills else 0.0


def _default_store(config: CombatConfig) -> KeyValueStore:
    if config.pattern_store_path:
        return JsonFileStore(config.pattern_store_path)
    return MemoryStore()


def _adapt(creature: Any) -> CreatureAdapter:
    return creature if isinstance(creature, CreatureAdapter) else CreatureAdapter(creature)


class CombatCore:
    """Owns one instance of every component; the only public entry point.

    Usage::

        core = CombatCore(world, CombatConfig())
        core.start()
        core.bus.emit(EventType.CREATURE_MOVED, handle)   # from the host
        core.tick()                                        # from the host loop
        choice = core.get_optimal_target()
    """

    def __init__(
        self,
        world: HostWorld,
        config: CombatConfig | None = None,
        clock: Callable[[], int] | None = None,
        store: KeyValueStore | None = None,
        event_log: CombatEventLog | None = None,
    ) -> None:
        self.config = config or CombatConfig()
        self.clock = clock or now_ms
        cfg = self.config
        clock = self.clock

        self.gateway = HostGateway(world)
        player = self.gateway.player_position
        self.bus = EventBus()
        self.scheduler = Scheduler(clock)
        self.event_log = event_log or CombatEventLog()

        self.patterns = PatternRepository(store if store is not None else _default_store(cfg), cfg.pattern_store_key)
        self.tracker = BehaviorTracker(cfg, clock, player)
        self.cooldown = CooldownEstimator(self.patterns, clock)
        self.predictor = Predictor(cfg, self.tracker, self.patterns, clock, player)
        self.classifier = BehaviorClassifier(cfg, self.tracker, clock)
        self.feedback = CombatFeedback(cfg, clock)
        self.threats = ThreatCache(cfg, self.tracker, self.predictor, clock, player, self.bus)
        self.scorer = PriorityScorer(
            cfg, self.tracker, self.classifier, self.patterns, self.feedback, clock, player,
        )
        self.scenario = ScenarioManager(
            cfg, self.gateway, self.tracker, self.scorer, clock, self.bus, self.feedback,
        )
        self.volume = VolumeAdaptation(clock, SlotHasher(cfg.arena_seed))
        self.auto_tuner = AutoTuner(cfg, self.classifier, self.tracker, self.patterns, clock, self.bus)
        self.attribution = DamageAttributor(
            cfg, self.tracker, self.cooldown, self.feedback, self.patterns, clock, player,
        )

        self.stats = SessionStats(start_time=clock())
        self._timers: list[TimerHandle] = []
        self._unsubscribe: list[Callable[[], None]] = []
        self._register_handlers()

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def _register_handlers(self) -> None:
        handlers = {
            EventType.CREATURE_APPEARED: self._on_appeared,
            EventType.CREATURE_DISAPPEARED: self._on_disappeared,
            EventType.CREATURE_MOVED: self._on_sample,
            EventType.CREATURE_HEALTH_CHANGED: self._on_sample,
            EventType.DAMAGE_RECEIVED: self._on_damage,
            EventType.CREATURE_TURNED: self._on_turned,
            EventType.MISSILE_OBSERVED: self._on_missile,
            EventType.CREATURE_DIED: self._on_died,
        }
        for event, handler in handlers.items():
            self._unsubscribe.append(self.bus.on(event, handler, HANDLER_PRIORITIES[event]))

        for event in (
            EventType.THREAT_DETECTED,
            EventType.ATTACK_IMMINENT,
            EventType.SCENARIO_CHANGED,
            EventType.TARGET_SWITCHED,
            EventType.ENGAGEMENT_STARTED,
            EventType.ENGAGEMENT_ENDED,
            EventType.DANGER_TUNED,
        ):
            self._unsubscribe.append(self.bus.on(event, self._journal(event)))

    def _journal(self, event: EventType) -> Callable[..., None]:
        def record(*args: Any) -> None:
            message, ids = self._describe(event, args)
            self.event_log.record(self.clock(), event.value, message, *ids)
        return record

    @staticmethod
    def _describe(event: EventType, args: tuple) -> tuple[str, tuple[int, ...]]:
        match event:
            case EventType.THREAT_DETECTED | EventType.ATTACK_IMMINENT:
                entry = args[0]
                return (
                    f"{entry.name} #{entry.creature_id} {entry.reason} conf={entry.confidence:.2f}",
                    (entry.creature_id,),
                )
            case EventType.SCENARIO_CHANGED:
                new, old, count = args
                return f"{old.name.lower()} -> {new.name.lower()} ({count} hostiles)", ()
            case EventType.TARGET_SWITCHED:
                new_id, old_id = args
                return f"#{old_id} -> #{new_id}", (new_id, old_id)
            case EventType.ENGAGEMENT_STARTED:
                return f"engaged #{args[0]} at {args[1]}%", (args[0],)
            case EventType.ENGAGEMENT_ENDED:
                return f"#{args[0]}: {args[1]}", (args[0],)
            case EventType.DANGER_TUNED:
                s = args[0]
                return f"{s.name}: {s.current} -> {s.suggested}", ()
        return event.value, ()

    def start(self) -> None:
        """Register the periodic passes on the scheduler."""
        if self._timers:
            return
        cfg = self.config
        self._timers = [
            self.scheduler.call_every(cfg.update_interval_ms, self.update_all, name="update"),
            self.scheduler.call_every(cfg.auto_tune_interval_ms, self.auto_tuner.run_pass, name="auto_tune"),
            self.scheduler.call_every(cfg.decay_interval_ms, self.decay_patterns, name="decay"),
        ]
        logger.info("Combat core started (%d patterns loaded)", len(self.patterns))

    def stop(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers = []

    def shutdown(self) -> None:
        """Stop timers and detach every handler."""
        self.stop()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe.clear()

    def tick(self, now: int | None = None) -> int:
        """Run due timers. Returns how many ran."""
        return self.scheduler.run_pending(now)

    # ------------------------------------------------------------------
    # Host event handlers
    # ------------------------------------------------------------------

    def _on_appeared(self, creature: Any) -> None:
        self.stats.events_handled += 1
        self.tracker.track(_adapt(creature))

    def _on_sample(self, creature: Any) -> None:
        self.stats.events_handled += 1
        self.tracker.update(_adapt(creature))

    def _on_turned(self, creature: Any, direction: int | None = None) -> None:
        self.stats.events_handled += 1
        adapter = _adapt(creature)
        if self.tracker.update(adapter) is None:
            return
        if direction is None:
            direction = adapter.direction().unwrap_or(None)
        if direction is not None:
            self.threats.on_direction_change(adapter, direction)

    def _on_damage(self, amount: float) -> None:
        self.stats.events_handled += 1
        self.stats.damage_received += amount
        self.attribution.on_damage(amount)

    def _on_missile(self, caster_id: int) -> None:
        self.stats.events_handled += 1
        self.attribution.on_missile(caster_id)

    def _on_disappeared(self, creature_id: int) -> None:
        self.stats.events_handled += 1
        self._drop(creature_id, died=False)

    def _on_died(self, creature_id: int) -> None:
        self.stats.events_handled += 1
        self._drop(creature_id, died=True)

    def _drop(self, creature_id: int, died: bool) -> None:
        record = self.tracker.get(creature_id)
        if record is not None:
            self.classifier.classify(record)
            self.tracker.untrack(creature_id, died=died)
            if died:
                self.stats.kills += 1
                self.stats.total_kill_time += self.clock() - (record.engagement_start or record.tracking_start)
                self.event_log.record(self.clock(), "kill", f"{record.name} #{creature_id} died", creature_id)
        self.classifier.forget(creature_id)
        self.threats.forget(creature_id)
        self.scenario.on_creature_removed(creature_id)

    # ------------------------------------------------------------------
    # Periodic passes
    # ------------------------------------------------------------------

    def update_all(self) -> None:
        """Main pass: sample nearby hostiles, refresh threats, expire stale state."""
        cfg = self.config
        now = self.clock()
        hostiles = self.gateway.hostiles_near(cfg.tracking_range)

        self.volume.update(len(hostiles), now)
        params = self.volume.params
        self.tracker.set_ewma_alpha(params.ewma_alpha)
        self.tracker.telemetry_interval_ms = params.telemetry_interval_ms
        self.threats.ttl_ms = params.threat_cache_ttl_ms

        for creature in hostiles:
            cid = creature.id()
            if not cid.ok:
                continue
            if cid.value in self.tracker and not self.volume.should_process(cid.value, now):
                continue
            record = self.tracker.update(creature)
            if record is not None:
                self.classifier.classify(record)

        self.threats.refresh(hostiles)
        self.threats.cleanup(now)
        self.threats.process_queue(self.feedback)
        self.feedback.check_timeouts()

        for cid in self.tracker.prune_stale(now):
            self.classifier.forget(cid)
            self.threats.forget(cid)
            self.scenario.on_creature_removed(cid)

        self.scenario.record_movement()
        self.scenario.detect_scenario()
        self.stats.updates += 1

    def decay_patterns(self) -> int:
        return self.patterns.decay(self.clock(), self.config.pattern_decay_days)

    # ------------------------------------------------------------------
    # Public queries
    # ------------------------------------------------------------------

    def get_optimal_target(self) -> TargetChoice | None:
        return self.scenario.get_optimal_target()

    def on_attack_command(self, creature_id: int) -> bool:
        """The executor attacked *creature_id*; engage it if the scenario requires a lock."""
        creature = self.gateway.creature(creature_id)
        if creature is None or not creature.is_alive():
            return False
        health = creature.health_percent().unwrap_or(100)
        breakdown = self.scorer.score(creature)
        priority = breakdown.total if breakdown is not None else 0.0
        return self.scenario.start_engagement(creature_id, health, priority)

    def get_immediate_threat(self) -> ThreatSnapshot:
        return self.threats.get_immediate_threat()

    def is_position_dangerous(self, position: Any) -> tuple[bool, float]:
        """Is *position* inside a wave path expected to fire soon? Returns (dangerous, score)."""
        pos = to_position(position)
        if pos is None:
            return False, 0.0
        now = self.clock()
        queued = {e.creature_id: e.confidence for e in self.threats.queue}
        total = 0.0
        for cid, state in self.threats.directions.items():
            record = self.tracker.get(cid)
            if record is None:
                continue
            pattern = self.patterns.get_or_default(record.name)
            if not pattern.has_wave_attack:
                continue
            if not is_position_in_wave_path(
                pos, record.last_position, state.direction, pattern.wave_range, pattern.wave_width,
            ):
                continue
            tta = self.threats.time_to_attack(cid, record.name, now)
            urgency = 1 - min(1.0, tta / _DANGER_URGENCY_MS)
            danger = urgency * queued.get(cid, record.confidence)
            if state.facing_player_since is not None and now - state.facing_player_since < _FACING_RECENT_MS:
                danger *= 1.5
            total += danger
        return total > _DANGEROUS_THRESHOLD, total

    def suggest_danger(self, name: str) -> DangerSuggestion | None:
        return self.auto_tuner.suggest_danger(name)

    def apply_danger_suggestion(self, name: str, force: bool = False) -> tuple[bool, str]:
        return self.auto_tuner.apply_danger_suggestion(name, force)

    def session_stats(self) -> dict:
        fb = self.feedback
        return {
            "uptime_ms": self.clock() - self.stats.start_time,
            "creatures_tracked": self.tracker.total_tracked,
            "currently_tracked": len(self.tracker),
            "kills": self.stats.kills,
            "avg_kill_time_ms": round(self.stats.avg_kill_time, 1),
            "damage_received": round(self.stats.damage_received, 1),
            "waves_observed": sum(r.wave_count for r in self.tracker.records())
            + sum(s.wave_count for s in self.tracker.all_type_stats().values()),
            "predictions_correct": fb.wave_attacks["correct"],
            "predictions_missed": fb.wave_attacks["missed"] + fb.wave_attacks["false_positive"],
            "auto_tune_adjustments": self.auto_tuner.adjustments,
            "telemetry_samples": self.tracker.telemetry_samples,
            "attributed_hits": self.attribution.attributed,
            "unattributed_hits": self.attribution.unattributed,
            "updates": self.stats.updates,
            "events_handled": self.stats.events_handled,
            "handler_errors": self.bus.error_count + self.scheduler.error_count,
            "pattern_fallback": self.patterns.fallback_active,
        }

    def summary(self) -> dict:
        return {
            "session": self.session_stats(),
            "feedback": self.feedback.summary(),
            "volume": self.volume.summary(),
            "scenario": self.scenario.summary(),
            "threat_metrics": dict(self.threats.metrics),
        }
