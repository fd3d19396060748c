"""Scenario / engagement manager.

Classifies the encounter by nearby hostile count and owns the single
``EngagementState``. Every proposed target switch goes through
``should_allow_target_switch``:

  1. Engagement lock — while engaged on X, nothing but X is allowed until
     X is dead or gone.
  2. Target lock — softer: finishing-kill band, making-progress guard,
     switch cooldown, switches-per-minute, zigzag veto.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterable

from src.core.enums import EventType, ScenarioType

if TYPE_CHECKING:
    from src.ai.feedback import CombatFeedback
    from src.ai.priority import PriorityBreakdown, PriorityScorer
    from src.ai.tracker import BehaviorTracker
    from src.config import CombatConfig
    from src.core.creature import CreatureAdapter, HostGateway
    from src.core.models import Position
    from src.engine.events import EventBus

logger = logging.getLogger(__name__)

_CRITICAL_LOCK_HEALTH = 30
_LOW_LOCK_HEALTH = 50
_WOUNDED_LOCK_HEALTH = 80
_SWITCH_RESET_MS = 10_000
_MOVE_RECORD_GAP_MS = 120
_MOVE_HISTORY = 10
_ZIGZAG_AVG_SWITCH_MS = 5_000
_LOCKED_PRIORITY = 999.0


@dataclass(frozen=True, slots=True)
class ScenarioPolicy:
    """Target-switching rules for one scenario type."""

    switch_cooldown_ms: int
    stickiness: float
    prioritize_finishing_kills: bool
    allow_zigzag: bool
    require_engagement_lock: bool = False
    max_switches_per_minute: int | None = None
    health_threshold_for_switch: int | None = None
    focus_lowest_health: bool = False
    emergency_mode: bool = False
    progress_margin: float = 300.0
    description: str = ""


SCENARIO_POLICIES: dict[ScenarioType, ScenarioPolicy] = {
    ScenarioType.IDLE: ScenarioPolicy(
        switch_cooldown_ms=0, stickiness=0, prioritize_finishing_kills=False,
        allow_zigzag=True, progress_margin=0, description="No combat",
    ),
    ScenarioType.SINGLE: ScenarioPolicy(
        switch_cooldown_ms=1000, stickiness=80, prioritize_finishing_kills=True,
        allow_zigzag=False, require_engagement_lock=True,
        description="Single target, focused",
    ),
    ScenarioType.FEW: ScenarioPolicy(
        switch_cooldown_ms=5000, stickiness=150, prioritize_finishing_kills=True,
        allow_zigzag=False, require_engagement_lock=True,
        max_switches_per_minute=3, health_threshold_for_switch=15,
        description="Few targets, linear targeting",
    ),
    ScenarioType.MODERATE: ScenarioPolicy(
        switch_cooldown_ms=4000, stickiness=100, prioritize_finishing_kills=True,
        allow_zigzag=False, require_engagement_lock=True,
        max_switches_per_minute=5, health_threshold_for_switch=20,
        progress_margin=250, description="Moderate, stable targeting",
    ),
    ScenarioType.SWARM: ScenarioPolicy(
        switch_cooldown_ms=2500, stickiness=60, prioritize_finishing_kills=True,
        allow_zigzag=False, max_switches_per_minute=8,
        health_threshold_for_switch=15, focus_lowest_health=True,
        progress_margin=150, description="Swarm, focused survival",
    ),
    ScenarioType.OVERWHELMING: ScenarioPolicy(
        switch_cooldown_ms=1500, stickiness=40, prioritize_finishing_kills=True,
        allow_zigzag=False, focus_lowest_health=True, emergency_mode=True,
        progress_margin=100, description="Overwhelming, emergency survival",
    ),
}


def scenario_for_count(count: int) -> ScenarioType:
    if count <= 0:
        return ScenarioType.IDLE
    if count == 1:
        return ScenarioType.SINGLE
    if count <= 3:
        return ScenarioType.FEW
    if count <= 6:
        return ScenarioType.MODERATE
    if count <= 10:
        return ScenarioType.SWARM
    return ScenarioType.OVERWHELMING


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ClusterInfo:
    centroid_x: float
    centroid_y: float
    spread: float
    kind: str


def analyze_cluster(positions: Iterable[Position]) -> ClusterInfo | None:
    """Centroid and mean Chebyshev spread of *positions*; None for fewer than two."""
    pts = list(positions)
    if len(pts) < 2:
        return None
    cx = sum(p.x for p in pts) / len(pts)
    cy = sum(p.y for p in pts) / len(pts)
    spread = sum(max(abs(p.x - cx), abs(p.y - cy)) for p in pts) / len(pts)
    if spread < 2:
        kind = "tight"
    elif spread < 4:
        kind = "medium"
    else:
        kind = "spread"
    return ClusterInfo(cx, cy, spread, kind)


@dataclass(slots=True)
class EngagementState:
    """Process-wide targeting state, mutated only by ScenarioManager."""

    scenario: ScenarioType = ScenarioType.IDLE
    scenario_start: int = 0
    monster_count: int = 0
    avg_danger: float = 0.0
    last_detect: int | None = None
    cluster: ClusterInfo | None = None

    target_lock_id: int | None = None
    target_lock_time: int = 0
    target_lock_health: int = 100
    target_lock_priority: float = 0.0

    engagement_lock_id: int | None = None
    engagement_lock_time: int = 0
    engagement_lock_health: int = 100
    is_engaged: bool = False
    last_attack_command: int = 0

    last_switch_time: int = 0
    consecutive_switches: int = 0
    total_switches: int = 0
    blocked_switches: int = 0

    movement_history: deque[tuple[int, int, int]] = field(default_factory=lambda: deque(maxlen=_MOVE_HISTORY))
    last_move_record: int = 0


@dataclass(slots=True)
class TargetChoice:
    """Result of ``get_optimal_target``."""

    creature: CreatureAdapter
    creature_id: int
    priority: float
    reason: str
    health: int = 100
    breakdown: PriorityBreakdown | None = None


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

class ScenarioManager:
    """Scenario detection and the target/engagement lock state machine."""

    def __init__(
        self,
        config: CombatConfig,
        gateway: HostGateway,
        tracker: BehaviorTracker,
        scorer: PriorityScorer,
        clock: Callable[[], int],
        bus: EventBus | None = None,
        feedback: CombatFeedback | None = None,
    ) -> None:
        self._config = config
        self._gateway = gateway
        self._tracker = tracker
        self._scorer = scorer
        self._clock = clock
        self._bus = bus
        self._feedback = feedback
        self.state = EngagementState()

    @property
    def policy(self) -> ScenarioPolicy:
        return SCENARIO_POLICIES[self.state.scenario]

    def _emit(self, event: EventType, *args) -> None:
        if self._bus is not None:
            self._bus.emit(event, *args)

    def _live(self, creature_id: int | None) -> CreatureAdapter | None:
        if creature_id is None:
            return None
        creature = self._gateway.creature(creature_id)
        if creature is None or not creature.is_alive():
            return None
        return creature

    # ------------------------------------------------------------------
    # Scenario detection
    # ------------------------------------------------------------------

    def detect_scenario(self, force: bool = False) -> ScenarioType:
        """Re-count nearby hostiles (rate limited) and update the scenario."""
        state = self.state
        now = self._clock()
        if (
            not force
            and state.last_detect is not None
            and now - state.last_detect < self._config.scenario_detect_interval_ms
        ):
            return state.scenario
        state.last_detect = now

        if not self._gateway.player_position().ok:
            hostiles: list[CreatureAdapter] = []
        else:
            hostiles = self._gateway.hostiles_near(self._config.scenario_radius)

        total_danger = 0.0
        positions: list[Position] = []
        for creature in hostiles:
            record = self._tracker.get(creature.id().unwrap_or(-1))
            total_danger += self._tracker.dps(record, now) / 10 + 1 if record else 1.0
            pos = creature.position()
            if pos.ok:
                positions.append(pos.value)

        count = len(hostiles)
        state.monster_count = count
        state.avg_danger = total_danger / count if count else 0.0
        state.cluster = analyze_cluster(positions)

        new_type = scenario_for_count(count)
        if new_type != state.scenario:
            previous = state.scenario
            state.scenario = new_type
            state.scenario_start = now
            state.consecutive_switches = 0
            logger.info("Scenario %s -> %s (%d hostiles)", previous.name, new_type.name, count)
            self._emit(EventType.SCENARIO_CHANGED, new_type, previous, count)
        return state.scenario

    # ------------------------------------------------------------------
    # Switch permission
    # ------------------------------------------------------------------

    def should_allow_target_switch(
        self,
        candidate_id: int,
        candidate_priority: float,
        candidate_health: int = 100,
    ) -> tuple[bool, str]:
        """Approve or veto switching to *candidate_id*. Returns (allow, reason)."""
        state = self.state
        policy = self.policy
        now = self._clock()

        # Engagement lock: absolute while the engaged target lives.
        if state.is_engaged and state.engagement_lock_id is not None:
            if self._live(state.engagement_lock_id) is not None:
                if candidate_id == state.engagement_lock_id:
                    return True, "engaged_target"
                state.blocked_switches += 1
                return False, "engagement_locked"
            self.end_engagement("target_dead")

        if state.target_lock_id is None:
            return True, "no_lock"

        locked = self._gateway.creature(state.target_lock_id)
        if locked is None:
            self.clear_target_lock()
            return True, "target_gone"
        if not locked.is_alive():
            self.clear_target_lock()
            return True, "target_dead"
        if candidate_id == state.target_lock_id:
            return True, "same_target"

        locked_health = locked.health_percent().unwrap_or(100)
        allow, reason = self._soft_lock_check(policy, locked_health, candidate_priority, now)
        if not allow:
            state.blocked_switches += 1
            logger.debug("Switch to #%d blocked: %s", candidate_id, reason)
        return allow, reason

    def _soft_lock_check(
        self,
        policy: ScenarioPolicy,
        locked_health: int,
        candidate_priority: float,
        now: int,
    ) -> tuple[bool, str]:
        state = self.state

        if locked_health <= _CRITICAL_LOCK_HEALTH:
            return False, "finishing_kill_critical"
        if locked_health <= _LOW_LOCK_HEALTH:
            return False, "finishing_kill_low"

        drop = state.target_lock_health - locked_health
        if locked_health <= _WOUNDED_LOCK_HEALTH or drop > 5:
            required = state.target_lock_priority + policy.progress_margin + min(100.0, max(0, drop) * 2)
            if candidate_priority < required:
                return False, "making_progress"

        since_switch = now - state.last_switch_time
        if since_switch < policy.switch_cooldown_ms:
            return False, "cooldown"

        if policy.max_switches_per_minute:
            allowed = max(2, policy.max_switches_per_minute - 1)
            if since_switch < 60_000 / allowed and state.consecutive_switches > 0:
                return False, "rate_limit"

        if not policy.allow_zigzag:
            if state.consecutive_switches >= 2:
                avg = (now - state.scenario_start) / max(1, state.consecutive_switches)
                if avg < _ZIGZAG_AVG_SWITCH_MS:
                    return False, "zigzag_prevention"
            if state.consecutive_switches >= 1 and self.is_zigzagging():
                return False, "zigzag_movement"

        return True, "allowed"

    # ------------------------------------------------------------------
    # Locks
    # ------------------------------------------------------------------

    def lock_target(self, creature_id: int, health: int = 100, priority: float = 0.0) -> None:
        state = self.state
        now = self._clock()
        previous = state.target_lock_id
        state.target_lock_id = creature_id
        state.target_lock_time = now
        state.target_lock_health = health
        state.target_lock_priority = priority

        if previous is not None and previous != creature_id:
            state.last_switch_time = now
            state.consecutive_switches += 1
            state.total_switches += 1
            self.record_movement()
            logger.debug("Target switch #%s -> #%d", previous, creature_id)
            self._emit(EventType.TARGET_SWITCHED, creature_id, previous)
        elif previous is None:
            state.consecutive_switches = 0

        if now - state.last_switch_time > _SWITCH_RESET_MS:
            state.consecutive_switches = 0

    def clear_target_lock(self) -> None:
        state = self.state
        state.target_lock_id = None
        state.target_lock_time = 0
        state.target_lock_health = 100
        state.target_lock_priority = 0.0

    def start_engagement(self, creature_id: int, health: int = 100, priority: float = 0.0) -> bool:
        """Called when an attack command is issued. Returns True if engaged on *creature_id*."""
        state = self.state
        now = self._clock()
        if not self.policy.require_engagement_lock:
            self.lock_target(creature_id, health, priority)
            return False

        if state.is_engaged and state.engagement_lock_id == creature_id:
            state.last_attack_command = now
            return True
        if state.is_engaged and self._live(state.engagement_lock_id) is not None:
            return False

        state.engagement_lock_id = creature_id
        state.engagement_lock_time = now
        state.engagement_lock_health = health
        state.is_engaged = True
        state.last_attack_command = now
        self.lock_target(creature_id, health, priority)
        logger.info("Engaged #%d (%s)", creature_id, state.scenario.name)
        self._emit(EventType.ENGAGEMENT_STARTED, creature_id, health)
        return True

    def is_engaged(self) -> bool:
        state = self.state
        if not state.is_engaged or state.engagement_lock_id is None:
            return False
        if self._live(state.engagement_lock_id) is None:
            self.end_engagement("target_gone")
            return False
        return True

    def end_engagement(self, reason: str = "unknown") -> None:
        state = self.state
        previous = state.engagement_lock_id
        state.engagement_lock_id = None
        state.engagement_lock_time = 0
        state.engagement_lock_health = 100
        state.is_engaged = False
        self.clear_target_lock()
        if previous is not None:
            logger.info("Engagement with #%d ended: %s", previous, reason)
            self._emit(EventType.ENGAGEMENT_ENDED, previous, reason)

    def on_creature_removed(self, creature_id: int) -> None:
        """Host reported *creature_id* dead or gone."""
        if self.state.engagement_lock_id == creature_id:
            self.end_engagement("target_dead")
        elif self.state.target_lock_id == creature_id:
            self.clear_target_lock()

    # ------------------------------------------------------------------
    # Zigzag detection
    # ------------------------------------------------------------------

    def record_movement(self) -> None:
        player = self._gateway.player_position()
        if not player.ok:
            return
        state = self.state
        now = self._clock()
        if now - state.last_move_record < _MOVE_RECORD_GAP_MS:
            return
        pos = player.value
        history = state.movement_history
        if history and history[-1][0] == pos.x and history[-1][1] == pos.y:
            return
        history.append((pos.x, pos.y, now))
        state.last_move_record = now

    def is_zigzagging(self) -> bool:
        history = list(self.state.movement_history)
        if len(history) < 4:
            return False
        reversals = 0
        prev_dx = prev_dy = 0
        for (x0, y0, _), (x1, y1, _) in zip(history, history[1:]):
            dx, dy = x1 - x0, y1 - y0
            if dx * prev_dx < 0 or dy * prev_dy < 0:
                reversals += 1
            prev_dx, prev_dy = dx, dy
        return reversals >= (len(history) - 1) * 0.5

    # ------------------------------------------------------------------
    # Priority & selection
    # ------------------------------------------------------------------

    def modify_priority(self, creature_id: int, base_priority: float, health: int = 100) -> float:
        """Apply engagement, stickiness, finishing-kill and scenario bonuses."""
        state = self.state
        policy = self.policy
        now = self._clock()
        priority = base_priority

        if state.is_engaged and creature_id == state.engagement_lock_id:
            priority += 1000
            drop = state.engagement_lock_health - health
            if drop > 0:
                priority += drop * 5

        if creature_id == state.target_lock_id:
            priority += policy.stickiness
            if policy.prioritize_finishing_kills:
                if health < 20:
                    priority += 200
                elif health < 35:
                    priority += 120
                elif health < 50:
                    priority += 80
                elif health < 70:
                    priority += 40
            locked_for = now - state.target_lock_time
            if locked_for > 2000:
                priority += min(100.0, locked_for / 100)

        if policy.focus_lowest_health:
            priority += (100 - health) * 0.5

        if policy.emergency_mode:
            record = self._tracker.get(creature_id)
            if record is not None and self._tracker.dps(record, now) > 50:
                priority += 40

        return priority

    def get_optimal_target(self) -> TargetChoice | None:
        """Pick the target to attack now, honouring every lock."""
        self.detect_scenario()
        state = self.state
        if not self._gateway.player_position().ok:
            return None
        now = self._clock()

        if state.target_lock_id is not None:
            locked = self._live(state.target_lock_id)
            if locked is None:
                self.clear_target_lock()
            elif state.scenario == ScenarioType.FEW:
                health = locked.health_percent().unwrap_or(100)
                locked_for = now - state.target_lock_time
                if (locked_for < 5000 or health < 50) and health < 80:
                    return TargetChoice(locked, state.target_lock_id, _LOCKED_PRIORITY, "target_locked", health)

        candidates: list[TargetChoice] = []
        for creature in self._gateway.hostiles_near(self._config.candidate_radius):
            breakdown = self._scorer.score(creature)
            if breakdown is None:
                continue
            health = creature.health_percent().unwrap_or(100)
            priority = self.modify_priority(breakdown.creature_id, breakdown.total, health)
            candidates.append(TargetChoice(creature, breakdown.creature_id, priority, "", health, breakdown))

        if not candidates:
            self.clear_target_lock()
            return None

        candidates.sort(key=lambda c: (-c.priority, c.creature_id))
        best = candidates[0]
        allow, reason = self.should_allow_target_switch(best.creature_id, best.priority, best.health)
        if allow:
            self.lock_target(best.creature_id, best.health, best.priority)
            best.reason = reason
            self._record_selection(True)
            return best

        held_id = state.engagement_lock_id if state.is_engaged else state.target_lock_id
        held = self._live(held_id)
        if held is not None:
            self._record_selection(False)
            return TargetChoice(
                held, held_id, _LOCKED_PRIORITY, f"switch_blocked:{reason}",
                held.health_percent().unwrap_or(100),
            )

        self.lock_target(best.creature_id, best.health, best.priority)
        best.reason = reason
        return best

    def _record_selection(self, optimal: bool) -> None:
        if self._feedback is not None:
            self._feedback.record_target_selection(optimal)

    def summary(self) -> dict:
        state = self.state
        return {
            "scenario": state.scenario.name.lower(),
            "monster_count": state.monster_count,
            "avg_danger": round(state.avg_danger, 2),
            "target_lock_id": state.target_lock_id,
            "engagement_lock_id": state.engagement_lock_id,
            "is_engaged": state.is_engaged,
            "consecutive_switches": state.consecutive_switches,
            "total_switches": state.total_switches,
            "blocked_switches": state.blocked_switches,
            "is_zigzagging": self.is_zigzagging(),
            "cluster": state.cluster.kind if state.cluster else "none",
            "policy": self.policy.description,
        }
