"""Auto-tuner: proposes pattern danger levels from observed behavior."""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from src.core.enums import EventType
from src.core.patterns import normalize_name

if TYPE_CHECKING:
    from src.ai.classifier import BehaviorClassifier
    from src.ai.tracker import BehaviorTracker
    from src.config import CombatConfig
    from src.core.patterns import PatternRepository
    from src.engine.events import EventBus

logger = logging.getLogger(__name__)

_HISTORY_CAP = 100


@dataclass(frozen=True, slots=True)
class DangerSuggestion:
    name: str
    current: int
    suggested: int
    confidence: float
    reasons: tuple[str, ...] = ()

    @property
    def change(self) -> int:
        return self.suggested - self.current


@dataclass(slots=True)
class TuneRecord:
    time: int
    name: str
    old_danger: int
    new_danger: int
    confidence: float
    forced: bool = False
    reasons: list[str] = field(default_factory=list)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class AutoTuner:
    """Turns classification and per-type statistics into danger-level updates."""

    def __init__(
        self,
        config: CombatConfig,
        classifier: BehaviorClassifier,
        tracker: BehaviorTracker,
        patterns: PatternRepository,
        clock: Callable[[], int],
        bus: EventBus | None = None,
    ) -> None:
        self._config = config
        self._classifier = classifier
        self._tracker = tracker
        self._patterns = patterns
        self._clock = clock
        self._bus = bus
        self.history: deque[TuneRecord] = deque(maxlen=_HISTORY_CAP)
        self.adjustments = 0

    def suggest_danger(self, name: str) -> DangerSuggestion | None:
        """Suggested danger level for *name*, or None without any evidence."""
        key = normalize_name(name)
        classification = self._classifier.get(key)
        stats = self._tracker.type_stats(key)
        if classification is None and stats is None:
            return None

        danger = classification.estimated_danger if classification else 2.0
        confidence = classification.confidence if classification else 0.3
        reasons: list[str] = []

        if classification is not None:
            if classification.is_wave_attacker:
                reasons.append("wave_attacker")
            if classification.is_aggressive:
                reasons.append("aggressive")
            if classification.is_fast:
                reasons.append("fast")

        if stats is not None:
            if stats.avg_dps > 80:
                danger = max(danger, 4)
                reasons.append("high_dps")
            elif stats.avg_dps > 50:
                danger = max(danger, 3)
                reasons.append("high_dps")
            elif stats.avg_dps > 25:
                danger = max(danger, 2)
            if stats.avg_damage_per_encounter > 500:
                danger = max(danger, 4)
            elif stats.avg_damage_per_encounter > 200:
                danger = max(danger, 3)

        pattern = self._patterns.get(key)
        if pattern is not None and 0 < pattern.wave_cooldown < 2000:
            danger = max(danger, 3)

        current = int(pattern.danger_level) if pattern is not None else 2
        suggested = max(1, min(4, _round_half_up(danger)))
        confidence = min(0.95, confidence + 0.1 * len(reasons))
        return DangerSuggestion(key, current, suggested, confidence, tuple(reasons))

    def apply_danger_suggestion(self, name: str, force: bool = False) -> tuple[bool, str]:
        """Persist the suggestion for *name*. Returns (applied, message)."""
        suggestion = self.suggest_danger(name)
        if suggestion is None:
            return False, "no data"
        if suggestion.confidence < self._config.auto_tune_min_confidence and not force:
            return False, f"confidence too low ({suggestion.confidence:.2f})"

        now = self._clock()
        self._patterns.persist(suggestion.name, {
            "danger_level": suggestion.suggested,
            "auto_tuned": True,
            "auto_tune_time": now,
        })
        self.history.append(TuneRecord(
            time=now,
            name=suggestion.name,
            old_danger=suggestion.current,
            new_danger=suggestion.suggested,
            confidence=suggestion.confidence,
            forced=force,
            reasons=list(suggestion.reasons),
        ))
        self.adjustments += 1
        logger.info(
            "Danger %s: %d -> %d (conf=%.2f%s)",
            suggestion.name, suggestion.current, suggestion.suggested,
            suggestion.confidence, ", forced" if force else "",
        )
        if self._bus is not None:
            self._bus.emit(EventType.DANGER_TUNED, suggestion)
        return True, f"danger {suggestion.current} -> {suggestion.suggested}"

    def run_pass(self) -> int:
        """Auto-apply confident suggestions that change a level. Returns how many."""
        names = set(self._classifier.all()) | set(self._tracker.all_type_stats())
        applied = 0
        for name in sorted(names):
            suggestion = self.suggest_danger(name)
            if suggestion is None:
                continue
            if suggestion.confidence < self._config.auto_apply_confidence or abs(suggestion.change) < 1:
                continue
            ok, _ = self.apply_danger_suggestion(name)
            applied += ok
        if applied:
            logger.debug("Auto-tune pass applied %d changes", applied)
        return applied
