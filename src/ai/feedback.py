"""Combat-feedback loop — correlates predictions with damage actually taken.

Each emitted prediction is remembered for a short while. Damage attributed
to the same creature inside the correlation window confirms it and nudges
the matching adaptive weight up; a prediction nobody confirms times out as
a false positive and nudges the weight down. Per-category accuracies are
EWMA-smoothed and combine into one overall score, which the priority
scorer turns into a multiplier in [min_weight, max_weight].
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from src.config import CombatConfig

logger = logging.getLogger(__name__)

WEIGHT_NAMES = (
    "wave_prediction",
    "dps_based",
    "facing_based",
    "cooldown_based",
    "classification_based",
)

_MAX_PREDICTIONS = 50
_MAX_DAMAGE_EVENTS = 30


@dataclass(slots=True)
class TrackedPrediction:
    creature_id: int
    name: str
    predicted_time: int
    confidence: float
    weight: str
    recorded_at: int
    resolved: bool = False
    outcome: str = ""


class CombatFeedback:
    """Closed-loop accuracy tracking and adaptive weight multipliers."""

    def __init__(self, config: CombatConfig, clock: Callable[[], int]) -> None:
        self._config = config
        self._clock = clock
        self.reset()

    def reset(self) -> None:
        self.weights: dict[str, float] = {name: 1.0 for name in WEIGHT_NAMES}
        self.wave_attacks = {"correct": 0, "missed": 0, "false_positive": 0}
        self.damage_correlation = {"correct": 0, "missed": 0}
        self.target_selection = {"optimal": 0, "suboptimal": 0}
        self.accuracy = {"wave": 0.5, "damage": 0.5, "target": 0.5}
        self.predictions: deque[TrackedPrediction] = deque(maxlen=_MAX_PREDICTIONS)
        self.damage_events: deque[tuple[int, int, float, bool]] = deque(maxlen=_MAX_DAMAGE_EVENTS)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_prediction(
        self,
        creature_id: int,
        name: str,
        predicted_time: int,
        confidence: float,
        weight: str = "wave_prediction",
    ) -> None:
        if weight not in self.weights:
            raise ValueError(f"Unknown feedback weight: {weight}")
        self.predictions.append(TrackedPrediction(
            creature_id=creature_id,
            name=name,
            predicted_time=predicted_time,
            confidence=confidence,
            weight=weight,
            recorded_at=self._clock(),
        ))

    def record_damage(self, creature_id: int, amount: float) -> bool:
        """Correlate damage from *creature_id*. Returns True if a prediction matched."""
        now = self._clock()
        window = self._config.prediction_window_ms
        match: TrackedPrediction | None = None
        for pred in reversed(self.predictions):
            if pred.resolved or pred.creature_id != creature_id:
                continue
            if abs(now - pred.predicted_time) < window:
                match = pred
                break

        if match is not None:
            match.resolved = True
            match.outcome = "correct"
            self.wave_attacks["correct"] += 1
            self.damage_correlation["correct"] += 1
            self._nudge(match.weight, self._config.weight_adjust_rate * match.confidence)
        else:
            self.wave_attacks["missed"] += 1
            self.damage_correlation["missed"] += 1
        self.damage_events.append((now, creature_id, float(amount), match is not None))
        self._update_accuracy()
        return match is not None

    def check_timeouts(self) -> int:
        """Expire unconfirmed predictions as false positives. Returns how many."""
        now = self._clock()
        limit = 1.5 * self._config.prediction_window_ms
        expired = 0
        for pred in self.predictions:
            if pred.resolved or now - pred.predicted_time <= limit:
                continue
            pred.resolved = True
            pred.outcome = "false_positive"
            self.wave_attacks["false_positive"] += 1
            self._nudge(pred.weight, -0.5 * self._config.weight_adjust_rate * pred.confidence)
            expired += 1
        if expired:
            self._update_accuracy()
        return expired

    def record_target_selection(self, optimal: bool) -> None:
        self.target_selection["optimal" if optimal else "suboptimal"] += 1
        self._update_accuracy()

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def _nudge(self, weight: str, delta: float) -> None:
        cfg = self._config
        value = self.weights[weight] + delta
        self.weights[weight] = max(cfg.min_weight, min(cfg.max_weight, value))

    def _update_accuracy(self) -> None:
        a = self._config.feedback_alpha
        wave = self.wave_attacks
        wave_total = wave["correct"] + wave["missed"] + wave["false_positive"]
        dmg = self.damage_correlation
        dmg_total = dmg["correct"] + dmg["missed"]
        tgt = self.target_selection
        tgt_total = tgt["optimal"] + tgt["suboptimal"]
        if wave_total:
            self._smooth("wave", wave["correct"] / wave_total, a)
        if dmg_total:
            self._smooth("damage", dmg["correct"] / dmg_total, a)
        if tgt_total:
            self._smooth("target", tgt["optimal"] / tgt_total, a)

    def _smooth(self, key: str, observed: float, alpha: float) -> None:
        self.accuracy[key] = self.accuracy[key] * (1 - alpha) + observed * alpha

    @property
    def overall_accuracy(self) -> float:
        acc = self.accuracy
        return 0.4 * acc["wave"] + 0.4 * acc["damage"] + 0.2 * acc["target"]

    def adaptive_multiplier(self) -> float:
        """Priority multiplier; 1.0 at the neutral 0.5 accuracy."""
        cfg = self._config
        return max(cfg.min_weight, min(cfg.max_weight, 0.5 + self.overall_accuracy))

    def weight(self, name: str) -> float:
        return self.weights.get(name, 1.0)

    def summary(self) -> dict:
        pending = sum(1 for p in self.predictions if not p.resolved)
        return {
            "weights": {k: round(v, 4) for k, v in self.weights.items()},
            "wave_attacks": dict(self.wave_attacks),
            "damage_correlation": dict(self.damage_correlation),
            "target_selection": dict(self.target_selection),
            "accuracy": {k: round(v, 4) for k, v in self.accuracy.items()},
            "overall_accuracy": round(self.overall_accuracy, 4),
            "multiplier": round(self.adaptive_multiplier(), 4),
            "pending_predictions": pending,
        }
