"""Combat core configuration with sensible defaults."""

from __future__ import annotations

import time
from dataclasses import dataclass, field


def now_ms() -> int:
    """Default clock: wall-clock milliseconds (patterns persist across sessions)."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class PriorityWeights:
    """Multipliers and thresholds for the priority scorer."""

    base_weight: float = 1.0
    distance_weight: float = 0.8
    health_weight: float = 0.7
    danger_weight: float = 1.5
    wave_weight: float = 2.0
    imminent_weight: float = 3.0

    imminent_threshold_ms: int = 600
    dangerous_cooldown_ratio: float = 0.7

    low_health: int = 30
    critical_health: int = 15

    melee_range: int = 1
    close_range: int = 3
    medium_range: int = 6

    fast_speed: int = 250


@dataclass(frozen=True)
class CombatConfig:
    """Immutable configuration for the combat decision core."""

    # Timers
    update_interval_ms: int = 500
    auto_tune_interval_ms: int = 30_000
    decay_interval_ms: int = 3_600_000
    scenario_detect_interval_ms: int = 200

    # Behavior tracker
    analysis_window_ms: int = 10_000
    dps_window_ms: int = 5_000
    stale_record_ms: int = 12_000
    telemetry_interval_ms: int = 200
    speed_ewma_alpha: float = 0.2
    confidence_sample_cap: int = 50
    tracking_range: int = 8

    # Cooldown estimator
    ewma_alpha: float = 0.25
    default_wave_cooldown_ms: int = 2_000

    # Predictor
    wave_range: int = 5
    wave_width: int = 1
    imminent_ms: int = 500
    danger_horizon_ms: int = 1_000

    # Classifier
    min_classify_samples: int = 15
    reclassify_sample_step: int = 10
    high_dps: float = 50.0
    fast_speed: float = 250.0
    slow_speed: float = 120.0
    wave_frequent: float = 0.3

    # Real-time threat tracking
    threat_cache_ttl_ms: int = 100
    threat_radius: int = 7
    immediate_threat_ms: int = 800
    prediction_queue_cap: int = 20
    prediction_max_age_ms: int = 5_000
    direction_stale_ms: int = 10_000

    # Combat feedback
    feedback_alpha: float = 0.15
    weight_adjust_rate: float = 0.02
    min_weight: float = 0.5
    max_weight: float = 1.5
    prediction_window_ms: int = 2_000

    # Damage attribution
    attribution_radius: int = 7
    attribution_threshold: float = 0.4

    # Scenario / engagement
    scenario_radius: int = 14
    candidate_radius: int = 12

    # Auto-tuner
    auto_tune_min_confidence: float = 0.5
    auto_apply_confidence: float = 0.7

    # Pattern persistence
    pattern_store_key: str = "combat.monster_patterns"
    pattern_store_path: str | None = None
    pattern_decay_days: int = 7

    # Priority scoring
    priority: PriorityWeights = field(default_factory=PriorityWeights)

    # Arena (simulated host)
    arena_seed: int = 42
    arena_width: int = 32
    arena_height: int = 32
    arena_monsters: int = 5
    arena_step_ms: int = 100

    # Logging
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        # Every attack the predictor calls imminent must also get the
        # scorer's imminent bonus; the scorer window may be wider.
        if self.priority.imminent_threshold_ms < self.imminent_ms:
            raise ValueError(
                f"priority.imminent_threshold_ms ({self.priority.imminent_threshold_ms}) "
                f"must be >= imminent_ms ({self.imminent_ms})"
            )
