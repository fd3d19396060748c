"""Pydantic response models for the REST API."""

from __future__ import annotations

from pydantic import BaseModel, Field


# --- Threat / target ---

class ThreatResponse(BaseModel):
    immediate_threat: bool = False
    total_threat: float = 0.0
    threat_count: int = 0
    highest_confidence: float = 0.0
    computed_at: int = 0


class TargetResponse(BaseModel):
    creature_id: int | None = None
    name: str | None = None
    priority: float = 0.0
    reason: str = "no_target"
    health: int | None = None
    # Per-factor contributions, empty when the lock held the target
    factors: dict[str, float] = Field(default_factory=dict)


class DangerCheckResponse(BaseModel):
    x: int
    y: int
    z: int = 0
    dangerous: bool
    score: float


# --- Scenario ---

class ScenarioResponse(BaseModel):
    scenario: str
    monster_count: int = 0
    avg_danger: float = 0.0
    target_lock_id: int | None = None
    engagement_lock_id: int | None = None
    is_engaged: bool = False
    consecutive_switches: int = 0
    total_switches: int = 0
    blocked_switches: int = 0
    is_zigzagging: bool = False
    cluster: str = "none"
    policy: str = ""


# --- Stats ---

class StatsResponse(BaseModel):
    session: dict = Field(default_factory=dict)
    feedback: dict = Field(default_factory=dict)
    volume: dict = Field(default_factory=dict)
    threat_metrics: dict = Field(default_factory=dict)
    arena: dict = Field(default_factory=dict)


# --- Learning ---

class ClassificationSchema(BaseModel):
    name: str
    movement_pattern: str
    is_ranged: bool = False
    is_melee: bool = False
    is_wave_attacker: bool = False
    is_aggressive: bool = False
    is_passive: bool = False
    is_fast: bool = False
    is_slow: bool = False
    preferred_distance: int = 1
    attack_cooldown: float | None = None
    estimated_danger: float = 1.0
    confidence: float = 0.0
    sample_count: int = 0


class PatternSchema(BaseModel):
    name: str
    has_wave_attack: bool = True
    wave_range: int = 5
    wave_width: int = 1
    wave_cooldown: float = 2000.0
    wave_variance: float = 0.0
    movement_pattern: str = "chase"
    danger_level: int = 2
    confidence: float = 0.5
    last_seen: int = 0
    auto_tuned: bool = False
    sample_count: int = 0


class DangerSuggestionResponse(BaseModel):
    name: str
    current: int
    suggested: int
    confidence: float
    reasons: list[str] = Field(default_factory=list)


class DangerApplyResponse(BaseModel):
    name: str
    applied: bool
    message: str


# --- Events ---

class EventSchema(BaseModel):
    time_ms: int
    category: str
    message: str
    creature_ids: list[int] = Field(default_factory=list)


class EventsResponse(BaseModel):
    events: list[EventSchema] = Field(default_factory=list)
    total: int = 0


# --- Control ---

class ControlResponse(BaseModel):
    status: str
    message: str
    time_ms: int = 0


# --- Config ---

class CombatConfigResponse(BaseModel):
    update_interval_ms: int
    auto_tune_interval_ms: int
    decay_interval_ms: int
    scenario_detect_interval_ms: int
    analysis_window_ms: int
    ewma_alpha: float
    imminent_ms: int
    wave_range: int
    wave_width: int
    min_classify_samples: int
    scenario_radius: int
    candidate_radius: int
    threat_radius: int
    min_weight: float
    max_weight: float
    prediction_window_ms: int
    arena_seed: int
    arena_width: int
    arena_height: int
    arena_monsters: int
    arena_step_ms: int
    tick_rate: float
