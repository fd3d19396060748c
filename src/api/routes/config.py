"""GET /api/v1/config — expose combat core configuration."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.api.dependencies import get_engine_manager
from src.api.engine_manager import EngineManager
from src.api.schemas import CombatConfigResponse

router = APIRouter()


@router.get("/config", response_model=CombatConfigResponse)
def get_config(
    manager: EngineManager = Depends(get_engine_manager),
) -> CombatConfigResponse:
    cfg = manager.config
    return CombatConfigResponse(
        update_interval_ms=cfg.update_interval_ms,
        auto_tune_interval_ms=cfg.auto_tune_interval_ms,
        decay_interval_ms=cfg.decay_interval_ms,
        scenario_detect_interval_ms=cfg.scenario_detect_interval_ms,
        analysis_window_ms=cfg.analysis_window_ms,
        ewma_alpha=cfg.ewma_alpha,
        imminent_ms=cfg.imminent_ms,
        wave_range=cfg.wave_range,
        wave_width=cfg.wave_width,
        min_classify_samples=cfg.min_classify_samples,
        scenario_radius=cfg.scenario_radius,
        candidate_radius=cfg.candidate_radius,
        threat_radius=cfg.threat_radius,
        min_weight=cfg.min_weight,
        max_weight=cfg.max_weight,
        prediction_window_ms=cfg.prediction_window_ms,
        arena_seed=cfg.arena_seed,
        arena_width=cfg.arena_width,
        arena_height=cfg.arena_height,
        arena_monsters=cfg.arena_monsters,
        arena_step_ms=cfg.arena_step_ms,
        tick_rate=manager.tick_rate,
    )
