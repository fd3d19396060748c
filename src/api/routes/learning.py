"""Learned knowledge: classifications, persisted patterns, danger auto-tuning."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from src.api.dependencies import get_engine_manager
from src.api.engine_manager import EngineManager
from src.api.schemas import (
    ClassificationSchema,
    DangerApplyResponse,
    DangerSuggestionResponse,
    PatternSchema,
)

router = APIRouter()


@router.get("/classifications", response_model=list[ClassificationSchema])
def get_classifications(manager: EngineManager = Depends(get_engine_manager)) -> list[ClassificationSchema]:
    results = manager.read(lambda core: core.classifier.all())
    return [
        ClassificationSchema(
            name=name,
            movement_pattern=r.movement_pattern.name.lower(),
            is_ranged=r.is_ranged,
            is_melee=r.is_melee,
            is_wave_attacker=r.is_wave_attacker,
            is_aggressive=r.is_aggressive,
            is_passive=r.is_passive,
            is_fast=r.is_fast,
            is_slow=r.is_slow,
            preferred_distance=r.preferred_distance,
            attack_cooldown=r.attack_cooldown,
            estimated_danger=r.estimated_danger,
            confidence=round(r.confidence, 3),
            sample_count=r.sample_count,
        )
        for name, r in sorted(results.items())
    ]


@router.get("/patterns", response_model=list[PatternSchema])
def get_patterns(manager: EngineManager = Depends(get_engine_manager)) -> list[PatternSchema]:
    entries = manager.read(lambda core: core.patterns.all())
    return [
        PatternSchema(
            name=p.name,
            has_wave_attack=p.has_wave_attack,
            wave_range=p.wave_range,
            wave_width=p.wave_width,
            wave_cooldown=round(p.wave_cooldown, 1),
            wave_variance=round(p.wave_variance, 1),
            movement_pattern=p.movement_pattern.name.lower(),
            danger_level=int(p.danger_level),
            confidence=round(p.confidence, 3),
            last_seen=p.last_seen,
            auto_tuned=p.auto_tuned,
            sample_count=len(p.samples),
        )
        for p in entries
    ]


@router.get("/danger/{name}", response_model=DangerSuggestionResponse)
def get_danger_suggestion(
    name: str,
    manager: EngineManager = Depends(get_engine_manager),
) -> DangerSuggestionResponse:
    suggestion = manager.read(lambda core: core.suggest_danger(name))
    if suggestion is None:
        raise HTTPException(status_code=404, detail=f"No observations for '{name}'.")
    return DangerSuggestionResponse(
        name=suggestion.name,
        current=suggestion.current,
        suggested=suggestion.suggested,
        confidence=round(suggestion.confidence, 3),
        reasons=list(suggestion.reasons),
    )


@router.post("/danger/{name}/apply", response_model=DangerApplyResponse)
def apply_danger_suggestion(
    name: str,
    force: bool = Query(False, description="Apply even below the confidence floor"),
    manager: EngineManager = Depends(get_engine_manager),
) -> DangerApplyResponse:
    applied, message = manager.read(lambda core: core.apply_danger_suggestion(name, force))
    return DangerApplyResponse(name=name.strip().lower(), applied=applied, message=message)
