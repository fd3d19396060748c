"""GET endpoints for live combat state: threat, target, scenario, stats, events."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_engine_manager
from src.api.engine_manager import EngineManager
from src.api.schemas import (
    DangerCheckResponse,
    EventSchema,
    EventsResponse,
    ScenarioResponse,
    StatsResponse,
    TargetResponse,
    ThreatResponse,
)
from src.core.models import Position

router = APIRouter()


@router.get("/threat", response_model=ThreatResponse)
def get_threat(manager: EngineManager = Depends(get_engine_manager)) -> ThreatResponse:
    snap = manager.read(lambda core: core.get_immediate_threat())
    return ThreatResponse(
        immediate_threat=snap.immediate_threat,
        total_threat=round(snap.total_threat, 3),
        threat_count=snap.threat_count,
        highest_confidence=round(snap.highest_confidence, 3),
        computed_at=snap.computed_at,
    )


@router.get("/target", response_model=TargetResponse)
def get_target(manager: EngineManager = Depends(get_engine_manager)) -> TargetResponse:
    """The target the arena player most recently chose through the core."""
    choice = manager.last_choice
    if choice is None:
        return TargetResponse()
    return TargetResponse(
        creature_id=choice.creature_id,
        name=choice.creature.name().unwrap_or(None),
        priority=round(choice.priority, 2),
        reason=choice.reason,
        health=choice.health,
        factors={k: round(v, 2) for k, v in choice.breakdown.factors.items()} if choice.breakdown else {},
    )


@router.get("/position-danger", response_model=DangerCheckResponse)
def get_position_danger(
    x: int = Query(..., description="Tile x"),
    y: int = Query(..., description="Tile y"),
    z: int = Query(0, description="Floor"),
    manager: EngineManager = Depends(get_engine_manager),
) -> DangerCheckResponse:
    dangerous, score = manager.read(lambda core: core.is_position_dangerous(Position(x, y, z)))
    return DangerCheckResponse(x=x, y=y, z=z, dangerous=dangerous, score=round(score, 3))


@router.get("/scenario", response_model=ScenarioResponse)
def get_scenario(manager: EngineManager = Depends(get_engine_manager)) -> ScenarioResponse:
    return ScenarioResponse(**manager.read(lambda core: core.scenario.summary()))


@router.get("/stats", response_model=StatsResponse)
def get_stats(manager: EngineManager = Depends(get_engine_manager)) -> StatsResponse:
    summary = manager.read(lambda core: core.summary())
    return StatsResponse(
        session=summary["session"],
        feedback=summary["feedback"],
        volume=summary["volume"],
        threat_metrics=summary["threat_metrics"],
        arena=manager.read(lambda _core: manager.arena.summary()),
    )


@router.get("/events", response_model=EventsResponse)
def get_events(
    since_ms: int | None = Query(None, ge=0, description="Only events at or after this arena time"),
    limit: int = Query(100, ge=1, le=1000),
    manager: EngineManager = Depends(get_engine_manager),
) -> EventsResponse:
    log = manager.event_log
    events = log.since(since_ms) if since_ms is not None else log.latest(limit)
    events = events[-limit:]
    return EventsResponse(
        events=[
            EventSchema(
                time_ms=e.time_ms,
                category=e.category,
                message=e.message,
                creature_ids=list(e.creature_ids),
            )
            for e in events
        ],
        total=len(log),
    )
