"""POST /api/v1/control/{action} — arena lifecycle controls."""

from __future__ import annotations

from enum import Enum

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_engine_manager
from src.api.engine_manager import EngineManager
from src.api.schemas import ControlResponse

router = APIRouter()


class ControlAction(str, Enum):
    start = "start"
    pause = "pause"
    resume = "resume"
    step = "step"
    reset = "reset"


@router.post("/control/{action}", response_model=ControlResponse)
def control(
    action: ControlAction,
    manager: EngineManager = Depends(get_engine_manager),
) -> ControlResponse:
    now = manager.time_ms()

    match action:
        case ControlAction.start:
            if manager.running:
                return ControlResponse(status="noop", message="Already running.", time_ms=now)
            manager.start()
            return ControlResponse(status="ok", message="Arena started.", time_ms=now)

        case ControlAction.pause:
            if not manager.running:
                return ControlResponse(status="error", message="Not running.", time_ms=now)
            manager.pause()
            return ControlResponse(status="ok", message="Arena paused.", time_ms=now)

        case ControlAction.resume:
            if not manager.running:
                return ControlResponse(status="error", message="Not running.", time_ms=now)
            manager.resume()
            return ControlResponse(status="ok", message="Arena resumed.", time_ms=now)

        case ControlAction.step:
            if manager.running:
                manager.step()
                return ControlResponse(status="ok", message="Single step requested.", time_ms=now)
            new_time = manager.advance(1)
            return ControlResponse(status="ok", message="Single step executed.", time_ms=new_time)

        case ControlAction.reset:
            manager.reset()
            return ControlResponse(status="ok", message="Arena reset.", time_ms=manager.time_ms())


@router.post("/speed")
def set_speed(
    sps: float = Query(20.0, gt=0.5, le=100.0, description="Arena steps per second"),
    manager: EngineManager = Depends(get_engine_manager),
) -> ControlResponse:
    manager.tick_rate = 1.0 / sps
    return ControlResponse(status="ok", message=f"Speed set to {sps:.1f} sps.", time_ms=manager.time_ms())
