"""Engine layer: event bus, scheduler and the combat core orchestrator."""

from src.engine.combat_core import CombatCore
from src.engine.events import EventBus
from src.engine.scheduler import Scheduler

__all__ = ["CombatCore", "EventBus", "Scheduler"]
