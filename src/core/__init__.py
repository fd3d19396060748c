"""Core data models, host adapters and pattern persistence."""

from src.core.creature import Access, CreatureAdapter, HostGateway
from src.core.enums import DangerLevel, Direction, EventType, MovementPattern, ScenarioType
from src.core.models import ClassificationResult, MonsterRecord, Position, PredictionEntry
from src.core.patterns import PatternEntry, PatternRepository

__all__ = [
    "Access",
    "ClassificationResult",
    "CreatureAdapter",
    "DangerLevel",
    "Direction",
    "EventType",
    "HostGateway",
    "MonsterRecord",
    "MovementPattern",
    "PatternEntry",
    "PatternRepository",
    "Position",
    "PredictionEntry",
    "ScenarioType",
]
