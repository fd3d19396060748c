"""Priority scoring: pluggable factors combined into one scalar per candidate."""

from src.ai.priority.base import (
    PriorityBreakdown,
    PriorityContext,
    PriorityFactor,
    PriorityScorer,
    score_context,
)
from src.ai.priority.factors import default_factors

__all__ = [
    "PriorityBreakdown",
    "PriorityContext",
    "PriorityFactor",
    "PriorityScorer",
    "default_factors",
    "score_context",
]
