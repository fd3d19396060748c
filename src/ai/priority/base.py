"""Base classes for the priority scoring plug-ins.

PriorityContext  — everything a factor may read about one candidate.
PriorityFactor   — abstract base class; subclass and implement `score()`.
PriorityBreakdown— final score plus per-factor contributions.
PriorityScorer   — resolves a context, sums factors, applies the adaptive
                   multiplier and clamps to [0, 1000].
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterable

from src.core.models import Position

if TYPE_CHECKING:
    from src.ai.classifier import BehaviorClassifier
    from src.ai.feedback import CombatFeedback
    from src.ai.tracker import BehaviorTracker
    from src.config import CombatConfig, PriorityWeights
    from src.core.creature import Access, CreatureAdapter
    from src.core.models import ClassificationResult, MonsterRecord
    from src.core.patterns import PatternEntry, PatternRepository

MAX_PRIORITY = 1000.0
BASE_PRIORITY = 100.0


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class PriorityContext:
    """Resolved, read-only view of one candidate at scoring time."""

    creature_id: int
    name: str
    position: Position
    direction: int
    health: int
    player: Position
    now: int
    weights: PriorityWeights
    pattern: PatternEntry
    record: MonsterRecord | None = None
    classification: ClassificationResult | None = None
    adaptive: dict[str, float] = field(default_factory=dict)
    dps: float = 0.0
    recent_damage: float = 0.0
    is_walking: bool = False

    @property
    def distance(self) -> int:
        return self.position.chebyshev(self.player)

    def adaptive_weight(self, name: str) -> float:
        return self.adaptive.get(name, 1.0)


@dataclass(slots=True)
class PriorityBreakdown:
    """Final priority with its diagnostic breakdown."""

    creature_id: int
    total: float
    base: float
    multiplier: float
    factors: dict[str, float] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Abstract factor
# ---------------------------------------------------------------------------

class PriorityFactor(ABC):
    """One additive term of the priority function.

    Subclass this and implement:
      - name:       unique factor identifier
      - score(ctx): contribution, may be negative
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique factor identifier (e.g. 'distance')."""

    @abstractmethod
    def score(self, ctx: PriorityContext) -> float:
        """Contribution of this factor for *ctx*."""


# ---------------------------------------------------------------------------
# Scorer
# ---------------------------------------------------------------------------

def score_context(
    ctx: PriorityContext,
    factors: Iterable[PriorityFactor],
    multiplier: float = 1.0,
) -> PriorityBreakdown:
    """Pure scoring of a resolved context."""
    base = BASE_PRIORITY * ctx.weights.base_weight
    contributions = {f.name: f.score(ctx) for f in factors}
    raw = base + sum(contributions.values())
    total = max(0.0, min(MAX_PRIORITY, raw * multiplier))
    return PriorityBreakdown(ctx.creature_id, total, base, multiplier, contributions)


class PriorityScorer:
    """Scores live candidates using tracker, classifier, patterns and feedback.

    Usage::

        scorer = PriorityScorer(config, tracker, classifier, patterns, feedback, clock, player)
        breakdown = scorer.score(creature)
    """

    __slots__ = (
        "_config", "_tracker", "_classifier", "_patterns", "_feedback",
        "_clock", "_player_position", "_factors",
    )

    def __init__(
        self,
        config: CombatConfig,
        tracker: BehaviorTracker,
        classifier: BehaviorClassifier,
        patterns: PatternRepository,
        feedback: CombatFeedback,
        clock: Callable[[], int],
        player_position: Callable[[], Access[Position]],
        factors: Iterable[PriorityFactor] | None = None,
    ) -> None:
        from src.ai.priority.factors import default_factors

        self._config = config
        self._tracker = tracker
        self._classifier = classifier
        self._patterns = patterns
        self._feedback = feedback
        self._clock = clock
        self._player_position = player_position
        self._factors: list[PriorityFactor] = list(factors) if factors is not None else default_factors()

    @property
    def factors(self) -> list[PriorityFactor]:
        return list(self._factors)

    def register(self, factor: PriorityFactor) -> PriorityFactor:
        self._factors.append(factor)
        return factor

    def build_context(self, creature: CreatureAdapter) -> PriorityContext | None:
        """Resolve a context, or None if the creature cannot be scored."""
        cid = creature.id()
        pos = creature.position()
        player = self._player_position()
        if not cid.ok or not pos.ok or not player.ok:
            return None
        now = self._clock()
        name = creature.name().unwrap_or("unknown")
        record = self._tracker.get(cid.value)
        return PriorityContext(
            creature_id=cid.value,
            name=name,
            position=pos.value,
            direction=creature.direction().unwrap_or(record.last_direction if record else 0),
            health=creature.health_percent().unwrap_or(100),
            player=player.value,
            now=now,
            weights=self._config.priority,
            pattern=self._patterns.get_or_default(name),
            record=record,
            classification=self._classifier.get(name),
            adaptive=dict(self._feedback.weights),
            dps=self._tracker.dps(record, now) if record else 0.0,
            recent_damage=self._tracker.recent_damage(record, now) if record else 0.0,
            is_walking=creature.is_walking(),
        )

    def score(self, creature: CreatureAdapter) -> PriorityBreakdown | None:
        ctx = self.build_context(creature)
        if ctx is None:
            return None
        return score_context(ctx, self._factors, self._feedback.adaptive_multiplier())
