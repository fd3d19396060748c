"""Tests for priority scoring.

Covers:
- A candidate whose attack is imminent outranks an otherwise identical one, even with a short cooldown
- Closer and more wounded candidates score higher
- Totals are clamped to [0, 1000] after the adaptive multiplier
- The scorer imminent window may not be narrower than the predictor one
- Custom factors plug into the scorer and show up in the breakdown
- Scoring a creature without a position yields None
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from src.ai.classifier import BehaviorClassifier
from src.ai.feedback import CombatFeedback
from src.ai.priority import PriorityContext, PriorityFactor, PriorityScorer, default_factors, score_context
from src.ai.tracker import BehaviorTracker
from src.config import CombatConfig, PriorityWeights
from src.core.enums import Direction
from src.core.models import MonsterRecord, Position
from src.core.patterns import PatternEntry, PatternRepository
from tests.helpers.fake_host import FakeClock, FakeCreature, FakeWorld, adapt, gateway

NOW = 100_000


def _make_record(since_attack: int, cooldown: float = 2000.0) -> MonsterRecord:
    record = MonsterRecord(
        creature_id=1,
        name="dragon",
        tracking_start=NOW - 20_000,
        last_position=Position(12, 10),
        last_direction=Direction.WEST,
    )
    record.cooldown.mean = cooldown
    record.last_attack_time = NOW - since_attack
    return record


def _make_context(record=None, position=(12, 10), health=100, direction=Direction.WEST) -> PriorityContext:
    return PriorityContext(
        creature_id=1,
        name="dragon",
        position=Position(*position),
        direction=direction,
        health=health,
        player=Position(10, 10),
        now=NOW,
        weights=PriorityWeights(),
        pattern=PatternEntry(name="dragon"),
        record=record,
    )


class _ConstantFactor(PriorityFactor):
    def __init__(self, value: float) -> None:
        self._value = value

    @property
    def name(self) -> str:
        return "constant"

    def score(self, ctx: PriorityContext) -> float:
        return self._value


class TestMonotonicity:
    """Changing one input in the dangerous direction never lowers the score."""

    def test_imminent_attack_scores_higher(self):
        factors = default_factors()
        imminent = score_context(_make_context(_make_record(since_attack=1800)), factors)
        cooling = score_context(_make_context(_make_record(since_attack=200)), factors)
        assert imminent.total > cooling.total
        assert imminent.factors["wave_threat"] > cooling.factors["wave_threat"]

    def test_imminent_with_short_cooldown_scores_higher(self):
        # 1000 ms cooldown: 400 ms left is imminent even though only 60% has elapsed
        factors = default_factors()
        imminent = score_context(_make_context(_make_record(since_attack=600, cooldown=1000.0)), factors)
        later = score_context(_make_context(_make_record(since_attack=300, cooldown=1000.0)), factors)
        assert imminent.total > later.total
        assert imminent.factors["wave_threat"] > later.factors["wave_threat"]

    def test_late_in_cooldown_adds_to_imminent_bonus(self):
        factors = default_factors()
        early = score_context(_make_context(_make_record(since_attack=600, cooldown=1000.0)), factors)
        late = score_context(_make_context(_make_record(since_attack=800, cooldown=1000.0)), factors)
        assert late.factors["wave_threat"] - early.factors["wave_threat"] == pytest.approx(10 * 3.0)

    def test_closer_scores_higher(self):
        factors = default_factors()
        near = score_context(_make_context(position=(11, 10)), factors)
        far = score_context(_make_context(position=(16, 10)), factors)
        assert near.factors["distance"] > far.factors["distance"]
        assert near.total > far.total

    def test_wounded_scores_higher(self):
        factors = default_factors()
        healthy = score_context(_make_context(health=100), factors)
        wounded = score_context(_make_context(health=10), factors)
        assert wounded.total > healthy.total
        assert wounded.factors["health"] == pytest.approx(30 * 0.7)

    def test_untracked_creature_has_no_tracked_danger(self):
        breakdown = score_context(_make_context(record=None), default_factors())
        assert breakdown.factors["tracked_danger"] == 0.0
        assert breakdown.base == 100.0


class TestClamp:
    """Totals stay within [0, 1000]."""

    def test_upper_clamp(self):
        breakdown = score_context(_make_context(), [_ConstantFactor(5_000)], multiplier=1.5)
        assert breakdown.total == 1000.0

    def test_lower_clamp(self):
        breakdown = score_context(_make_context(), [_ConstantFactor(-5_000)])
        assert breakdown.total == 0.0

    def test_multiplier_scales_total(self):
        ctx = _make_context()
        neutral = score_context(ctx, [_ConstantFactor(0)], multiplier=1.0)
        boosted = score_context(ctx, [_ConstantFactor(0)], multiplier=1.2)
        assert boosted.total == pytest.approx(neutral.total * 1.2)


class TestScorer:
    """Live scoring through the scorer."""

    def _make_scorer(self, world: FakeWorld, clock: FakeClock) -> PriorityScorer:
        config = CombatConfig()
        player = gateway(world).player_position
        tracker = BehaviorTracker(config, clock, player)
        classifier = BehaviorClassifier(config, tracker, clock)
        return PriorityScorer(
            config, tracker, classifier, PatternRepository(), CombatFeedback(config, clock), clock, player,
        )

    def test_score_live_creature(self):
        world = FakeWorld(player=(10, 10))
        scorer = self._make_scorer(world, FakeClock(NOW))
        dragon = world.add(1, "Dragon", (12, 10), direction=Direction.WEST)
        breakdown = scorer.score(adapt(dragon))
        assert breakdown.creature_id == 1
        assert breakdown.multiplier == pytest.approx(1.0)
        assert 0 < breakdown.total <= 1000
        assert set(breakdown.factors) == {f.name for f in default_factors()}

    def test_registered_factor_in_breakdown(self):
        world = FakeWorld(player=(10, 10))
        scorer = self._make_scorer(world, FakeClock(NOW))
        dragon = world.add(1, "Dragon", (12, 10))
        without = scorer.score(adapt(dragon)).total
        scorer.register(_ConstantFactor(50))
        breakdown = scorer.score(adapt(dragon))
        assert breakdown.factors["constant"] == 50
        assert breakdown.total == pytest.approx(without + 50)

    def test_positionless_creature(self):
        world = FakeWorld(player=(10, 10))
        scorer = self._make_scorer(world, FakeClock(NOW))

        class _NoPosition(FakeCreature):
            def get_position(self):
                return None

        assert scorer.score(adapt(_NoPosition(5, "Ghost", (11, 10)))) is None


class TestImminentWindows:
    """The scorer's imminent window covers the predictor's."""

    def test_defaults_are_consistent(self):
        config = CombatConfig()
        assert config.priority.imminent_threshold_ms >= config.imminent_ms

    def test_scorer_window_narrower_than_predictor_rejected(self):
        with pytest.raises(ValueError):
            CombatConfig(imminent_ms=700)

    def test_wider_scorer_window_accepted(self):
        config = CombatConfig(imminent_ms=400, priority=PriorityWeights(imminent_threshold_ms=900))
        assert config.priority.imminent_threshold_ms == 900
