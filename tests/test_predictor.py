"""Tests for predictor geometry and wave-attack estimates.

Covers:
- Facing cone for orthogonal and diagonal directions
- A tile in front of a direction is never in front of its opposite
- Wave path bounds: range, width, behind the source, the source tile
- predict_wave_attack for no-wave types, creatures facing away,
  creatures off cooldown and creatures still cooling down
- Variance penalty lowers confidence
- Position danger aggregation
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from src.ai.predictor import (
    Predictor,
    is_facing_position,
    is_position_in_wave_path,
    predict_position,
)
from src.ai.tracker import BehaviorTracker
from src.config import CombatConfig
from src.core.enums import DangerLevel, Direction
from src.core.models import NO_ATTACK_MS, Position
from src.core.patterns import PatternRepository
from tests.helpers.fake_host import FakeClock, FakeWorld, adapt, gateway


def _make_predictor(world: FakeWorld, clock: FakeClock, patterns: PatternRepository | None = None):
    config = CombatConfig()
    player = gateway(world).player_position
    tracker = BehaviorTracker(config, clock, player)
    patterns = patterns or PatternRepository()
    return Predictor(config, tracker, patterns, clock, player), tracker, patterns


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

class TestFacing:
    """The one-tile-wide facing cone."""

    def test_orthogonal_cone(self):
        pos = Position(5, 5)
        assert is_facing_position(pos, Direction.EAST, Position(6, 5))
        assert is_facing_position(pos, Direction.EAST, Position(9, 4))
        assert is_facing_position(pos, Direction.EAST, Position(7, 6))
        assert not is_facing_position(pos, Direction.EAST, Position(7, 7))
        assert not is_facing_position(pos, Direction.EAST, Position(4, 5))
        assert not is_facing_position(pos, Direction.EAST, Position(5, 5))

    def test_diagonal_cone(self):
        pos = Position(5, 5)
        assert is_facing_position(pos, Direction.NORTHEAST, Position(6, 4))
        assert is_facing_position(pos, Direction.NORTHEAST, Position(9, 1))
        assert not is_facing_position(pos, Direction.NORTHEAST, Position(6, 5))
        assert not is_facing_position(pos, Direction.NORTHEAST, Position(4, 4))

    def test_other_floor_never_faced(self):
        assert not is_facing_position(Position(5, 5, 0), Direction.EAST, Position(6, 5, 1))

    def test_opposite_direction_never_faces_same_tile(self):
        pos = Position(0, 0)
        for direction in Direction:
            for x in range(-5, 6):
                for y in range(-5, 6):
                    target = Position(x, y)
                    if is_facing_position(pos, direction, target):
                        assert not is_facing_position(pos, direction.opposite(), target), (direction, target)


class TestWavePath:
    """Beam cast from the source along its facing."""

    def test_east_beam_bounds(self):
        src = Position(0, 0)
        assert not is_position_in_wave_path(Position(6, 0), src, Direction.EAST, 5, 1)
        assert is_position_in_wave_path(Position(3, 0), src, Direction.EAST, 5, 1)
        assert is_position_in_wave_path(Position(3, 1), src, Direction.EAST, 5, 1)
        assert not is_position_in_wave_path(Position(3, 2), src, Direction.EAST, 5, 1)
        assert not is_position_in_wave_path(Position(-3, 0), src, Direction.EAST, 5, 1)
        assert not is_position_in_wave_path(src, src, Direction.EAST, 5, 1)

    def test_every_tile_in_path_respects_range_and_side(self):
        src = Position(0, 0)
        for x in range(-8, 9):
            for y in range(-8, 9):
                pos = Position(x, y)
                if is_position_in_wave_path(pos, src, Direction.SOUTH, 5, 1):
                    assert 0 < pos.chebyshev(src) <= 5
                    assert y > 0 and abs(x) <= 1

    def test_diagonal_beam_hugs_diagonal(self):
        src = Position(0, 0)
        assert is_position_in_wave_path(Position(3, 3), src, Direction.SOUTHEAST, 5, 1)
        assert is_position_in_wave_path(Position(3, 2), src, Direction.SOUTHEAST, 5, 1)
        assert not is_position_in_wave_path(Position(4, 1), src, Direction.SOUTHEAST, 5, 1)
        assert not is_position_in_wave_path(Position(-2, -2), src, Direction.SOUTHEAST, 5, 1)

    def test_predict_position_steps_along_direction(self):
        assert predict_position(Position(5, 5), Direction.NORTHWEST, 2) == Position(3, 3)


# ---------------------------------------------------------------------------
# Wave attack prediction
# ---------------------------------------------------------------------------

class TestPredictWaveAttack:
    """Imminence and confidence of a creature's next wave."""

    def test_type_without_wave(self):
        world = FakeWorld(player=(10, 10))
        clock = FakeClock()
        predictor, _, patterns = _make_predictor(world, clock)
        patterns.persist("Rotworm", {"has_wave_attack": False})
        worm = world.add(1, "Rotworm", (11, 10), direction=Direction.WEST)
        result = predictor.predict_wave_attack(adapt(worm))
        assert result.is_imminent is False
        assert result.confidence == pytest.approx(0.8)
        assert result.time_to_attack == NO_ATTACK_MS

    def test_not_facing_player(self):
        world = FakeWorld(player=(10, 10))
        predictor, _, _ = _make_predictor(world, FakeClock())
        dragon = world.add(1, "Dragon", (12, 10), direction=Direction.EAST)
        result = predictor.predict_wave_attack(adapt(dragon))
        assert result.is_imminent is False
        assert result.confidence == pytest.approx(0.7)

    def test_untracked_facing_creature_is_imminent(self):
        world = FakeWorld(player=(10, 10))
        predictor, _, _ = _make_predictor(world, FakeClock())
        dragon = world.add(1, "Dragon", (12, 10), direction=Direction.WEST)
        result = predictor.predict_wave_attack(adapt(dragon))
        assert result.is_imminent is True
        assert result.time_to_attack == 0
        # 0.5 + 0.1 * 0.3 + 0.2 + 0.15 (past 80% of cooldown)
        assert result.confidence == pytest.approx(0.88)

    def test_cooling_down_creature_not_imminent(self):
        world = FakeWorld(player=(10, 10))
        clock = FakeClock(20_000)
        predictor, tracker, _ = _make_predictor(world, clock)
        dragon = world.add(1, "Dragon", (12, 10), direction=Direction.WEST)
        record = tracker.track(adapt(dragon))
        record.cooldown.mean = 2000.0
        record.last_attack_time = clock() - 500

        result = predictor.predict_wave_attack(adapt(dragon))
        assert result.is_imminent is False
        assert result.time_to_attack == pytest.approx(1500)
        assert result.confidence == pytest.approx(0.73)

    def test_variance_penalty_lowers_confidence(self):
        world = FakeWorld(player=(10, 10))
        clock = FakeClock(20_000)
        predictor, tracker, _ = _make_predictor(world, clock)
        dragon = world.add(1, "Dragon", (12, 10), direction=Direction.WEST)
        record = tracker.track(adapt(dragon))
        record.cooldown.mean = 2000.0
        record.cooldown.variance = 1000.0 ** 2
        record.last_attack_time = clock() - 500

        result = predictor.predict_wave_attack(adapt(dragon))
        # cv = 0.5 -> penalty 0.14
        assert result.confidence == pytest.approx(0.73 * 0.86, rel=1e-3)

    def test_cooldown_fallback_order(self):
        world = FakeWorld(player=(10, 10))
        clock = FakeClock()
        predictor, tracker, patterns = _make_predictor(world, clock)
        dragon = world.add(1, "Dragon", (12, 10))
        assert predictor.cooldown_for(1, "Dragon") == 2000
        patterns.persist("Dragon", {"wave_cooldown": 2600.0})
        assert predictor.cooldown_for(1, "Dragon") == 2600
        record = tracker.track(adapt(dragon))
        record.cooldown.mean = 1800.0
        assert predictor.cooldown_for(1, "Dragon") == 1800


class TestPositionDanger:
    """Danger aggregated over imminent beams."""

    def test_tile_in_imminent_beam(self):
        world = FakeWorld(player=(10, 10))
        predictor, _, _ = _make_predictor(world, FakeClock())
        dragon = world.add(1, "Dragon", (12, 10), direction=Direction.WEST)
        assessment = predictor.predict_position_danger(Position(10, 10), [adapt(dragon)])
        assert assessment.sources == 1
        assert assessment.level == DangerLevel.HIGH
        assert assessment.total == pytest.approx(2.0)

    def test_tile_behind_source_is_safe(self):
        world = FakeWorld(player=(10, 10))
        predictor, _, _ = _make_predictor(world, FakeClock())
        dragon = world.add(1, "Dragon", (12, 10), direction=Direction.WEST)
        assessment = predictor.predict_position_danger(Position(14, 10), [adapt(dragon)])
        assert assessment.level == DangerLevel.NONE
        assert assessment.sources == 0
