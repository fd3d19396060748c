"""Tests for the CombatCore wiring.

Covers:
- Host events are dispatched to the right components
- start() registers the periodic passes and tick() runs them
- The update pass tracks, classifies and prunes
- A volume level change retunes cooldown smoothing on live records
- Death folds the record into type statistics and ends the engagement
- is_position_dangerous against a creature that just turned to the player
- A broken third-party handler does not disturb the core
- Core events are journaled in the combat event log
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.ai.volume import VOLUME_PARAMS
from src.config import CombatConfig
from src.core.enums import Direction, EventType, ScenarioType, VolumeLevel
from src.core.models import Position
from src.core.patterns import MemoryStore
from src.engine.combat_core import HANDLER_PRIORITIES, CombatCore
from tests.helpers.fake_host import FakeClock, FakeWorld


def _make_core(world: FakeWorld, clock: FakeClock | None = None, **overrides) -> CombatCore:
    return CombatCore(world, CombatConfig(**overrides), clock=clock or FakeClock())


class TestWiring:
    """Handlers and timers."""

    def test_one_handler_per_host_event(self):
        core = _make_core(FakeWorld())
        for event in HANDLER_PRIORITIES:
            assert core.bus.handler_count(event) == 1

    def test_shutdown_detaches_handlers(self):
        core = _make_core(FakeWorld())
        core.start()
        core.shutdown()
        assert core.bus.handler_count(EventType.CREATURE_MOVED) == 0
        assert core.scheduler.pending() == []

    def test_start_registers_timers(self):
        clock = FakeClock()
        core = _make_core(FakeWorld(), clock)
        core.start()
        core.start()
        names = sorted(t.name for t in core.scheduler.pending())
        assert names == ["auto_tune", "decay", "update"]

        clock.advance(499)
        assert core.tick() == 0
        clock.advance(1)
        assert core.tick() == 1
        assert core.stats.updates == 1

    def test_moved_event_samples_creature(self):
        world = FakeWorld(player=(10, 10))
        clock = FakeClock()
        core = _make_core(world, clock)
        worm = world.add(1, "Rotworm", (14, 10), direction=Direction.WEST)
        core.bus.emit(EventType.CREATURE_APPEARED, worm)
        clock.advance(500)
        worm.move_to(13, 10)
        core.bus.emit(EventType.CREATURE_MOVED, worm)

        record = core.tracker.get(1)
        assert record.movement_samples == 1
        assert record.chase_count == 1
        assert core.stats.events_handled == 2

    def test_broken_external_handler_is_isolated(self):
        world = FakeWorld(player=(10, 10))
        core = _make_core(world)

        def broken(_creature):
            raise RuntimeError("observer bug")

        core.bus.on(EventType.CREATURE_MOVED, broken, priority=100)
        worm = world.add(1, "Rotworm", (14, 10))
        core.bus.emit(EventType.CREATURE_MOVED, worm)
        assert 1 in core.tracker
        assert core.session_stats()["handler_errors"] == 1


class TestUpdatePass:
    """The periodic update."""

    def test_tracks_hostiles_in_range(self):
        world = FakeWorld(player=(10, 10))
        core = _make_core(world)
        world.add(1, "Rotworm", (12, 10))
        world.add(2, "Rotworm", (25, 10))
        core.update_all()
        assert 1 in core.tracker
        assert 2 not in core.tracker
        assert core.scenario.state.scenario == ScenarioType.SINGLE

    def test_classifies_after_enough_samples(self):
        world = FakeWorld(player=(10, 10))
        clock = FakeClock()
        core = _make_core(world, clock)
        world.add(1, "Dragon", (14, 10), direction=Direction.WEST)
        for _ in range(16):
            core.update_all()
            clock.advance(500)
        result = core.classifier.get("dragon")
        assert result is not None
        assert result.is_ranged

    def test_prunes_creatures_that_left(self):
        world = FakeWorld(player=(10, 10))
        clock = FakeClock()
        core = _make_core(world, clock)
        worm = world.add(1, "Rotworm", (12, 10))
        core.update_all()
        worm.move_to(30, 10)
        clock.advance(12_500)
        core.update_all()
        assert 1 not in core.tracker

    def test_volume_change_retunes_existing_records(self):
        world = FakeWorld(player=(10, 10))
        clock = FakeClock()
        core = _make_core(world, clock)
        dragon = world.add(1, "Dragon", (12, 10))
        core.bus.emit(EventType.CREATURE_APPEARED, dragon)
        assert core.tracker.get(1).cooldown.alpha == VOLUME_PARAMS[VolumeLevel.NORMAL].ewma_alpha

        core.start()
        clock.advance(500)
        core.tick()
        assert core.volume.level == VolumeLevel.LOW
        low_alpha = VOLUME_PARAMS[VolumeLevel.LOW].ewma_alpha
        assert core.tracker.ewma_alpha == low_alpha
        assert core.tracker.get(1).cooldown.alpha == low_alpha


class TestLifecycle:
    """Deaths and disappearances."""

    def test_death_counts_kill_and_ends_engagement(self):
        world = FakeWorld(player=(10, 10))
        clock = FakeClock()
        core = _make_core(world, clock)
        worm = world.add(1, "Rotworm", (11, 10), direction=Direction.WEST)
        core.bus.emit(EventType.CREATURE_APPEARED, worm)
        core.scenario.detect_scenario(force=True)
        assert core.on_attack_command(1)
        assert core.scenario.is_engaged()

        clock.advance(4_000)
        world.kill(1)
        core.bus.emit(EventType.CREATURE_DIED, 1)

        assert 1 not in core.tracker
        assert core.stats.kills == 1
        assert core.tracker.type_stats("rotworm").kills == 1
        assert not core.scenario.state.is_engaged
        assert core.session_stats()["avg_kill_time_ms"] == 4_000
        categories = [e.category for e in core.event_log.latest(10)]
        assert "kill" in categories
        assert EventType.ENGAGEMENT_ENDED.value in categories

    def test_disappear_is_not_a_kill(self):
        world = FakeWorld(player=(10, 10))
        core = _make_core(world)
        worm = world.add(1, "Rotworm", (11, 10))
        core.bus.emit(EventType.CREATURE_APPEARED, worm)
        core.bus.emit(EventType.CREATURE_DISAPPEARED, 1)
        assert core.stats.kills == 0
        assert core.tracker.type_stats("rotworm").encounters == 1

    def test_attack_command_on_dead_creature(self):
        world = FakeWorld(player=(10, 10))
        core = _make_core(world)
        world.add(1, "Rotworm", (11, 10))
        world.kill(1)
        assert core.on_attack_command(1) is False
        assert core.on_attack_command(404) is False


class TestDanger:
    """Position danger and the immediate threat poll."""

    def test_turn_toward_player_makes_tile_dangerous(self):
        world = FakeWorld(player=(10, 10))
        clock = FakeClock()
        core = _make_core(world, clock)
        dragon = world.add(1, "Dragon", (13, 10), direction=Direction.WEST)
        core.bus.emit(EventType.CREATURE_TURNED, dragon, int(Direction.WEST))

        dangerous, score = core.is_position_dangerous(Position(10, 10))
        assert dangerous
        assert score > 0.5
        assert core.is_position_dangerous((10, 14)) == (False, 0.0)
        assert core.get_immediate_threat().immediate_threat

        categories = [e.category for e in core.event_log.latest(10)]
        assert EventType.THREAT_DETECTED.value in categories

    def test_no_wave_type_is_never_dangerous(self):
        world = FakeWorld(player=(10, 10))
        clock = FakeClock()
        core = _make_core(world, clock)
        core.patterns.persist("Rotworm", {"has_wave_attack": False})
        worm = world.add(1, "Rotworm", (11, 10), direction=Direction.WEST)
        core.bus.emit(EventType.CREATURE_TURNED, worm, int(Direction.WEST))
        assert core.is_position_dangerous(Position(10, 10)) == (False, 0.0)


class TestSummary:
    """Session statistics and pattern store fallback."""

    def test_session_stats_keys(self):
        core = _make_core(FakeWorld())
        stats = core.session_stats()
        for key in (
            "creatures_tracked", "kills", "damage_received", "waves_observed",
            "predictions_correct", "predictions_missed", "auto_tune_adjustments",
            "telemetry_samples", "pattern_fallback",
        ):
            assert key in stats
        summary = core.summary()
        assert set(summary) == {"session", "feedback", "volume", "scenario", "threat_metrics"}

    def test_unready_store_reports_fallback(self):
        core = CombatCore(FakeWorld(), CombatConfig(), clock=FakeClock(), store=MemoryStore(available=False))
        assert core.session_stats()["pattern_fallback"] is True
