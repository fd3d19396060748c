"""Tests for the REST API routes, called directly against an EngineManager."""

import sys
import os
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from fastapi import HTTPException

from src.api.app import create_app
from src.api.engine_manager import EngineManager
from src.api.routes.config import get_config
from src.api.routes.control import ControlAction, control, set_speed
from src.api.routes.learning import (
    apply_danger_suggestion,
    get_classifications,
    get_danger_suggestion,
    get_patterns,
)
from src.api.routes.state import (
    get_events,
    get_position_danger,
    get_scenario,
    get_stats,
    get_target,
    get_threat,
)
from src.config import CombatConfig


def _build_manager(**overrides):
    return EngineManager(CombatConfig(**overrides))


class TestAppFactory(unittest.TestCase):
    """Every route group is mounted under /api/v1."""

    def test_routes_registered(self):
        app = create_app(CombatConfig())
        paths = set(app.openapi()["paths"])
        for path in (
            "/api/v1/threat",
            "/api/v1/target",
            "/api/v1/position-danger",
            "/api/v1/scenario",
            "/api/v1/stats",
            "/api/v1/events",
            "/api/v1/classifications",
            "/api/v1/patterns",
            "/api/v1/danger/{name}",
            "/api/v1/danger/{name}/apply",
            "/api/v1/control/{action}",
            "/api/v1/speed",
            "/api/v1/config",
        ):
            self.assertIn(path, paths)


class TestStateRoutes(unittest.TestCase):
    """Live combat state after a stretch of arena time."""

    @classmethod
    def setUpClass(cls):
        cls.mgr = _build_manager()
        cls.mgr.advance(100)

    def test_threat_snapshot(self):
        resp = get_threat(manager=self.mgr)
        self.assertGreaterEqual(resp.total_threat, 0.0)
        self.assertGreaterEqual(resp.threat_count, 0)
        self.assertLessEqual(resp.highest_confidence, 1.0)

    def test_target_matches_arena_choice(self):
        resp = get_target(manager=self.mgr)
        choice = self.mgr.last_choice
        if choice is None:
            self.assertIsNone(resp.creature_id)
            self.assertEqual(resp.reason, "no_target")
        else:
            self.assertEqual(resp.creature_id, choice.creature_id)

    def test_position_danger_echoes_tile(self):
        resp = get_position_danger(x=3, y=4, z=0, manager=self.mgr)
        self.assertEqual((resp.x, resp.y, resp.z), (3, 4, 0))
        self.assertIsInstance(resp.dangerous, bool)
        self.assertGreaterEqual(resp.score, 0.0)

    def test_scenario(self):
        resp = get_scenario(manager=self.mgr)
        self.assertIn(resp.scenario, {"idle", "single", "few", "moderate", "swarm", "overwhelming"})
        self.assertTrue(resp.policy)

    def test_stats_include_arena(self):
        resp = get_stats(manager=self.mgr)
        self.assertEqual(resp.arena["steps"], 100)
        self.assertEqual(resp.session["updates"], 20)
        self.assertIn("level", resp.volume)

    def test_events_feed(self):
        resp = get_events(since_ms=None, limit=5, manager=self.mgr)
        self.assertLessEqual(len(resp.events), 5)
        self.assertEqual(resp.total, len(self.mgr.event_log))
        future = get_events(since_ms=10**9, limit=100, manager=self.mgr)
        self.assertEqual(future.events, [])


class TestLearningRoutes(unittest.TestCase):
    """Classifications, patterns and the danger tuner."""

    @classmethod
    def setUpClass(cls):
        cls.mgr = _build_manager()
        cls.mgr.advance(50)

    def test_lists_are_sorted_and_typed(self):
        names = [c.name for c in get_classifications(manager=self.mgr)]
        self.assertEqual(names, sorted(names))
        for pattern in get_patterns(manager=self.mgr):
            self.assertEqual(pattern.name, pattern.name.lower())
            self.assertTrue(0 <= pattern.danger_level <= 4)

    def test_unknown_type_is_404(self):
        with self.assertRaises(HTTPException) as ctx:
            get_danger_suggestion("Nobody", manager=self.mgr)
        self.assertEqual(ctx.exception.status_code, 404)

    def test_apply_unknown_type(self):
        resp = apply_danger_suggestion(" Nobody ", force=False, manager=self.mgr)
        self.assertEqual(resp.name, "nobody")
        self.assertFalse(resp.applied)
        self.assertEqual(resp.message, "no data")


class TestControlRoutes(unittest.TestCase):
    """Arena lifecycle without the background thread."""

    def setUp(self):
        self.mgr = _build_manager()

    def test_step_advances_one_tick(self):
        resp = control(ControlAction.step, manager=self.mgr)
        self.assertEqual(resp.status, "ok")
        self.assertEqual(resp.time_ms, 1_100)

    def test_pause_when_not_running(self):
        resp = control(ControlAction.pause, manager=self.mgr)
        self.assertEqual(resp.status, "error")

    def test_reset_rebuilds(self):
        self.mgr.advance(20)
        old_core = self.mgr.core
        resp = control(ControlAction.reset, manager=self.mgr)
        self.assertEqual(resp.time_ms, 1_000)
        self.assertIsNot(self.mgr.core, old_core)
        self.assertEqual(self.mgr.core.stats.updates, 0)

    def test_speed(self):
        set_speed(sps=10.0, manager=self.mgr)
        self.assertAlmostEqual(self.mgr.tick_rate, 0.1)

    def test_config_reports_tick_rate(self):
        resp = get_config(manager=self.mgr)
        self.assertEqual(resp.arena_step_ms, 100)
        self.assertAlmostEqual(resp.tick_rate, 0.05)


if __name__ == "__main__":
    unittest.main()
