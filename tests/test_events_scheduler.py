"""Tests for the EventBus and the tick-driven Scheduler.

Covers:
- Handlers run highest priority first, ties in registration order
- A failing handler is counted and the remaining handlers still run
- Enum and string event keys address the same handlers
- Unsubscribe detaches a handler
- One-shot timers run once; recurring timers re-arm at now + interval
- Invalid delays and intervals are rejected
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from src.core.enums import EventType
from src.engine.events import EventBus
from src.engine.scheduler import Scheduler
from tests.helpers.fake_host import FakeClock


# ---------------------------------------------------------------------------
# EventBus
# ---------------------------------------------------------------------------

class TestEventBusOrdering:
    """Priority decides the handler order."""

    def test_higher_priority_runs_first(self):
        bus = EventBus()
        calls: list[str] = []
        bus.on("ping", lambda: calls.append("low"), priority=10)
        bus.on("ping", lambda: calls.append("high"), priority=40)
        bus.on("ping", lambda: calls.append("mid"), priority=25)
        bus.emit("ping")
        assert calls == ["high", "mid", "low"]

    def test_equal_priority_keeps_registration_order(self):
        bus = EventBus()
        calls: list[int] = []
        for i in range(4):
            bus.on("ping", lambda i=i: calls.append(i), priority=5)
        bus.emit("ping")
        assert calls == [0, 1, 2, 3]

    def test_arguments_are_forwarded(self):
        bus = EventBus()
        seen = []
        bus.on("hit", lambda amount, source=None: seen.append((amount, source)))
        bus.emit("hit", 42, source="dragon")
        assert seen == [(42, "dragon")]


class TestEventBusIsolation:
    """One broken handler must not starve the others."""

    def test_failing_handler_does_not_stop_others(self):
        bus = EventBus()
        calls: list[str] = []

        def broken():
            raise RuntimeError("boom")

        bus.on("ping", broken, priority=50)
        bus.on("ping", lambda: calls.append("after"), priority=10)
        completed = bus.emit("ping")
        assert calls == ["after"]
        assert completed == 1
        assert bus.error_count == 1

    def test_emit_without_handlers_is_noop(self):
        bus = EventBus()
        assert bus.emit("nobody_listens") == 0
        assert bus.emitted_count == 1


class TestEventBusKeys:
    """Enum members and their string values are the same event."""

    def test_enum_and_string_keys_match(self):
        bus = EventBus()
        calls = []
        bus.on(EventType.CREATURE_MOVED, lambda: calls.append("enum"))
        bus.emit("creature_moved")
        bus.on("creature_moved", lambda: calls.append("str"))
        bus.emit(EventType.CREATURE_MOVED)
        assert calls == ["enum", "enum", "str"]
        assert bus.handler_count(EventType.CREATURE_MOVED) == 2

    def test_unsubscribe_removes_handler(self):
        bus = EventBus()
        calls = []
        unsubscribe = bus.on(EventType.DAMAGE_RECEIVED, lambda amount: calls.append(amount))
        bus.emit(EventType.DAMAGE_RECEIVED, 10)
        unsubscribe()
        unsubscribe()  # second call is harmless
        bus.emit(EventType.DAMAGE_RECEIVED, 20)
        assert calls == [10]
        assert bus.handler_count(EventType.DAMAGE_RECEIVED) == 0

    def test_clear_single_event(self):
        bus = EventBus()
        bus.on("a", lambda: None)
        bus.on("b", lambda: None)
        bus.clear("a")
        assert bus.handler_count("a") == 0
        assert bus.handler_count("b") == 1


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------

class TestSchedulerOneShot:
    """call_later fires exactly once when due."""

    def test_runs_once_when_due(self):
        clock = FakeClock(10_000)
        sched = Scheduler(clock)
        calls = []
        sched.call_later(100, lambda: calls.append(clock()))

        assert sched.run_pending(10_099) == 0
        assert sched.run_pending(10_100) == 1
        assert sched.run_pending(20_000) == 0
        assert len(calls) == 1
        assert sched.pending() == []

    def test_negative_delay_rejected(self):
        sched = Scheduler(FakeClock())
        with pytest.raises(ValueError):
            sched.call_later(-1, lambda: None)

    def test_cancelled_timer_never_runs(self):
        clock = FakeClock(0)
        sched = Scheduler(clock)
        calls = []
        handle = sched.call_later(50, lambda: calls.append(1))
        handle.cancel()
        assert sched.run_pending(1_000) == 0
        assert calls == []


class TestSchedulerRecurring:
    """call_every re-arms relative to the run time."""

    def test_rearms_at_now_plus_interval(self):
        clock = FakeClock(0)
        sched = Scheduler(clock)
        handle = sched.call_every(500, lambda: None, name="update")
        assert handle.next_eligible_ms == 500

        # Late run: missed intervals are not replayed
        assert sched.run_pending(1_700) == 1
        assert handle.next_eligible_ms == 2_200
        assert sched.run_pending(2_199) == 0
        assert sched.run_pending(2_200) == 1
        assert handle.runs == 2

    def test_initial_delay_override(self):
        sched = Scheduler(FakeClock(1_000))
        handle = sched.call_every(500, lambda: None, initial_delay_ms=0)
        assert handle.next_eligible_ms == 1_000
        assert sched.next_due_ms() == 1_000

    def test_zero_interval_rejected(self):
        sched = Scheduler(FakeClock())
        with pytest.raises(ValueError):
            sched.call_every(0, lambda: None)

    def test_failing_timer_is_counted_and_rearmed(self):
        clock = FakeClock(0)
        sched = Scheduler(clock)

        def broken():
            raise RuntimeError("boom")

        handle = sched.call_every(100, broken)
        sched.run_pending(100)
        sched.run_pending(200)
        assert sched.error_count == 2
        assert handle.runs == 2
        assert not handle.cancelled

    def test_due_timers_run_in_due_order(self):
        sched = Scheduler(FakeClock(0))
        order = []
        sched.call_later(300, lambda: order.append("c"))
        sched.call_later(100, lambda: order.append("a"))
        sched.call_later(200, lambda: order.append("b"))
        sched.run_pending(1_000)
        assert order == ["a", "b", "c"]
