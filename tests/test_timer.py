"""Tests for the phase-driven timer state machine."""

from __future__ import annotations

from copy import deepcopy
from typing import Any
import asyncio
import unittest

from kazari.config import DEFAULT_CONFIG
from kazari.enums import PhaseType, TimerEvents
from kazari.events import BusRegistry
from kazari.exceptions import ModuleBindingError, PhaseIndexError, TimerConfigurationError
from kazari.modules import ConfigModule, ModuleFactory, Phase, PhaseSnapshot, Timer
from kazari.scheduling import AsyncioIntervalScheduler, ManualScheduler


def _phases(*specs: tuple[PhaseType, int, bool]) -> list[Phase]:
    return [Phase(kind, allocated, can_overrun) for kind, allocated, can_overrun in specs]


PLANNING = (PhaseType.PLANNING, 10, True)
FOCUS = (PhaseType.FOCUS, 10, False)
BREAK = (PhaseType.BREAK, 10, False)


class TimerTests(unittest.TestCase):
    """Drive the timer with a manual clock and record what it emits."""

    def setUp(self) -> None:
        self.registry = BusRegistry()
        self.factory = ModuleFactory(self.registry)
        self.clock = ManualScheduler()
        self.events: list[tuple[TimerEvents, PhaseSnapshot]] = []
        observer = self.registry.get_bus("Observer:Bus")
        for event in TimerEvents:
            observer.on(event, self._recorder(event), name=event.value)

    def tearDown(self) -> None:
        self.factory.destroy_all()
        self.registry.clear()

    def _recorder(self, event: TimerEvents) -> Any:
        def record(payload: dict[str, PhaseSnapshot]) -> None:
            self.events.append((event, payload["phase"]))

        return record

    def _timer(self, *specs: tuple[PhaseType, int, bool], tick: int = 5) -> Timer:
        return self.factory.get_instance(
            Timer, scheduler=self.clock, phases=_phases(*specs), tick_duration=tick
        )

    def _names(self) -> list[TimerEvents]:
        return [event for event, _ in self.events]

    def test_get_instance_is_a_singleton(self) -> None:
        timer = self._timer(FOCUS)
        self.assertIs(self.factory.get_instance(Timer), timer)
        self.assertEqual(timer.bus.key, "Timer:Bus")

    def test_loads_phases_and_tick_from_config(self) -> None:
        config = deepcopy(DEFAULT_CONFIG)
        config["timer"]["tick_duration_ms"] = 250
        self.factory.get_instance(ConfigModule, config=config)

        timer = self.factory.get_instance(Timer, scheduler=self.clock)

        self.assertEqual(
            [phase.type for phase in timer.phases],
            [PhaseType.PLANNING, PhaseType.FOCUS, PhaseType.BREAK],
        )
        self.assertTrue(timer.phases[0].can_overrun)
        self.assertEqual(timer.tick_duration, 250)

    def test_missing_phases_raise(self) -> None:
        with self.assertRaises(TimerConfigurationError):
            self.factory.get_instance(Timer, scheduler=self.clock)

    def test_idle_until_started(self) -> None:
        timer = self._timer(FOCUS, BREAK)
        self.assertFalse(timer.is_running)
        self.assertEqual(timer.current_phase_index, -1)
        self.assertEqual(timer.current_phase.type, PhaseType.FOCUS)
        self.assertEqual(self.events, [])

    def test_start_emits_set_then_start(self) -> None:
        timer = self._timer(FOCUS, BREAK)
        timer.start()
        self.assertEqual(self._names(), [TimerEvents.PHASE_SET, TimerEvents.PHASE_START])
        self.assertTrue(timer.is_running)
        self.assertEqual(timer.current_phase.remaining_time, 10)
        self.assertEqual(timer.current_phase.start_time, self.clock.now())

    def test_single_phase_wraps_to_itself(self) -> None:
        timer = self._timer(FOCUS)
        timer.start()
        started_at = self.clock.now()
        self.events.clear()

        self.clock.advance(5)
        self.assertEqual(timer.current_phase.remaining_time, 5)
        self.clock.advance(5)

        self.assertEqual(
            self._names(),
            [
                TimerEvents.TICK,
                TimerEvents.TICK,
                TimerEvents.PHASE_END,
                TimerEvents.PHASE_SET,
                TimerEvents.PHASE_START,
            ],
        )
        last_tick = self.events[1][1]
        self.assertEqual(last_tick.remaining_time, 0)
        self.assertEqual(timer.current_phase.type, PhaseType.FOCUS)
        self.assertEqual(timer.current_phase.start_time, started_at + 10)
        self.assertEqual(timer.current_phase.remaining_time, 10)

    def test_overrun_phase_does_not_auto_transition(self) -> None:
        timer = self._timer(PLANNING, FOCUS)
        timer.set_current_phase(0)
        timer.start()

        self.clock.advance(30)

        self.assertEqual(timer.current_phase.type, PhaseType.PLANNING)
        self.assertLess(timer.current_phase.remaining_time, 0)
        self.assertEqual(timer.current_phase.remaining_time, -20)
        self.assertGreater(timer.current_phase.elapsed_time, timer.current_phase.allocated_time)
        self.assertNotIn(TimerEvents.PHASE_END, self._names())

    def test_phase_without_overrun_moves_to_next(self) -> None:
        timer = self._timer(PLANNING, FOCUS, BREAK)
        timer.set_current_phase(1)
        self.assertEqual(timer.current_phase.type, PhaseType.FOCUS)
        timer.start()
        self.assertEqual(timer.current_phase.remaining_time, timer.current_phase.allocated_time)
        self.events.clear()

        self.clock.advance(10)

        self.assertEqual(timer.current_phase.type, PhaseType.BREAK)
        transitions = [name for name in self._names() if name is not TimerEvents.TICK]
        self.assertEqual(
            transitions,
            [TimerEvents.PHASE_END, TimerEvents.PHASE_SET, TimerEvents.PHASE_START],
        )
        ended = next(snap for name, snap in self.events if name is TimerEvents.PHASE_END)
        self.assertEqual(ended.type, PhaseType.FOCUS)
        self.assertFalse(ended.is_active)
        self.assertEqual(ended.elapsed_time, 10)

    def test_last_phase_wraps_to_first(self) -> None:
        timer = self._timer(PLANNING, FOCUS)
        timer.set_current_phase(1)
        timer.start()
        self.clock.advance(10)
        self.assertEqual(timer.current_phase_index, 0)
        self.assertEqual(timer.current_phase.type, PhaseType.PLANNING)

    def test_emits_tick_on_every_interval(self) -> None:
        timer = self._timer(PLANNING)
        timer.start()
        self.events.clear()

        self.clock.advance(15)

        self.assertEqual(self._names(), [TimerEvents.TICK] * 3)
        self.assertTrue(all(snap.type is PhaseType.PLANNING for _, snap in self.events))
        self.assertEqual([snap.elapsed_time for _, snap in self.events], [5, 10, 15])

    def test_manual_end_and_next_phase(self) -> None:
        timer = self._timer(PLANNING, FOCUS)
        timer.set_current_phase(0)
        timer.start()
        self.clock.advance(10)
        self.events.clear()

        timer.end_phase()
        self.assertEqual(self._names(), [TimerEvents.PHASE_END])
        self.assertEqual(self.events[0][1].type, PhaseType.PLANNING)
        self.assertFalse(timer.is_running)
        self.assertEqual(timer.current_phase.type, PhaseType.PLANNING)

        timer.start_next_phase()
        self.assertEqual(self._names()[1:], [TimerEvents.PHASE_SET, TimerEvents.PHASE_START])
        self.assertEqual(self.events[1][1].type, PhaseType.FOCUS)

    def test_skip_while_running(self) -> None:
        timer = self._timer(PLANNING, FOCUS, BREAK)
        timer.start()
        self.clock.advance(30)
        self.events.clear()

        timer.skip()

        self.assertEqual(
            self._names(),
            [TimerEvents.PHASE_END, TimerEvents.PHASE_SET, TimerEvents.PHASE_START],
        )
        self.assertEqual(timer.current_phase.type, PhaseType.FOCUS)
        self.assertEqual(self.clock.pending, 1)

    def test_set_current_phase_out_of_range(self) -> None:
        timer = self._timer(FOCUS, BREAK)
        with self.assertRaises(PhaseIndexError):
            timer.set_current_phase(2)
        with self.assertRaises(IndexError):
            timer.set_current_phase(-1)

    def test_set_current_phase_while_running_restarts(self) -> None:
        timer = self._timer(PLANNING, FOCUS, BREAK)
        timer.start()
        self.clock.advance(7)
        self.events.clear()

        timer.set_current_phase(2)

        self.assertEqual(
            self._names(),
            [TimerEvents.PHASE_END, TimerEvents.PHASE_SET, TimerEvents.PHASE_START],
        )
        self.assertEqual(timer.current_phase.type, PhaseType.BREAK)
        self.assertEqual(timer.current_phase.remaining_time, 10)
        self.assertFalse(timer.phases[0].is_active)
        self.assertEqual(self.clock.pending, 1)

    def test_restarting_clears_previous_interval(self) -> None:
        timer = self._timer(PLANNING)
        timer.start()
        timer.start()
        self.assertEqual(self.clock.pending, 1)
        self.events.clear()

        self.clock.advance(5)

        self.assertEqual(self._names(), [TimerEvents.TICK])

    def test_tick_duration_change_only_affects_cadence(self) -> None:
        timer = self._timer((PhaseType.FOCUS, 1_000, False))
        timer.start()
        self.clock.advance(5)
        self.events.clear()

        timer.set_tick_duration(20)
        self.clock.advance(10)
        self.assertEqual(self.events, [])
        self.clock.advance(10)

        self.assertEqual(self._names(), [TimerEvents.TICK])
        self.assertEqual(self.events[0][1].elapsed_time, 25)
        self.assertEqual(timer.tick_duration, 20)

    def test_tick_duration_must_be_positive(self) -> None:
        timer = self._timer(FOCUS)
        with self.assertRaises(ValueError):
            timer.set_tick_duration(0)

    def test_stop_returns_to_idle(self) -> None:
        timer = self._timer(FOCUS, BREAK)
        timer.start()
        self.events.clear()

        timer.stop()
        timer.stop()

        self.assertEqual(self._names(), [TimerEvents.PHASE_END])
        self.assertFalse(timer.is_running)
        self.assertEqual(self.clock.pending, 0)
        self.clock.advance(50)
        self.assertEqual(self._names(), [TimerEvents.PHASE_END])

    def test_tick_listener_may_skip(self) -> None:
        timer = self._timer((PhaseType.FOCUS, 1_000, False), BREAK)
        timer.start()
        handle = timer.bus.on(TimerEvents.TICK, lambda payload: timer.skip())

        self.clock.advance(5)
        handle.cancel()

        self.assertEqual(timer.current_phase.type, PhaseType.BREAK)
        self.assertEqual(self.clock.pending, 1)

    def test_phases_are_read_only_snapshots(self) -> None:
        timer = self._timer(FOCUS, BREAK)
        snapshots = timer.phases
        snapshots.clear()
        self.assertEqual(len(timer.phases), 2)
        self.assertIsInstance(timer.current_phase, PhaseSnapshot)

    def test_config_changes_reload_idle_timer(self) -> None:
        config = deepcopy(DEFAULT_CONFIG)
        config_module = self.factory.get_instance(ConfigModule, config=config)
        timer = self.factory.get_instance(Timer, scheduler=self.clock)

        config_module.set_value("timer.tick_duration_ms", 50)
        config_module.set_value(
            "timer.phases", [{"type": "break", "allocated_time": 1_000, "can_overrun": False}]
        )

        self.assertEqual(timer.tick_duration, 50)
        self.assertEqual([p.type for p in timer.phases], [PhaseType.BREAK])

    def test_config_phase_changes_ignored_while_running(self) -> None:
        config = deepcopy(DEFAULT_CONFIG)
        config_module = self.factory.get_instance(ConfigModule, config=config)
        timer = self.factory.get_instance(Timer, scheduler=self.clock)
        timer.start()

        with self.assertLogs("kazari.modules.timer", level="WARNING"):
            config_module.set_value("timer.phases", [{"type": "break", "allocated_time": 1}])

        self.assertEqual(len(timer.phases), 3)

    def test_destroy_stops_ticking_and_unbinds(self) -> None:
        timer = self._timer(FOCUS)
        timer.start()
        self.factory.destroy(Timer)
        self.assertEqual(self.clock.pending, 0)
        self.assertFalse(timer.is_bound)
        with self.assertRaises(ModuleBindingError):
            timer.emit(TimerEvents.TICK, {})


class TimerEventLoopTests(unittest.IsolatedAsyncioTestCase):
    """Run the timer on the real event loop."""

    async def test_failing_tick_listener_does_not_stall_the_timer(self) -> None:
        factory = ModuleFactory(BusRegistry())
        timer = factory.get_instance(
            Timer,
            scheduler=AsyncioIntervalScheduler(),
            phases=_phases((PhaseType.FOCUS, 30, False), (PhaseType.BREAK, 30, False)),
            tick_duration=10,
        )
        observer = factory.registry.get_bus("Observer:Bus")
        ticks: list[PhaseSnapshot] = []
        break_started = asyncio.Event()

        def on_tick(payload: dict[str, PhaseSnapshot]) -> None:
            ticks.append(payload["phase"])
            if len(ticks) == 1:
                raise RuntimeError("listener failed")

        def on_start(payload: dict[str, PhaseSnapshot]) -> None:
            if payload["phase"].type is PhaseType.BREAK:
                break_started.set()

        observer.on(TimerEvents.TICK, on_tick)
        observer.on(TimerEvents.PHASE_START, on_start)
        try:
            with self.assertLogs("kazari.scheduling", level="ERROR"):
                timer.start()
                await asyncio.wait_for(break_started.wait(), timeout=2)
            self.assertTrue(timer.is_running)
            self.assertEqual(timer.current_phase.type, PhaseType.BREAK)
            self.assertGreater(len(ticks), 1)
        finally:
            factory.destroy_all()


if __name__ == "__main__":
    unittest.main()
