"""Headless wiring of the bus tree, the config module, the timer and the scheduler."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, TextIO

from .enums import TimerEvents
from .events import Bus, BusRegistry
from .modules import BaseModule, ConfigModule, ModuleFactory, Scheduler, Timer
from .modules.phase import PhaseSnapshot
from .scheduling import IntervalScheduler

LOGGER = logging.getLogger(__name__)


def format_ms(ms: int) -> str:
    """Render milliseconds as ``MM:SS``, with a leading minus when overrunning."""
    sign = "-" if ms < 0 else ""
    minutes, seconds = divmod(abs(ms) // 1000, 60)
    return f"{sign}{minutes:02d}:{seconds:02d}"


class PhaseReporter(BaseModule):
    """Print timer lifecycle events as plain text lines."""

    def __init__(
        self,
        bus: Bus | None = None,
        stream: TextIO | None = None,
        show_ticks: bool = False,
    ) -> None:
        super().__init__(bus)
        self._stream = stream or sys.stdout
        self.on(TimerEvents.PHASE_START, self.on_phase_start)
        self.on(TimerEvents.PHASE_END, self.on_phase_end)
        if show_ticks:
            self.on(TimerEvents.TICK, self.on_tick)

    def _write(self, line: str) -> None:
        self._stream.write(line + "\n")
        self._stream.flush()

    def on_phase_start(self, payload: dict[str, PhaseSnapshot]) -> None:
        phase = payload["phase"]
        overrun = ", may overrun" if phase.can_overrun else ""
        self._write(f"[{phase.type.value}] started ({format_ms(phase.allocated_time)}{overrun})")

    def on_phase_end(self, payload: dict[str, PhaseSnapshot]) -> None:
        phase = payload["phase"]
        self._write(f"[{phase.type.value}] ended after {format_ms(phase.elapsed_time)}")

    def on_tick(self, payload: dict[str, PhaseSnapshot]) -> None:
        phase = payload["phase"]
        self._write(f"[{phase.type.value}] {format_ms(phase.remaining_time)}")


class KazariRuntime:
    """Own one registry and build every module on it."""

    def __init__(
        self,
        config: dict[str, Any],
        scheduler: IntervalScheduler | None = None,
        stream: TextIO | None = None,
        show_ticks: bool = False,
    ) -> None:
        self.registry = BusRegistry()
        self.factory = ModuleFactory(self.registry)
        # Config first: the others query it over the bus while constructing.
        self.config = self.factory.get_instance(ConfigModule, config=config)
        self.timer = self.factory.get_instance(Timer, scheduler=scheduler)
        self.scheduler = self.factory.get_instance(Scheduler)
        self.reporter = self.factory.get_instance(
            PhaseReporter, stream=stream, show_ticks=show_ticks
        )

    async def run(self, duration: float | None = None) -> None:
        """Run the timer until cancelled, or for ``duration`` seconds."""
        self.timer.start()
        LOGGER.info("runtime.started", extra={"event": "runtime.started", "duration": duration})
        try:
            if duration is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(duration)
        finally:
            self.timer.stop()
            LOGGER.info("runtime.stopped", extra={"event": "runtime.stopped"})

    def close(self) -> None:
        self.factory.destroy_all()
