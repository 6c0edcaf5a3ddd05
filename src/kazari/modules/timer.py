"""Phase-driven timer that cycles through timeboxed phases and reports over its bus."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
import logging
from typing import Any

from ..enums import ConfigEvents, ConfigRequests, TimerEvents
from ..events import Bus
from ..exceptions import PhaseIndexError, TimerConfigurationError
from ..scheduling import AsyncioIntervalScheduler, IntervalHandle, IntervalScheduler
from .base import BaseModule
from .phase import Phase, PhaseSnapshot

LOGGER = logging.getLogger(__name__)

DEFAULT_TICK_DURATION_MS = 1000


class Timer(BaseModule):
    """Cyclic phase timer.

    The timer is idle until :meth:`start` arms its tick loop. Each tick emits
    ``TICK``; when a phase that may not overrun runs out, the timer emits
    ``PHASE_END`` and moves on with ``PHASE_SET`` and ``PHASE_START``. Phases
    that may overrun keep counting below zero until :meth:`skip` is called.

    Every event carries ``{"phase": PhaseSnapshot}``.
    """

    def __init__(
        self,
        bus: Bus | None = None,
        scheduler: IntervalScheduler | None = None,
        phases: Iterable[Any] | None = None,
        tick_duration: int | None = None,
    ) -> None:
        super().__init__(bus)
        self._scheduler: IntervalScheduler = scheduler or AsyncioIntervalScheduler()
        self._phases: list[Phase] = []
        self._current_phase_index = -1
        self._tick_handle: IntervalHandle | None = None
        self._tick_duration = DEFAULT_TICK_DURATION_MS

        self.load_phases(phases)
        if tick_duration is None:
            tick_duration = self._config_value("timer.tick_duration_ms")
        if tick_duration is not None:
            self.set_tick_duration(tick_duration)

        self.on(ConfigEvents.CHANGED, self._on_config_changed)

    # -- configuration ---------------------------------------------------

    def _config_value(self, key: str) -> Any:
        answers = [answer for answer in self.get(ConfigRequests.GET, key) if answer is not None]
        return answers[0] if answers else None

    def load_phases(self, phases: Iterable[Any] | None = None) -> None:
        """Replace the phase list and reset the selection.

        Args:
            phases: ``Phase`` objects, ``PhaseConfig`` models or dicts; when
                omitted the list is fetched with ``config:get timer.phases``

        Raises:
            TimerConfigurationError: If the timer is running or no phase is given.
        """
        if self.is_running:
            raise TimerConfigurationError("Cannot reload phases while the timer is running.")
        if phases is None:
            phases = self._config_value("timer.phases") or []
        loaded = [item if isinstance(item, Phase) else Phase.from_config(item) for item in phases]
        if not loaded:
            raise TimerConfigurationError("Timer requires at least one phase.")
        self._phases = loaded
        self._current_phase_index = -1
        LOGGER.debug("Loaded %d phases: %s", len(loaded), [p.type.value for p in loaded])

    def _on_config_changed(self, change: dict[str, Any]) -> None:
        key = str(change.get("key", ""))
        if key in ("timer", "timer.tick_duration_ms"):
            value = self._config_value("timer.tick_duration_ms")
            if value is not None:
                self.set_tick_duration(value)
        if key in ("timer", "timer.phases"):
            if self.is_running:
                LOGGER.warning(
                    "timer.config.ignored",
                    extra={"event": "timer.config.ignored", "key": key},
                )
                return
            self.load_phases()

    # -- read-only surface -----------------------------------------------

    @property
    def now(self) -> int:
        return self._scheduler.now()

    @property
    def phases(self) -> list[PhaseSnapshot]:
        now = self.now
        return [phase.snapshot(now, index) for index, phase in enumerate(self._phases)]

    @property
    def current_phase_index(self) -> int:
        return self._current_phase_index

    @property
    def current_phase(self) -> PhaseSnapshot:
        return self._current().snapshot(self.now, max(self._current_phase_index, 0))

    @property
    def tick_duration(self) -> int:
        return self._tick_duration

    @property
    def is_running(self) -> bool:
        return self._tick_handle is not None

    def _current(self) -> Phase:
        if self._current_phase_index < 0:
            return self._phases[0]
        return self._phases[self._current_phase_index]

    def _payload(self, snapshot: PhaseSnapshot | None = None) -> dict[str, PhaseSnapshot]:
        return {"phase": snapshot or self.current_phase}

    # -- transitions -----------------------------------------------------

    def set_current_phase(self, index: int) -> None:
        """Select a phase and emit ``PHASE_SET``.

        A running timer ends the current phase first and starts the new one
        right away.

        Args:
            index: Position in the phase list

        Raises:
            PhaseIndexError: If ``index`` is outside the phase list.
        """
        if not 0 <= index < len(self._phases):
            raise PhaseIndexError(
                f"Phase index {index} out of range for {len(self._phases)} phases."
            )
        restart = self.is_running
        if restart:
            self.end_phase()
        if self._current_phase_index >= 0:
            self._current().set_active(False)
        self._current_phase_index = index
        phase = self._current()
        phase.set_start_time(0)
        phase.set_active(True)
        LOGGER.debug("Current phase set to %d (%s)", index, phase.type.value)
        self.emit(TimerEvents.PHASE_SET, self._payload())
        if restart:
            self._start_phase()

    def start(self) -> None:
        """Start the selected phase, selecting the first one if none is."""
        if self._current_phase_index < 0:
            self.set_current_phase(0)
        self._start_phase()

    def start_next_phase(self) -> None:
        """Advance to the next phase (wrapping around) and start it."""
        if self.is_running:
            self.end_phase()
        self.set_current_phase((self._current_phase_index + 1) % len(self._phases))
        self._start_phase()

    skip = start_next_phase

    def _start_phase(self) -> None:
        phase = self._current()
        phase.set_active(True)
        phase.set_start_time(self.now)
        self._arm()
        LOGGER.info(
            "timer.phase.start",
            extra={
                "event": "timer.phase.start",
                "phase": phase.type.value,
                "index": self._current_phase_index,
                "allocated_time": phase.allocated_time,
            },
        )
        self.emit(TimerEvents.PHASE_START, self._payload())

    def tick(self) -> None:
        """Emit ``TICK`` and move on once a phase that may not overrun runs out."""
        phase = self._current()
        self.emit(TimerEvents.TICK, self._payload())
        # A TICK listener may already have skipped or stopped the phase.
        if phase is not self._current() or not self.is_running:
            return
        if phase.remaining_time(self.now) <= 0 and not phase.can_overrun:
            self.end_phase()
            self.start_next_phase()

    def end_phase(self) -> None:
        """Deactivate the current phase and stop ticking; emits ``PHASE_END`` if it was running."""
        was_running = self.is_running
        phase = self._current()
        final = replace(self.current_phase, is_active=False)
        phase.set_active(False)
        self._clear_interval()
        if not was_running:
            return
        LOGGER.info(
            "timer.phase.end",
            extra={
                "event": "timer.phase.end",
                "phase": phase.type.value,
                "index": self._current_phase_index,
                "elapsed_time": final.elapsed_time,
            },
        )
        self.emit(TimerEvents.PHASE_END, self._payload(final))

    def stop(self) -> None:
        if self.is_running:
            self.end_phase()

    def set_tick_duration(self, duration: int) -> None:
        """Change the tick cadence.

        A running loop is re-armed at once; elapsed time is untouched.

        Args:
            duration: Milliseconds between ticks

        Raises:
            ValueError: If ``duration`` is not positive.
        """
        duration = int(duration)
        if duration <= 0:
            raise ValueError(f"Tick duration must be positive, got {duration} ms.")
        self._tick_duration = duration
        if self.is_running:
            self._arm()

    # -- tick loop -------------------------------------------------------

    def _arm(self) -> None:
        self._clear_interval()
        self._tick_handle = self._scheduler.call_every(self._tick_duration, self.tick)

    def _clear_interval(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None

    def destroy(self) -> None:
        self._clear_interval()
        super().destroy()
