"""Daily planning: lay the phase cycle over the configured availability blocks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
import logging
from typing import Any

from ..config import MINUTE_MS, WEEKDAYS
from ..enums import ConfigEvents, ConfigRequests, PhaseType
from ..events import Bus
from .base import BaseModule
from .phase import Phase

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleSlot:
    type: PhaseType
    start: datetime
    end: datetime

    @property
    def duration_ms(self) -> int:
        return int((self.end - self.start) / timedelta(milliseconds=1))


def _time_of_day(value: str) -> time:
    hours, minutes = (int(part) for part in value.split(":"))
    return time(hours, minutes)


def plan_block(
    day: date,
    start_time: str,
    end_time: str,
    phases: list[Phase],
    planning_ms: int,
) -> list[ScheduleSlot]:
    """Fill one availability block: a planning slot, then whole phases while they fit."""
    cursor = datetime.combine(day, _time_of_day(start_time))
    block_end = datetime.combine(day, _time_of_day(end_time))
    slots: list[ScheduleSlot] = []

    if planning_ms > 0:
        planning_end = cursor + timedelta(milliseconds=planning_ms)
        if planning_end > block_end:
            return slots
        slots.append(ScheduleSlot(PhaseType.PLANNING, cursor, planning_end))
        cursor = planning_end

    cycle = [p for p in phases if p.type is not PhaseType.PLANNING and p.allocated_time > 0]
    if not cycle:
        return slots

    index = 0
    while True:
        phase = cycle[index % len(cycle)]
        slot_end = cursor + timedelta(milliseconds=phase.allocated_time)
        if slot_end > block_end:
            break
        slots.append(ScheduleSlot(phase.type, cursor, slot_end))
        cursor = slot_end
        index += 1
    return slots


class Scheduler(BaseModule):
    """Turn today's availability into concrete phase slots.

    Both the schedule and the phase list are fetched with ``config:get``, so
    the scheduler never holds a reference to the config module itself.
    """

    def __init__(self, bus: Bus | None = None, day: date | None = None) -> None:
        super().__init__(bus)
        self._day = day
        self._slots: list[ScheduleSlot] = []
        self._planned_for: date | None = None
        self.on(ConfigEvents.CHANGED, self._on_config_changed)
        self.regenerate()

    def _config_value(self, key: str) -> Any:
        answers = [answer for answer in self.get(ConfigRequests.GET, key) if answer is not None]
        return answers[0] if answers else None

    def _on_config_changed(self, change: dict[str, Any]) -> None:
        key = str(change.get("key", ""))
        if key.split(".")[0] in ("schedule", "timer"):
            self.regenerate()

    def generate_slots(self, day: date) -> list[ScheduleSlot]:
        """Plan the slots for one calendar day from the current config.

        Args:
            day: Date whose weekday selects the availability entries
        """
        schedule = self._config_value("schedule") or {}
        phases = [Phase.from_config(p) for p in self._config_value("timer.phases") or []]
        planning_ms = int(schedule.get("planning_minutes", 0)) * MINUTE_MS
        weekday = WEEKDAYS[day.weekday()]

        slots: list[ScheduleSlot] = []
        for availability in schedule.get("availability", []):
            if availability.get("day") != weekday:
                continue
            for block in availability.get("time_blocks", []):
                slots.extend(
                    plan_block(day, block["start_time"], block["end_time"], phases, planning_ms)
                )
        slots.sort(key=lambda slot: slot.start)
        return slots

    def regenerate(self) -> None:
        """Rebuild the cached plan for the fixed day, or for today."""
        day = self._day or date.today()
        self._slots = self.generate_slots(day)
        self._planned_for = day
        LOGGER.debug("Planned %d slots for %s", len(self._slots), day.isoformat())

    def get_available_slots(self, day: date | None = None) -> list[ScheduleSlot]:
        """Return the planned slots.

        Args:
            day: Date to plan for; defaults to the fixed day, or to today, in
                which case a plan cached on an earlier date is rebuilt first
        """
        if day is None:
            if (self._day or date.today()) != self._planned_for:
                self.regenerate()
            return list(self._slots)
        if day == self._planned_for:
            return list(self._slots)
        return self.generate_slots(day)
