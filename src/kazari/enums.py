"""Closed sets of names shared between the bus, the timer and outer layers."""

from __future__ import annotations

from enum import Enum


class PhaseType(str, Enum):
    """Kinds of timeboxed phase in a cycle."""

    PLANNING = "planning"
    FOCUS = "focus"
    BREAK = "break"


class TimerEvents(str, Enum):
    """Lifecycle events emitted by the timer, each carrying ``{"phase": PhaseSnapshot}``."""

    PHASE_SET = "timer:phase:activated:global"
    PHASE_START = "timer:phase:start:global"
    TICK = "timer:tick:global"
    PHASE_END = "timer:phase:end:global"


class ConfigEvents(str, Enum):
    CHANGED = "config:changed"


class ConfigRequests(str, Enum):
    GET = "config:get"
