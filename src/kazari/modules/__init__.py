"""Bus-bound modules: binding, phases, the timer and its collaborators."""

from .base import BaseModule, ModuleFactory
from .config import ConfigModule
from .phase import Phase, PhaseSnapshot
from .scheduler import ScheduleSlot, Scheduler
from .timer import Timer

__all__ = [
    "BaseModule",
    "ConfigModule",
    "ModuleFactory",
    "Phase",
    "PhaseSnapshot",
    "ScheduleSlot",
    "Scheduler",
    "Timer",
]
