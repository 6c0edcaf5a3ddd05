"""Top-level package for kazari."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import ensure_config_dir, load_config
    from .enums import PhaseType, TimerEvents
    from .events import Bus, BusRegistry
    from .exceptions import (
        BusKeyError,
        ConfigValidationError,
        KazariError,
        ListenerNotFoundError,
        ModuleBindingError,
    )
    from .modules import BaseModule, ModuleFactory, Phase, PhaseSnapshot, Timer
    from .runtime import KazariRuntime

__all__ = [
    "BaseModule",
    "Bus",
    "BusKeyError",
    "BusRegistry",
    "ConfigValidationError",
    "KazariError",
    "KazariRuntime",
    "ListenerNotFoundError",
    "ModuleBindingError",
    "ModuleFactory",
    "Phase",
    "PhaseSnapshot",
    "PhaseType",
    "Timer",
    "TimerEvents",
    "ensure_config_dir",
    "load_config",
]


def __getattr__(name: str) -> Any:
    """Lazily import symbols so ``import kazari`` stays cheap."""
    if name in {"ensure_config_dir", "load_config"}:
        from .config import ensure_config_dir, load_config

        return {"ensure_config_dir": ensure_config_dir, "load_config": load_config}[name]
    if name in {"PhaseType", "TimerEvents"}:
        from .enums import PhaseType, TimerEvents

        return {"PhaseType": PhaseType, "TimerEvents": TimerEvents}[name]
    if name in {"Bus", "BusRegistry"}:
        from .events import Bus, BusRegistry

        return {"Bus": Bus, "BusRegistry": BusRegistry}[name]
    if name in {
        "BusKeyError",
        "ConfigValidationError",
        "KazariError",
        "ListenerNotFoundError",
        "ModuleBindingError",
    }:
        from . import exceptions

        return getattr(exceptions, name)
    if name in {"BaseModule", "ModuleFactory", "Phase", "PhaseSnapshot", "Timer"}:
        from . import modules

        return getattr(modules, name)
    if name == "KazariRuntime":
        from .runtime import KazariRuntime

        return KazariRuntime
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
