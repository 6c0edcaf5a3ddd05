"""Domain exception hierarchy for the kazari bus and timer."""

from __future__ import annotations


class KazariError(RuntimeError):
    """Base class for all kazari errors."""


class BusError(KazariError):
    """Base class for bus wiring mistakes."""


class BusKeyError(BusError, ValueError):
    """Raised when a bus is created without a usable key."""


class ListenerNotFoundError(BusError, LookupError):
    """Raised when removing a listener that was never registered."""


class GetterNotFoundError(BusError, LookupError):
    """Raised when removing a getter that was never registered."""


class ModuleBindingError(KazariError):
    """Raised when a module uses its bus before one was bound."""


class PhaseIndexError(KazariError, IndexError):
    """Raised when selecting a phase outside the configured list."""


class TimerConfigurationError(KazariError):
    """Raised when the timer cannot be built from the available phases."""


class ConfigValidationError(KazariError):
    """Raised when configuration cannot be validated safely."""
