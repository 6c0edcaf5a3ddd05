"""Event routing: the bus tree and the registry that owns it."""

from .bus import Bus, ListenerHandle, listener_name
from .registry import ROOT_KEY, BusRegistry

__all__ = ["Bus", "BusRegistry", "ListenerHandle", "ROOT_KEY", "listener_name"]
