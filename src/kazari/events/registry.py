"""Process-wide lookup of live buses, constructed once and passed around explicitly."""

from __future__ import annotations

from collections.abc import Iterator
import logging

from ..exceptions import BusKeyError
from .bus import Bus

LOGGER = logging.getLogger(__name__)

ROOT_KEY = "root"


class BusRegistry:
    """Own the root bus and cache named buses by key.

    The root is created on first access and lives as long as the registry.
    Named buses are created lazily; asking for the same key twice returns the
    same instance until that bus is destroyed.
    """

    def __init__(self) -> None:
        self._root: Bus | None = None
        self._instances: dict[str, Bus] = {}

    @property
    def root(self) -> Bus:
        if self._root is None:
            self._root = Bus(ROOT_KEY, self, is_root=True)
        return self._root

    def get_bus(self, key: str, parent: Bus | None = None) -> Bus:
        """Return the live bus for ``key``, creating it under ``parent`` (default root)."""
        if key == ROOT_KEY:
            raise BusKeyError(f'"{ROOT_KEY}" is reserved for the tree root.')
        bus = self._instances.get(key)
        if bus is None:
            return Bus(key, self, parent=parent)
        if parent is not None and bus.parent is not parent:
            LOGGER.warning(
                "bus.registry.parent_mismatch",
                extra={
                    "event": "bus.registry.parent_mismatch",
                    "bus": key,
                    "requested_parent": parent.key,
                },
            )
        return bus

    def _register(self, bus: Bus) -> None:
        if bus.key == ROOT_KEY or bus.key in self._instances:
            raise BusKeyError(f'A live bus with key "{bus.key}" already exists.')
        self._instances[bus.key] = bus

    def remove(self, key: str) -> None:
        if self._instances.pop(key, None) is None:
            LOGGER.warning(
                "No instance found with key: %s",
                key,
                extra={"event": "bus.registry.missing", "bus": key},
            )

    def lookup(self, key: str) -> Bus | None:
        if key == ROOT_KEY:
            return self._root
        return self._instances.get(key)

    def is_active(self, key: str) -> bool:
        return key in self._instances

    def keys(self) -> list[str]:
        return list(self._instances)

    def clear(self) -> None:
        """Destroy every named bus and reset the root."""
        for bus in list(self._instances.values()):
            bus.destroy()
        if self._root is not None:
            self._root.reset()

    def __contains__(self, key: object) -> bool:
        return key in self._instances

    def __iter__(self) -> Iterator[Bus]:
        return iter(list(self._instances.values()))

    def __len__(self) -> int:
        return len(self._instances)
