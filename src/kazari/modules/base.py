"""Module binding: every module class gets exactly one dedicated child bus."""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from ..events import Bus, BusRegistry, ListenerHandle
from ..events.bus import EventKey, Getter, Listener
from ..exceptions import ModuleBindingError

LOGGER = logging.getLogger(__name__)

ModuleT = TypeVar("ModuleT", bound="BaseModule")


class BaseModule:
    """Base for singleton modules that talk to the rest of the app over a bus.

    The bus is handed to ``__init__`` so subclasses can subscribe and register
    getters in their own constructor, after calling ``super().__init__(bus)``.
    """

    def __init__(self, bus: Bus | None = None) -> None:
        self._bus = bus

    @property
    def bus(self) -> Bus:
        if self._bus is None:
            raise ModuleBindingError(
                f"{type(self).__name__} has no bus bound. "
                f"Create it through ModuleFactory.get_instance({type(self).__name__})."
            )
        return self._bus

    @property
    def is_bound(self) -> bool:
        return self._bus is not None

    def emit(self, event: EventKey, *args: Any, **kwargs: Any) -> int:
        return self.bus.emit(event, *args, **kwargs)

    def on(self, event: EventKey, listener: Listener, name: str | None = None) -> ListenerHandle:
        """Subscribe on the module's bus.

        Args:
            event: Event name or enum member
            listener: Callable invoked with the emitted arguments
            name: Identity to register under; derived from the callable if omitted
        """
        return self.bus.on(event, listener, name)

    def off(self, event: EventKey, listener: Listener | ListenerHandle | str) -> None:
        self.bus.off(event, listener)

    def get(self, request_key: EventKey, *args: Any, **kwargs: Any) -> list[Any]:
        """Collect answers to ``request_key`` from every getter in the tree."""
        return self.bus.get(request_key, *args, **kwargs)

    def register_getter(self, request_key: EventKey, getter: Getter) -> None:
        self.bus.register_getter(request_key, getter)

    def destroy(self) -> None:
        """Destroy the module's bus; the module is unusable afterwards."""
        if self._bus is not None:
            self._bus.destroy()
            self._bus = None


class ModuleFactory:
    """Create module singletons, each bound to the bus ``"{ClassName}:Bus"``."""

    def __init__(self, registry: BusRegistry) -> None:
        self._registry = registry
        self._instances: dict[type[BaseModule], BaseModule] = {}

    @property
    def registry(self) -> BusRegistry:
        return self._registry

    @staticmethod
    def bus_key(module_cls: type[BaseModule]) -> str:
        return f"{module_cls.__name__}:Bus"

    def bus_for(self, module_cls: type[BaseModule]) -> Bus:
        return self._registry.get_bus(self.bus_key(module_cls))

    def create(self, module_cls: type[ModuleT], *args: Any, **kwargs: Any) -> ModuleT:
        """Build a fresh instance bound to the class's bus, outside the singleton cache.

        Args:
            module_cls: ``BaseModule`` subclass to instantiate
            *args: Extra positional arguments for the constructor, after the bus
            **kwargs: Extra keyword arguments for the constructor
        """
        bus = self.bus_for(module_cls)
        LOGGER.debug("Binding %s to %s", module_cls.__name__, bus.key)
        return module_cls(bus, *args, **kwargs)

    def get_instance(self, module_cls: type[ModuleT], *args: Any, **kwargs: Any) -> ModuleT:
        """Return the singleton for ``module_cls``, creating it on first use.

        Constructor arguments are only used when an instance is created; an
        instance whose bus was destroyed is replaced.
        """
        instance = self._instances.get(module_cls)
        if instance is None or not instance.is_bound:
            instance = self.create(module_cls, *args, **kwargs)
            self._instances[module_cls] = instance
        return instance  # type: ignore[return-value]

    def has_instance(self, module_cls: type[BaseModule]) -> bool:
        instance = self._instances.get(module_cls)
        return instance is not None and instance.is_bound

    def destroy(self, module_cls: type[BaseModule]) -> None:
        instance = self._instances.pop(module_cls, None)
        if instance is not None:
            instance.destroy()

    def destroy_all(self) -> None:
        """Destroy modules in reverse creation order."""
        for module_cls in reversed(list(self._instances)):
            self.destroy(module_cls)
