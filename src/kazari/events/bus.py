"""Hierarchical event bus for decoupled module communication.

Every bus is a node in a tree rooted at the registry's ``root`` bus. Events
and requests are resolved across the whole tree, so a module only ever talks
to its own bus:

    registry = BusRegistry()
    timer_bus = registry.get_bus("Timer:Bus")
    window_bus = registry.get_bus("WindowManager:Bus")

    def on_tick(payload):
        print(payload["phase"].remaining_time)

    window_bus.on("timer:tick:global", on_tick)
    timer_bus.emit("timer:tick:global", {"phase": snapshot})

Dispatch is synchronous. A listener that emits the event it is handling
recurses without bound.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from enum import Enum
import logging
from typing import TYPE_CHECKING, Any

from ..exceptions import BusError, BusKeyError, GetterNotFoundError, ListenerNotFoundError

if TYPE_CHECKING:
    from .registry import BusRegistry

LOGGER = logging.getLogger(__name__)

Listener = Callable[..., Any]
Getter = Callable[..., Any]
EventKey = str | Enum


def _event_key(event: EventKey) -> str:
    if isinstance(event, Enum):
        return str(event.value)
    if not isinstance(event, str) or not event:
        raise BusError(f"Event name must be a non-empty string, got {event!r}.")
    return event


def listener_name(listener: Listener) -> str:
    """Return the identity a listener is registered under.

    Bound methods are named ``Owner.method`` and plain functions use their
    qualified name. Lambdas and other anonymous callables get a name unique to
    the object, so they never collide with each other.
    """
    func = getattr(listener, "__func__", None)
    owner = getattr(listener, "__self__", None)
    if func is not None and owner is not None:
        owner_name = owner.__qualname__ if isinstance(owner, type) else type(owner).__qualname__
        return f"{owner_name}.{func.__name__}"
    name = getattr(listener, "__qualname__", None)
    if not isinstance(name, str) or not name or "<lambda>" in name:
        return f"<anonymous:{id(listener):x}>"
    return name


class ListenerHandle:
    """Token returned by :meth:`Bus.on`; cancels exactly the listener it was issued for."""

    __slots__ = ("bus", "event", "name", "listener")

    def __init__(self, bus: Bus, event: str, name: str, listener: Listener) -> None:
        self.bus = bus
        self.event = event
        self.name = name
        self.listener = listener

    @property
    def active(self) -> bool:
        return self.bus._listeners.get(self.event, {}).get(self.name) is self.listener

    def cancel(self) -> None:
        self.bus.off(self.event, self)

    def __repr__(self) -> str:
        return f"ListenerHandle(bus={self.bus.key!r}, event={self.event!r}, name={self.name!r})"


class Bus:
    """A node in the routing tree that owns its listeners and getters."""

    def __init__(
        self,
        key: str,
        registry: BusRegistry,
        *,
        parent: Bus | None = None,
        is_root: bool = False,
    ) -> None:
        if key is None or not isinstance(key, str) or not key.strip():
            raise BusKeyError("Bus key must be defined")
        self._key = key
        self._registry = registry
        self._is_root = is_root
        self._children: dict[str, Bus] = {}
        self._listeners: dict[str, dict[str, Listener]] = {}
        self._getters: dict[str, list[Getter]] = {}
        self._parent: Bus | None = None
        if not is_root:
            registry._register(self)
            self._parent = parent or registry.root
            self._parent.register_bus(self)

    def __repr__(self) -> str:
        parent = self._parent.key if self._parent else None
        return f"Bus(key={self._key!r}, parent={parent!r})"

    @property
    def key(self) -> str:
        return self._key

    @property
    def parent(self) -> Bus | None:
        return self._parent

    @property
    def is_root(self) -> bool:
        return self._is_root

    @property
    def children(self) -> dict[str, Bus]:
        return dict(self._children)

    # -- tree membership -------------------------------------------------

    def register_bus(self, bus: Bus) -> None:
        if bus.key in self._children:
            LOGGER.warning(
                "bus.child.duplicate",
                extra={"event": "bus.child.duplicate", "bus": self._key, "child": bus.key},
            )
        self._children[bus.key] = bus

    def deregister_bus(self, key: str) -> None:
        self._children.pop(key, None)

    def has_bus(self, key: str) -> bool:
        return key in self._children

    def _walk(self, exclude: Bus | None = None) -> Iterator[Bus]:
        """Yield every reachable bus once: self, child subtrees, then the parent side."""
        yield self
        for child in list(self._children.values()):
            if child is not exclude:
                yield from child._walk(self)
        if self._parent is not None and self._parent is not exclude:
            yield from self._parent._walk(self)

    # -- events ----------------------------------------------------------

    def can_handle_event(self, event: EventKey) -> bool:
        return bool(self._listeners.get(_event_key(event)))

    def buses_for_event(self, event: EventKey) -> list[Bus]:
        key = _event_key(event)
        return [bus for bus in self._walk() if bus.can_handle_event(key)]

    def on(self, event: EventKey, listener: Listener, name: str | None = None) -> ListenerHandle:
        """Register a listener on this bus.

        A listener already registered under the same name is replaced, with a
        warning.

        Args:
            event: Event name or enum member (e.g., ``TimerEvents.TICK``)
            listener: Callable invoked with the emitted arguments
            name: Identity to register under; derived from the callable if omitted

        Returns:
            A handle that removes exactly this registration.
        """
        if not callable(listener):
            raise BusError(f"Listener for {event!r} must be callable.")
        key = _event_key(event)
        resolved = name or listener_name(listener)
        listeners = self._listeners.setdefault(key, {})
        if resolved in listeners:
            LOGGER.warning(
                "bus.listener.replaced",
                extra={
                    "event": "bus.listener.replaced",
                    "bus": self._key,
                    "bus_event": key,
                    "listener": resolved,
                },
            )
            del listeners[resolved]
        listeners[resolved] = listener
        return ListenerHandle(self, key, resolved, listener)

    def off(self, event: EventKey, listener: Listener | ListenerHandle | str) -> None:
        """Remove one listener from this bus.

        Args:
            event: Event the listener was registered for
            listener: The handle returned by :meth:`on`, the callable, or its name

        Raises:
            ListenerNotFoundError: If nothing matching is registered.
        """
        key = _event_key(event)
        listeners = self._listeners.get(key, {})
        if isinstance(listener, ListenerHandle):
            name = listener.name
            found = listener.bus is self and listeners.get(name) is listener.listener
        else:
            name = listener if isinstance(listener, str) else listener_name(listener)
            found = name in listeners
        if not found:
            raise ListenerNotFoundError(f'Listener "{name}" not found for event "{key}"')
        del listeners[name]
        if not listeners:
            self._listeners.pop(key, None)

    def off_all(self, event: EventKey) -> None:
        """Remove every listener for ``event`` on this bus; warns when there were none."""
        key = _event_key(event)
        if not self._listeners.pop(key, None):
            LOGGER.warning(
                "bus.listeners.none",
                extra={"event": "bus.listeners.none", "bus": self._key, "bus_event": key},
            )

    def emit(self, event: EventKey, *args: Any, **kwargs: Any) -> int:
        """Dispatch to every bus in the tree listening for ``event``.

        Args:
            event: Event name or enum member
            *args: Positional arguments passed to each listener
            **kwargs: Keyword arguments passed to each listener

        Returns:
            The number of buses the event reached. Listener exceptions
            propagate to the caller.
        """
        key = _event_key(event)
        buses = self.buses_for_event(key)
        if not buses:
            LOGGER.debug("No subscribers for event: %s", key)
        for bus in buses:
            bus._dispatch(key, args, kwargs)
        return len(buses)

    def _dispatch(self, key: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        for listener in list(self._listeners.get(key, {}).values()):
            listener(*args, **kwargs)

    def has_active_listeners(self, event: EventKey | None = None) -> bool:
        if event is not None:
            return self.can_handle_event(event)
        return any(self._listeners.values())

    def event_names(self) -> list[str]:
        return [key for key, listeners in self._listeners.items() if listeners]

    # -- requests --------------------------------------------------------

    def can_handle_request(self, request_key: str) -> bool:
        return bool(self._getters.get(request_key))

    def getters_for_request(self, request_key: EventKey) -> list[Getter]:
        key = _event_key(request_key)
        return [getter for bus in self._walk() for getter in bus._getters.get(key, [])]

    def register_getter(self, request_key: EventKey, getter: Getter) -> None:
        """Answer ``request_key`` requests from anywhere in the tree.

        Args:
            request_key: Request name such as ``"config:get"``
            getter: Callable whose return value is collected by :meth:`get`
        """
        if not callable(getter):
            raise BusError(f"Getter for {request_key!r} must be callable.")
        key = _event_key(request_key)
        getters = self._getters.setdefault(key, [])
        if getters:
            LOGGER.debug("Adding another getter for request %s on %s", key, self._key)
        getters.append(getter)

    def remove_getter(self, request_key: EventKey, getter: Getter) -> None:
        key = _event_key(request_key)
        getters = self._getters.get(key, [])
        try:
            getters.remove(getter)
        except ValueError:
            raise GetterNotFoundError(
                f'Getter "{listener_name(getter)}" not found for request "{key}"'
            ) from None
        if not getters:
            self._getters.pop(key, None)

    def get(self, request_key: EventKey, *args: Any, **kwargs: Any) -> list[Any]:
        """Ask every getter in the tree for ``request_key``.

        Args:
            request_key: Request name such as ``"config:get"``
            *args: Positional arguments passed to each getter
            **kwargs: Keyword arguments passed to each getter

        Returns:
            The answers in traversal order; empty when nobody answers.
        """
        return [getter(*args, **kwargs) for getter in self.getters_for_request(request_key)]

    # -- lifecycle -------------------------------------------------------

    def reset(self) -> None:
        """Drop all listeners and getters and destroy every child bus."""
        self._listeners.clear()
        self._getters.clear()
        for child in list(self._children.values()):
            child.destroy()

    def destroy(self) -> None:
        """Tear the bus down and detach it from the tree.

        Calling it again, or on the root, does nothing.
        """
        if self._is_root or self._registry.lookup(self._key) is not self:
            return
        self.reset()
        if self._parent is not None:
            self._parent.deregister_bus(self._key)
        self._parent = None
        self._registry.remove(self._key)
        LOGGER.debug("Destroyed bus %s", self._key)

    # Capability-style aliases.
    subscribe = on
    unsubscribe = off
    publish = emit
