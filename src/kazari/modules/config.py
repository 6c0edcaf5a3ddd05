"""Config module: answers ``config:get`` requests for every other module."""

from __future__ import annotations

from copy import deepcopy
import logging
from pathlib import Path
from typing import Any

from ..config import load_config, parse_config
from ..enums import ConfigEvents, ConfigRequests
from ..events import Bus
from .base import BaseModule

LOGGER = logging.getLogger(__name__)

_MISSING = object()


class ConfigModule(BaseModule):
    """Hold the validated configuration and serve it over the bus.

    Keys are dotted paths into the config sections, e.g. ``"timer.phases"``.
    Values are handed out as copies, so callers cannot mutate the store.
    """

    def __init__(
        self,
        bus: Bus | None = None,
        config: dict[str, Any] | None = None,
        config_path: Path | None = None,
    ) -> None:
        super().__init__(bus)
        self._config_path = config_path
        self._configs: dict[str, Any] = config if config is not None else load_config(config_path)
        self.register_getter(ConfigRequests.GET, self.get_value)

    @property
    def data(self) -> dict[str, Any]:
        return deepcopy(self._configs)

    def get_value(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key.

        Args:
            key: Dotted path such as ``"timer.tick_duration_ms"``
            default: Returned when any part of the path is missing
        """
        node: Any = self._configs
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return deepcopy(node)

    def set_value(self, key: str, value: Any) -> None:
        """Validate and store a value, then announce it with ``config:changed``.

        The change is applied to a copy and validated first; an invalid value
        raises ``ConfigValidationError`` and leaves the store untouched.

        Args:
            key: Dotted path to set; missing intermediate sections are created
            value: New value for ``key``
        """
        candidate = deepcopy(self._configs)
        parts = key.split(".")
        node = candidate
        for part in parts[:-1]:
            child = node.get(part, _MISSING)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

        # Unknown sections pass through; known ones are replaced by their normalized form.
        candidate.update(parse_config(candidate))
        self._configs = candidate
        LOGGER.info("config.changed", extra={"event": "config.changed", "key": key})
        self.emit(ConfigEvents.CHANGED, {"key": key, "value": self.get_value(key)})

    def reload(self, config_path: Path | None = None) -> None:
        """Reload from TOML and emit ``config:changed`` once per section.

        Args:
            config_path: File to read; defaults to the path used last
        """
        self._config_path = config_path or self._config_path
        self._configs = load_config(self._config_path)
        for section in self._configs:
            self.emit(ConfigEvents.CHANGED, {"key": section, "value": self.get_value(section)})
