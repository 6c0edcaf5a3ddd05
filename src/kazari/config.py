"""Configuration loading and validation for the kazari timer."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
import re
import tomllib
from typing import Any

from platformdirs import user_config_path
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .enums import PhaseType
from .exceptions import ConfigValidationError

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = user_config_path("kazari")
CONFIG_PATH = CONFIG_DIR / "config.toml"

TIME_OF_DAY_PATTERN = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")
VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
WEEKDAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

MINUTE_MS = 60_000


class AppConfig(BaseModel):
    """Application metadata."""

    title: str = "Kazari"

    @field_validator("title", mode="before")
    @classmethod
    def _validate_non_empty_string(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("String value must not be empty.")
        return normalized


class PhaseConfig(BaseModel):
    """One timeboxed phase; ``allocated_time`` is in milliseconds."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)
    type: PhaseType
    allocated_time: int = Field(ge=0, alias="allocatedTime")
    can_overrun: bool = Field(default=False, alias="canOverrun")


def _default_phases() -> list[PhaseConfig]:
    return [
        PhaseConfig(type=PhaseType.PLANNING, allocated_time=5 * MINUTE_MS, can_overrun=True),
        PhaseConfig(type=PhaseType.FOCUS, allocated_time=25 * MINUTE_MS),
        PhaseConfig(type=PhaseType.BREAK, allocated_time=5 * MINUTE_MS),
    ]


class TimerConfig(BaseModel):
    """Tick cadence and the cyclic phase list."""

    tick_duration_ms: int = Field(default=1000, ge=1, le=3_600_000)
    phases: list[PhaseConfig] = Field(default_factory=_default_phases)

    @field_validator("phases")
    @classmethod
    def _validate_phases(cls, value: list[PhaseConfig]) -> list[PhaseConfig]:
        if not value:
            raise ValueError("timer.phases must contain at least one phase.")
        return value


class TimeBlockConfig(BaseModel):
    """A window of availability within one day, as ``HH:MM`` strings."""

    start_time: str
    end_time: str

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _validate_time_of_day(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Time of day must be a string.")
        normalized = value.strip()
        if not TIME_OF_DAY_PATTERN.match(normalized):
            raise ValueError("Time of day must use HH:MM format.")
        return normalized

    @model_validator(mode="after")
    def _validate_order(self) -> TimeBlockConfig:
        if self.start_time >= self.end_time:
            raise ValueError("Time block must end after it starts.")
        return self


class DayAvailabilityConfig(BaseModel):
    day: str
    time_blocks: list[TimeBlockConfig] = Field(default_factory=list)

    @field_validator("day", mode="before")
    @classmethod
    def _validate_day(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("day must be a string.")
        normalized = value.strip().capitalize()
        if normalized not in WEEKDAYS:
            raise ValueError(f"Unknown weekday {value!r}.")
        return normalized


class ScheduleConfig(BaseModel):
    """Weekly availability used to plan the day's phase slots."""

    planning_minutes: int = Field(default=5, ge=0, le=240)
    availability: list[DayAvailabilityConfig] = Field(default_factory=list)


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = "~/.local/state/kazari/kazari.log"

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("log_file_path must be a string.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("log_file_path must not be empty.")
        return normalized


class Config(BaseModel):
    """Root configuration model for all sections."""

    app: AppConfig = AppConfig()
    timer: TimerConfig = TimerConfig()
    schedule: ScheduleConfig = ScheduleConfig()
    logging: LoggingConfig = LoggingConfig()


DEFAULT_CONFIG: dict[str, dict[str, Any]] = Config().model_dump(mode="json")


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Ensure that the config directory exists and return its path."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override values onto base values."""
    merged: dict[str, Any] = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _enforce_private_permissions(path: Path) -> None:
    """Best-effort enforcement of private file permissions on POSIX systems."""
    if os.name != "posix" or not path.exists():
        return
    try:
        path.chmod(0o600)
    except OSError as exc:
        LOGGER.warning("Unable to enforce 0600 permissions for %s: %s", path, exc)


def _safe_default_config() -> dict[str, dict[str, Any]]:
    """Return a deep copy of validated default config data."""
    return deepcopy(DEFAULT_CONFIG)


def parse_config(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """
    Validate ``raw`` strictly and return the normalized sections.

    Unlike :func:`validate_config` there is no fallback: invalid input raises
    ``ConfigValidationError`` carrying the pydantic error report.
    """
    try:
        return Config.model_validate(raw).model_dump(mode="json")
    except ValidationError as exc:
        raise ConfigValidationError(f"Invalid configuration: {exc}") from exc


def validate_config(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Validate merged config and fall back to safe defaults when possible."""
    try:
        config = Config.model_validate(raw)
        return config.model_dump(mode="json")
    except ValidationError as exc:
        LOGGER.warning("Configuration validation failed, using safe defaults: %s", exc)
        return _safe_default_config()
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate configuration: {exc}") from exc


def load_config(config_path: Path | None = None) -> dict[str, dict[str, Any]]:
    """
    Load configuration from TOML, merge with defaults, and validate.

    The optional ``config_path`` argument is intended for tests and tooling.
    """
    target_path = config_path or CONFIG_PATH
    ensure_config_dir(target_path.parent)

    raw_data: dict[str, Any] = {}
    if target_path.exists():
        _enforce_private_permissions(target_path)
        try:
            raw_data = tomllib.loads(target_path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            LOGGER.warning("Failed to parse config at %s: %s", target_path, exc)
            raw_data = {}

    merged = _deep_merge(DEFAULT_CONFIG, raw_data)
    return validate_config(merged)
