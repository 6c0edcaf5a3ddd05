"""Timeboxed phase descriptor; all time values are milliseconds."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..enums import PhaseType


@dataclass(frozen=True)
class PhaseSnapshot:
    """Read-only view of a phase, sampled at one instant."""

    type: PhaseType
    allocated_time: int
    remaining_time: int
    elapsed_time: int
    can_overrun: bool
    start_time: int
    is_active: bool
    index: int = -1

    @property
    def is_overrunning(self) -> bool:
        return self.is_active and self.remaining_time < 0


class Phase:
    """A stretch of the cycle with a fixed allocation and an overrun policy.

    Phase keeps no clock of its own: elapsed and remaining time are computed
    from the ``now`` the caller samples, so they stay in step with the timer.
    """

    def __init__(self, type: PhaseType | str, allocated_time: int, can_overrun: bool = False) -> None:
        if allocated_time < 0:
            raise ValueError("allocated_time must not be negative.")
        self._type = PhaseType(type)
        self._allocated_time = int(allocated_time)
        self._can_overrun = bool(can_overrun)
        self._start_time = 0
        self._is_active = False

    @classmethod
    def from_config(cls, config: Any) -> Phase:
        """Build from a ``PhaseConfig`` model or its dumped dict."""
        if hasattr(config, "model_dump"):
            config = config.model_dump()
        return cls(
            type=config["type"],
            allocated_time=config.get("allocated_time", config.get("allocatedTime", 0)),
            can_overrun=config.get("can_overrun", config.get("canOverrun", False)),
        )

    def __repr__(self) -> str:
        return (
            f"Phase(type={self._type.value!r}, allocated_time={self._allocated_time}, "
            f"can_overrun={self._can_overrun}, active={self._is_active})"
        )

    @property
    def type(self) -> PhaseType:
        return self._type

    @property
    def allocated_time(self) -> int:
        return self._allocated_time

    @property
    def can_overrun(self) -> bool:
        return self._can_overrun

    @property
    def start_time(self) -> int:
        return self._start_time

    @property
    def is_active(self) -> bool:
        return self._is_active

    @property
    def end_time(self) -> int:
        return self._start_time + self._allocated_time if self._start_time else 0

    def set_start_time(self, start_time: int) -> None:
        self._start_time = start_time

    def set_active(self, is_active: bool) -> None:
        self._is_active = is_active

    def elapsed_time(self, now: int) -> int:
        if not self._start_time or not self._is_active:
            return 0
        return now - self._start_time

    def remaining_time(self, now: int) -> int:
        """Time left at ``now``.

        Args:
            now: Clock reading in milliseconds

        Returns:
            0 when the phase is inactive or not started; never negative
            unless the phase may overrun.
        """
        if not self._start_time or not self._is_active:
            return 0
        remaining = self._allocated_time - self.elapsed_time(now)
        if not self._can_overrun:
            return max(remaining, 0)
        return remaining

    def snapshot(self, now: int, index: int = -1) -> PhaseSnapshot:
        return PhaseSnapshot(
            type=self._type,
            allocated_time=self._allocated_time,
            remaining_time=self.remaining_time(now),
            elapsed_time=self.elapsed_time(now),
            can_overrun=self._can_overrun,
            start_time=self._start_time,
            is_active=self._is_active,
            index=index,
        )
