"""Protocol for metrics sinks."""

from __future__ import annotations

__all__ = [
    "MetricsSink",
    "TimerSummary",
]

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class TimerSummary:
    """Aggregate of recorded durations for one timer.

    Attributes:
        count: Number of recorded samples.
        total_ms: Sum of samples.
        min_ms: Smallest sample (0.0 when empty).
        max_ms: Largest sample (0.0 when empty).
    """

    count: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0

    @property
    def average_ms(self) -> float:
        """Mean sample, 0.0 when nothing was recorded."""
        return self.total_ms / self.count if self.count else 0.0


@runtime_checkable
class MetricsSink(Protocol):
    """Counters and timers keyed by name plus tags."""

    async def record_counter(
        self, name: str, value: float = 1, tags: dict[str, str] | None = None
    ) -> None:
        """Increment a counter."""
        ...

    async def record_timer(
        self, name: str, duration_ms: float, tags: dict[str, str] | None = None
    ) -> None:
        """Record one duration sample."""
        ...

    async def get_counter_value(self, name: str, tags: dict[str, str] | None = None) -> float:
        """Current value of a counter (0 when never recorded)."""
        ...

    async def get_timer_summary(
        self, name: str, tags: dict[str, str] | None = None
    ) -> TimerSummary:
        """Aggregate of a timer's samples."""
        ...
