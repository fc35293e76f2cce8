"""Process-local metrics sinks."""

from __future__ import annotations

__all__ = [
    "InMemoryMetrics",
    "NullMetrics",
]

from policy_pdp.telemetry.metrics.protocol import TimerSummary

_MetricKey = tuple[str, frozenset[tuple[str, str]]]


def _key(name: str, tags: dict[str, str] | None) -> _MetricKey:
    return name, frozenset((tags or {}).items())


class InMemoryMetrics:
    """MetricsSink keeping counters and timer aggregates in dictionaries.

    Counters and timers are keyed by name plus the exact tag set, so a
    counter recorded with {"policy_id": "p1"} is distinct from the untagged one.
    """

    def __init__(self) -> None:
        self._counters: dict[_MetricKey, float] = {}
        self._timers: dict[_MetricKey, TimerSummary] = {}

    async def record_counter(
        self, name: str, value: float = 1, tags: dict[str, str] | None = None
    ) -> None:
        key = _key(name, tags)
        self._counters[key] = self._counters.get(key, 0) + value

    async def record_timer(
        self, name: str, duration_ms: float, tags: dict[str, str] | None = None
    ) -> None:
        key = _key(name, tags)
        current = self._timers.get(key)
        if current is None:
            self._timers[key] = TimerSummary(1, duration_ms, duration_ms, duration_ms)
            return
        self._timers[key] = TimerSummary(
            count=current.count + 1,
            total_ms=current.total_ms + duration_ms,
            min_ms=min(current.min_ms, duration_ms),
            max_ms=max(current.max_ms, duration_ms),
        )

    async def get_counter_value(self, name: str, tags: dict[str, str] | None = None) -> float:
        return self._counters.get(_key(name, tags), 0)

    async def get_timer_summary(
        self, name: str, tags: dict[str, str] | None = None
    ) -> TimerSummary:
        return self._timers.get(_key(name, tags), TimerSummary())


class NullMetrics:
    """MetricsSink that records nothing and reports zeros."""

    async def record_counter(
        self, name: str, value: float = 1, tags: dict[str, str] | None = None
    ) -> None:
        return None

    async def record_timer(
        self, name: str, duration_ms: float, tags: dict[str, str] | None = None
    ) -> None:
        return None

    async def get_counter_value(self, name: str, tags: dict[str, str] | None = None) -> float:
        return 0

    async def get_timer_summary(
        self, name: str, tags: dict[str, str] | None = None
    ) -> TimerSummary:
        return TimerSummary()
