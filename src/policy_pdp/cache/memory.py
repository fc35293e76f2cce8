"""In-memory TTL cache.

Entries expire by time.monotonic(), so wall-clock adjustments neither
extend nor cut short a cached decision.
"""

from __future__ import annotations

__all__ = ["InMemoryCache"]

import time
from dataclasses import dataclass
from typing import Any, Callable


@dataclass(slots=True)
class _Entry:
    value: Any
    expires_at: float


class InMemoryCache:
    """Cache implementation backed by a dict.

    Expired entries are dropped lazily on read.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize an empty cache.

        Args:
            clock: Monotonic time source in seconds (injectable for tests).
        """
        self._entries: dict[str, _Entry] = {}
        self._clock = clock

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry.value

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        self._entries[key] = _Entry(value, self._clock() + ttl_seconds)

    async def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
