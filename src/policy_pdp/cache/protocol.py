"""Protocol for the external cache.

The engine treats the cache as an independently consistent service: it
never holds locks across get/set, and concurrent writers for the same key
are last-write-wins.
"""

from __future__ import annotations

__all__ = ["Cache"]

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Cache(Protocol):
    """Key/value store with per-entry TTL."""

    async def get(self, key: str) -> Any | None:
        """Return the cached value, or None if absent or expired."""
        ...

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store value under key for ttl_seconds. A TTL of 0 stores nothing."""
        ...

    async def remove(self, key: str) -> None:
        """Drop key if present."""
        ...
