"""Cache layer for policies, roles, per-user policy lists and decisions.

- protocol.py: Cache protocol consumed by the engine
- memory.py: InMemoryCache with monotonic-clock TTL expiry
"""

from policy_pdp.cache.memory import InMemoryCache
from policy_pdp.cache.protocol import Cache

__all__ = ["Cache", "InMemoryCache"]
